from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_bcrypt import Bcrypt
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from puzzle_authority.config import Config
from puzzle_authority.store import TransactionalStore

db = SQLAlchemy()
bcrypt = Bcrypt()
login_manager = LoginManager()
migrate = Migrate()
store = TransactionalStore()
allowed_origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:5174",
    "http://127.0.0.1:5174",
]
socketio = SocketIO(cors_allowed_origins=allowed_origins, async_mode=None)

def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    bcrypt.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    store.init_app(flask_app)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Import and register blueprints here
    from puzzle_authority.main import main
    flask_app.register_blueprint(main)

    from puzzle_authority.api.puzzles import puzzles
    flask_app.register_blueprint(puzzles, url_prefix='/api/puzzles')

    from puzzle_authority.api.leaderboard import leaderboard
    flask_app.register_blueprint(leaderboard, url_prefix='/api/leaderboard')

    from puzzle_authority.errors import register_error_handlers
    register_error_handlers(flask_app)

    from puzzle_authority.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    # The store needs the engine, which only exists inside an app context
    with flask_app.app_context():
        store.open(db.engine)

    # Flask-Login user loader
    from puzzle_authority.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'You must be signed in.', 'code': 'unauthenticated'}), 401

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            # Seed users
            users = ['testuser1', 'testuser2', 'testuser3']
            for u in users:
                user = User(username=u)
                user.set_password('password')
                db.session.add(user)

            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('leaderboard-rebuild')
    def leaderboard_rebuild_command():
        """Recomputes the top-K leaderboard cache from all player profiles."""
        from puzzle_authority.services.leaderboard.cache import rebuild_cache
        with flask_app.app_context():
            size = rebuild_cache()
            print(f'Leaderboard cache rebuilt with {size} entries.')

    @click.command('player-delete')
    @click.argument('uid')
    def player_delete_command(uid):
        """Removes a player profile and its leaderboard presence."""
        from puzzle_authority.services.puzzles.profiles import delete_profile
        with flask_app.app_context():
            if delete_profile(uid):
                print(f'Player {uid} deleted.')
            else:
                print(f'No profile for {uid}.')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(leaderboard_rebuild_command)
    flask_app.cli.add_command(player_delete_command)

    return flask_app
