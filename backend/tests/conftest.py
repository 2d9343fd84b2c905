import os
import sys
import pytest

# Ensure the backend root (containing the `puzzle_authority` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from puzzle_authority import create_app, db, socketio, store


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    BCRYPT_LOG_ROUNDS = 4
    MAX_PUZZLES_PER_MINUTE = 10
    RATE_LIMIT_WINDOW_MS = 60000
    LEADERBOARD_CACHE_SIZE = 100
    TRANSACTION_MAX_ATTEMPTS = 5


@pytest.fixture()
def flask_app(tmp_path):
    # A file database gives every store session its own connection,
    # which the optimistic-conflict tests rely on
    class FileDatabaseConfig(TestConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'puzzle_authority.db'}"

    application = create_app(FileDatabaseConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import puzzle_authority.models  # noqa: F401
        db.create_all()
        yield application
        store.close()
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def make_user(flask_app):
    from puzzle_authority.models import User

    def _make_user(username='alice', password='password'):
        user = User(username=username)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user
