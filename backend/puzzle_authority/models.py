from puzzle_authority import db, bcrypt
from flask_login import UserMixin
import json

class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)

    @property
    def uid(self):
        return str(self.id)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'uid': self.uid,
            'username': self.username,
        }

class PuzzleSubmission(db.Model):
    """Accepted submission, annotated with the server score. Never updated."""
    __tablename__ = 'puzzle_submission'
    __table_args__ = (
        db.UniqueConstraint('uid', 'submission_id', name='uq_puzzle_submission_uid_submission_id'),
    )
    id = db.Column(db.Integer, primary_key=True)
    uid = db.Column(db.String(64), nullable=False, index=True)
    submission_id = db.Column(db.String(128), nullable=True)  # client idempotency token
    puzzle_id = db.Column(db.String(128), nullable=False)
    category = db.Column(db.String(32), nullable=True)
    solved = db.Column(db.Boolean, nullable=False)
    time_spent = db.Column(db.Float, nullable=False)
    attempts = db.Column(db.Integer, nullable=False)
    hints_used = db.Column(db.Integer, nullable=False)
    difficulty = db.Column(db.Integer, nullable=False)
    client_score = db.Column(db.Float, nullable=False)
    server_score = db.Column(db.Integer, nullable=False)
    anti_cheat_passed = db.Column(db.Boolean, nullable=False, default=True)
    client_score_matched = db.Column(db.Boolean, nullable=False, default=False)
    extra = db.Column(db.Text, nullable=True)  # JSON-encoded client metadata
    created_at = db.Column(db.Float, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'uid': self.uid,
            'submissionId': self.submission_id,
            'puzzleId': self.puzzle_id,
            'category': self.category,
            'solved': self.solved,
            'timeSpent': self.time_spent,
            'attempts': self.attempts,
            'hintsUsed': self.hints_used,
            'difficulty': self.difficulty,
            'clientScore': self.client_score,
            'serverScore': self.server_score,
            'antiCheatPassed': self.anti_cheat_passed,
            'clientScoreMatched': self.client_score_matched,
            'metadata': json.loads(self.extra) if self.extra else None,
            'createdAt': self.created_at,
        }

class PlayerProfile(db.Model):
    __tablename__ = 'player_profile'
    uid = db.Column(db.String(64), primary_key=True)
    display_name = db.Column(db.String(64), nullable=False, default='Anonymous')
    total_score = db.Column(db.Integer, nullable=False, default=0, index=True)
    puzzles_solved = db.Column(db.Integer, nullable=False, default=0)
    current_streak = db.Column(db.Integer, nullable=False, default=0)
    best_streak = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.Float, nullable=False)
    last_solved_at = db.Column(db.Float, nullable=True)
    version_id = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version_id}

    def to_dict(self):
        return {
            'uid': self.uid,
            'displayName': self.display_name,
            'totalScore': self.total_score,
            'puzzlesSolved': self.puzzles_solved,
            'currentStreak': self.current_streak,
            'bestStreak': self.best_streak,
            'createdAt': self.created_at,
            'lastSolvedAt': self.last_solved_at,
        }

class CategoryScore(db.Model):
    """Per-category aggregate, ranked by the category leaderboard."""
    __tablename__ = 'category_score'
    uid = db.Column(db.String(64), primary_key=True)
    category = db.Column(db.String(32), primary_key=True)
    display_name = db.Column(db.String(64), nullable=False, default='Anonymous')
    total_score = db.Column(db.Integer, nullable=False, default=0, index=True)
    puzzles_solved = db.Column(db.Integer, nullable=False, default=0)
    version_id = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version_id}

class RateLimitWindow(db.Model):
    __tablename__ = 'rate_limit_window'
    uid = db.Column(db.String(64), primary_key=True)
    timestamps = db.Column(db.Text, nullable=False, default='[]')  # JSON-encoded list of ms timestamps
    updated_at = db.Column(db.Float, nullable=True)
    version_id = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version_id}

    @property
    def timestamp_list(self):
        try:
            return [int(t) for t in json.loads(self.timestamps or '[]')]
        except (TypeError, ValueError):
            return []

    @timestamp_list.setter
    def timestamp_list(self, values):
        self.timestamps = json.dumps([int(t) for t in values])

class LeaderboardCacheEntry(db.Model):
    __tablename__ = 'leaderboard_cache'
    uid = db.Column(db.String(64), primary_key=True)
    score = db.Column(db.Integer, nullable=False, index=True)
    display_name = db.Column(db.String(64), nullable=False, default='Anonymous')
    updated_at = db.Column(db.Float, nullable=False)

    def to_dict(self):
        return {
            'uid': self.uid,
            'score': self.score,
            'displayName': self.display_name,
            'updatedAt': self.updated_at,
        }

class SuspiciousActivity(db.Model):
    __tablename__ = 'suspicious_activity'
    id = db.Column(db.Integer, primary_key=True)
    uid = db.Column(db.String(64), nullable=False, index=True)
    reason = db.Column(db.String(256), nullable=False)
    details = db.Column(db.Text, nullable=True)  # JSON-encoded
    created_at = db.Column(db.Float, nullable=False)
    reviewed = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self):
        return {
            'id': self.id,
            'uid': self.uid,
            'reason': self.reason,
            'details': json.loads(self.details) if self.details else {},
            'timestamp': self.created_at,
            'reviewed': self.reviewed,
        }
