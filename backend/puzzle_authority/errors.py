"""
Rejection taxonomy for puzzle submissions and storage.

Each error carries the wire-level code the client sees, the HTTP status it
maps to, and the pipeline stage at which the submission was rejected.
"""

from flask import jsonify


class PuzzleAuthorityError(Exception):
    """Base class for errors rendered as JSON responses."""
    code = 'internal'
    status = 500

    def __init__(self, message: str, stage=None):
        super().__init__(message)
        self.message = message
        self.stage = stage

    def to_dict(self):
        return {'error': self.message, 'code': self.code}


class AuthError(PuzzleAuthorityError):
    code = 'unauthenticated'
    status = 401


class ValidationError(PuzzleAuthorityError):
    """Malformed input; raised before anything is written."""
    code = 'invalid-argument'
    status = 400


class RateLimitError(PuzzleAuthorityError):
    code = 'resource-exhausted'
    status = 429


class AntiCheatError(PuzzleAuthorityError):
    """Submission flagged by the anti-cheat heuristics."""
    code = 'permission-denied'
    status = 403

    def __init__(self, message: str, flags=None, stage=None):
        super().__init__(message, stage=stage)
        self.flags = list(flags or [])


class StorageConflictError(PuzzleAuthorityError):
    """Optimistic transaction kept conflicting; safe for the caller to retry."""
    code = 'aborted'
    status = 409

    def __init__(self, key, attempts: int):
        super().__init__(
            f"Transaction on {key!r} conflicted {attempts} times. Please try again."
        )
        self.key = key
        self.attempts = attempts


def register_error_handlers(app) -> None:
    @app.errorhandler(PuzzleAuthorityError)
    def handle_puzzle_authority_error(exc):
        return jsonify(exc.to_dict()), exc.status
