import json
import time

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from puzzle_authority.models import SuspiciousActivity


def log_suspicious_activity(uid: str, reason: str, details: dict = None, store=None) -> bool:
    """Append a suspicious-activity record for later review.

    Storage failures are logged, never raised: the caller has already decided
    to reject and that outcome must not change. Returns whether the record
    was written.
    """
    if store is None:
        from puzzle_authority import store
    details = details or {}
    current_app.logger.warning(f"[anti-cheat] suspicious activity uid={uid}: {reason} details={details}")
    try:
        with store.session_scope() as session:
            session.add(SuspiciousActivity(
                uid=uid,
                reason=reason,
                details=json.dumps(details, default=str),
                created_at=time.time(),
                reviewed=False,
            ))
    except SQLAlchemyError:
        current_app.logger.exception(f"[anti-cheat] failed to persist suspicious activity for uid={uid}")
        return False
    return True
