import time

from flask import current_app

from puzzle_authority.models import RateLimitWindow

MAX_PUZZLES_PER_MINUTE = 10
RATE_LIMIT_WINDOW_MS = 60_000


def _now_ms() -> int:
    return int(time.time() * 1000)


def _windows():
    from puzzle_authority import store
    return store.repository(RateLimitWindow)


def check_rate_limit(uid: str, now_ms: int = None, windows=None) -> bool:
    """Admit one submission for uid if its sliding window has capacity.

    Read, prune, check and append happen in one optimistic transaction, so
    two concurrent requests can't both see the last free slot. A rejected
    request leaves the window untouched.
    """
    now = _now_ms() if now_ms is None else int(now_ms)
    limit = int(current_app.config.get('MAX_PUZZLES_PER_MINUTE', MAX_PUZZLES_PER_MINUTE))
    window_ms = int(current_app.config.get('RATE_LIMIT_WINDOW_MS', RATE_LIMIT_WINDOW_MS))
    windows = windows or _windows()
    cutoff = now - window_ms

    def admit(tx):
        timestamps = tx.current.timestamp_list if tx.current is not None else []
        # A timestamp exactly window_ms old has expired
        recent = [t for t in timestamps if t > cutoff]
        if len(recent) >= limit:
            return False, len(recent)
        recent.append(now)
        row = tx.current if tx.current is not None else tx.create(uid=uid)
        row.timestamp_list = recent
        row.updated_at = now / 1000.0
        return True, len(recent)

    allowed, occupancy = windows.run_transaction(uid, admit)
    if not allowed:
        current_app.logger.warning(f"[rate-limit] uid={uid} exceeded recent_submissions={occupancy} limit={limit}")
    return allowed
