"""Top-K leaderboard cache maintenance.

The cache is a best-effort projection of the highest player profiles, for
fast reads. Reading the threshold, upserting the player and evicting the
lowest entry are separate steps. Concurrent refreshes for different players
can therefore leave the cache briefly above K or evict on a stale threshold.
rebuild_cache() recomputes it exactly from the profiles.
"""

import time

from flask import current_app
from sqlalchemy import func

from puzzle_authority.models import LeaderboardCacheEntry, PlayerProfile

CACHE_SIZE = 100
PUSH_SIZE = 20


def _store(store):
    if store is None:
        from puzzle_authority import store as app_store
        return app_store
    return store


def _cache_size() -> int:
    return int(current_app.config.get('LEADERBOARD_CACHE_SIZE', CACHE_SIZE))


def refresh_cache_entry(uid: str, store=None) -> str:
    """Bring uid's cache entry in line with its current profile.

    Returns what happened: 'removed', 'absent', 'upserted' or 'dropped'.
    """
    store = _store(store)
    size = _cache_size()

    with store.session_scope() as session:
        profile = session.get(PlayerProfile, uid)
        score = profile.total_score if profile is not None else None
        display_name = profile.display_name if profile is not None else None

    if score is None:
        with store.session_scope() as session:
            entry = session.get(LeaderboardCacheEntry, uid)
            if entry is None:
                return 'absent'
            session.delete(entry)
        current_app.logger.info(f"[leaderboard] player {uid} deleted, removed from cache")
        return 'removed'

    # Phase one: occupancy and the K-th place score
    with store.session_scope() as session:
        occupancy = session.query(func.count(LeaderboardCacheEntry.uid)).scalar() or 0
        threshold = 0
        if occupancy >= size:
            threshold = (
                session.query(LeaderboardCacheEntry.score)
                .order_by(LeaderboardCacheEntry.score.desc())
                .offset(size - 1)
                .limit(1)
                .scalar()
            ) or 0

        if score < threshold and occupancy >= size:
            entry = session.get(LeaderboardCacheEntry, uid)
            if entry is None:
                return 'absent'
            session.delete(entry)
            current_app.logger.info(f"[leaderboard] {uid} score={score} below cutoff {threshold}, removed")
            return 'dropped'

        entry = session.get(LeaderboardCacheEntry, uid)
        inserted = entry is None
        if inserted:
            entry = LeaderboardCacheEntry(uid=uid)
            session.add(entry)
        entry.score = score
        entry.display_name = display_name
        entry.updated_at = time.time()

    current_app.logger.info(f"[leaderboard] cache updated uid={uid} score={score}")

    # Phase two: trim the globally lowest entry if this insert overflowed
    if inserted and occupancy + 1 > size:
        with store.session_scope() as session:
            lowest = (
                session.query(LeaderboardCacheEntry)
                .order_by(LeaderboardCacheEntry.score.asc(), LeaderboardCacheEntry.updated_at.asc())
                .first()
            )
            # A stale threshold can leave the newcomer lowest; the cache then stays above K
            if lowest is not None and lowest.uid != uid:
                current_app.logger.info(f"[leaderboard] pruned lowest entry {lowest.uid} (score: {lowest.score})")
                session.delete(lowest)
    return 'upserted'


def top_cached(limit: int = PUSH_SIZE, store=None):
    store = _store(store)
    with store.session_scope() as session:
        rows = (
            session.query(LeaderboardCacheEntry)
            .order_by(LeaderboardCacheEntry.score.desc(), LeaderboardCacheEntry.uid.asc())
            .limit(limit)
            .all()
        )
        return [dict(rank=i + 1, **row.to_dict()) for i, row in enumerate(rows)]


def rebuild_cache(store=None) -> int:
    """Recompute the cache from a full scan of player profiles."""
    store = _store(store)
    size = _cache_size()
    now = time.time()
    with store.session_scope() as session:
        session.query(LeaderboardCacheEntry).delete()
        top = (
            session.query(PlayerProfile)
            .order_by(PlayerProfile.total_score.desc(), PlayerProfile.uid.asc())
            .limit(size)
            .all()
        )
        for profile in top:
            session.add(LeaderboardCacheEntry(
                uid=profile.uid,
                score=profile.total_score,
                display_name=profile.display_name,
                updated_at=now,
            ))
    current_app.logger.info(f"[leaderboard] cache rebuilt with {len(top)} entries")
    return len(top)


def schedule_cache_refresh(app, uid: str) -> None:
    """Refresh uid's cache entry after a profile write, without blocking it.

    - Runs inline in TESTING mode unless ENABLE_BACKGROUND_TASKS_IN_TESTS
    - Otherwise runs as a Socket.IO background task
    - Failures are logged and never reach the profile write
    - Pushes the cached top entries to the 'leaderboard' room afterwards
    """
    from puzzle_authority import socketio

    def _worker(player_uid: str):
        with app.app_context():
            try:
                refresh_cache_entry(player_uid)
                entries = top_cached()
            except Exception:
                app.logger.exception(f"[leaderboard] cache refresh failed for uid={player_uid}")
                return
            socketio.emit('leaderboard_update', {'entries': entries}, to='leaderboard', namespace='/ws')

    if app.config.get('TESTING') and not app.config.get('ENABLE_BACKGROUND_TASKS_IN_TESTS'):
        _worker(uid)
    else:
        socketio.start_background_task(_worker, uid)
