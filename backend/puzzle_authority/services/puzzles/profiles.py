import json
import time

from flask import current_app

from puzzle_authority.models import CategoryScore, PlayerProfile, PuzzleSubmission
from puzzle_authority.services.leaderboard.cache import schedule_cache_refresh
from .types import PuzzleResult, SubmissionOutcome


def _profiles():
    from puzzle_authority import store
    return store.repository(PlayerProfile)


def apply_result(tx, uid: str, display_name: str, result: PuzzleResult, server_score: int,
                 now: float, client_score_matched: bool = False) -> SubmissionOutcome:
    """Transaction body: record the submission and fold it into the profile.

    tx.current is the player's profile row (or None). Safe to call again on
    retry; everything it adds lives in the attempt's session.
    """
    session = tx.session
    if result.submission_id:
        prior = session.query(PuzzleSubmission).filter_by(uid=uid, submission_id=result.submission_id).first()
        if prior is not None:
            return SubmissionOutcome(server_score=prior.server_score, duplicate=True)

    session.add(PuzzleSubmission(
        uid=uid,
        submission_id=result.submission_id,
        puzzle_id=result.puzzle_id,
        category=result.category,
        solved=result.solved,
        time_spent=result.time_spent,
        attempts=result.attempts,
        hints_used=result.hints_used,
        difficulty=result.difficulty,
        client_score=result.score,
        server_score=server_score,
        anti_cheat_passed=True,
        client_score_matched=client_score_matched,
        extra=json.dumps(result.metadata) if result.metadata else None,
        created_at=now,
    ))

    profile = tx.current
    if profile is None:
        streak = 1 if result.solved else 0
        tx.create(
            uid=uid,
            display_name=display_name,
            total_score=server_score,
            puzzles_solved=streak,
            current_streak=streak,
            best_streak=streak,
            created_at=now,
            last_solved_at=now if result.solved else None,
        )
    else:
        new_streak = profile.current_streak + 1 if result.solved else 0
        profile.display_name = display_name
        profile.total_score += server_score
        if result.solved:
            profile.puzzles_solved += 1
            profile.last_solved_at = now
        profile.current_streak = new_streak
        profile.best_streak = max(profile.best_streak, new_streak)

    if result.category:
        row = session.get(CategoryScore, (uid, result.category))
        if row is None:
            session.add(CategoryScore(
                uid=uid,
                category=result.category,
                display_name=display_name,
                total_score=server_score,
                puzzles_solved=1 if result.solved else 0,
            ))
        else:
            row.display_name = display_name
            row.total_score += server_score
            if result.solved:
                row.puzzles_solved += 1

    return SubmissionOutcome(server_score=server_score)


def record_result(uid: str, display_name: str, result: PuzzleResult, server_score: int,
                  client_score_matched: bool = False, now: float = None, profiles=None) -> SubmissionOutcome:
    """Persist an accepted submission and update the player's aggregates atomically."""
    now = time.time() if now is None else now
    profiles = profiles or _profiles()
    outcome = profiles.run_transaction(
        uid,
        lambda tx: apply_result(tx, uid, display_name, result, server_score, now, client_score_matched),
    )
    if outcome.duplicate:
        current_app.logger.info(f"[submit] uid={uid} duplicate submission_id={result.submission_id}; nothing awarded")
        return outcome
    schedule_cache_refresh(current_app._get_current_object(), uid)
    return outcome


def delete_profile(uid: str, profiles=None) -> bool:
    """Administrative removal of a player's aggregates."""
    profiles = profiles or _profiles()

    def remove(tx):
        if tx.current is None:
            return False
        tx.session.query(CategoryScore).filter_by(uid=uid).delete()
        tx.delete()
        return True

    existed = profiles.run_transaction(uid, remove)
    if existed:
        current_app.logger.info(f"[profile] uid={uid} deleted")
        schedule_cache_refresh(current_app._get_current_object(), uid)
    return existed
