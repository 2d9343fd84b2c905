"""Puzzle submission pipeline.

A submission moves through authentication, input validation, rate limiting
and anti-cheat before it is scored and persisted. Each gate either passes it
on or rejects it with an error naming the stage; nothing is written before
the rate gate, and a rejected submission never touches the player profile.
"""

import math
from dataclasses import replace
from enum import Enum

from flask import current_app

from puzzle_authority.errors import AntiCheatError, AuthError, RateLimitError, ValidationError
from .anticheat import run_checks, verify_score
from .audit import log_suspicious_activity
from .profiles import record_result
from .ratelimit import check_rate_limit
from .scoring import calculate_score
from .types import PUZZLE_CATEGORIES, PuzzleResult, SubmissionOutcome

MAX_SUBMISSION_ID_LENGTH = 128
# attempts and hintsUsed are stored in 32-bit integer columns
MAX_COUNTER = 2**31 - 1


class SubmissionStage(str, Enum):
    RECEIVED = 'received'
    AUTHENTICATED = 'authenticated'
    INPUT_VALIDATED = 'input_validated'
    RATE_CHECKED = 'rate_checked'
    ANTI_CHEAT_PASSED = 'anti_cheat_passed'
    SCORED = 'scored'
    PERSISTED = 'persisted'
    COMPLETE = 'complete'
    REJECTED = 'rejected'


def _number(value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        finite = math.isfinite(value)
    except OverflowError:
        # int too large to convert to float
        return None
    return value if finite else None


def _integer(value):
    value = _number(value)
    if value is None:
        return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        return int(value)
    return value


def _advance(uid, stage):
    current_app.logger.debug(f"[submit] uid={uid} stage={stage.value}")
    return stage


def _invalid(message):
    return ValidationError(message, stage=SubmissionStage.AUTHENTICATED)


def parse_submission(data) -> PuzzleResult:
    """Check every field of a raw submission; the first violation is raised."""
    if not isinstance(data, dict):
        raise _invalid("Request body must be an object.")

    puzzle_id = data.get('puzzleId')
    if not isinstance(puzzle_id, str) or not puzzle_id:
        raise _invalid("puzzleId must be a non-empty string.")

    solved = data.get('solved')
    if not isinstance(solved, bool):
        raise _invalid("solved must be a boolean.")

    time_spent = _number(data.get('timeSpent'))
    if time_spent is None or time_spent < 0:
        raise _invalid("timeSpent must be a number >= 0.")

    attempts = _integer(data.get('attempts'))
    if attempts is None or attempts < 1:
        raise _invalid("attempts must be an integer >= 1.")
    if attempts > MAX_COUNTER:
        raise _invalid(f"attempts must be an integer <= {MAX_COUNTER}.")

    hints_used = _integer(data.get('hintsUsed'))
    if hints_used is None or hints_used < 0:
        raise _invalid("hintsUsed must be an integer >= 0.")
    if hints_used > MAX_COUNTER:
        raise _invalid(f"hintsUsed must be an integer <= {MAX_COUNTER}.")

    score = _number(data.get('score'))
    if score is None:
        raise _invalid("score must be a number.")

    difficulty = _integer(data.get('difficulty'))
    if difficulty is None or not 1 <= difficulty <= 5:
        raise _invalid("difficulty must be an integer between 1 and 5.")

    category = data.get('category')
    if category is not None and category not in PUZZLE_CATEGORIES:
        raise _invalid(f"category must be one of: {', '.join(PUZZLE_CATEGORIES)}.")

    submission_id = data.get('submissionId')
    if submission_id is not None and (
        not isinstance(submission_id, str) or not submission_id or len(submission_id) > MAX_SUBMISSION_ID_LENGTH
    ):
        raise _invalid(f"submissionId must be a non-empty string of at most {MAX_SUBMISSION_ID_LENGTH} characters.")

    metadata = data.get('metadata')
    if metadata is not None and not isinstance(metadata, dict):
        raise _invalid("metadata must be an object.")

    return PuzzleResult(
        puzzle_id=puzzle_id,
        solved=solved,
        time_spent=float(time_spent),
        attempts=attempts,
        hints_used=hints_used,
        score=float(score),
        difficulty=difficulty,
        category=category,
        submission_id=submission_id,
        metadata=metadata or {},
    )


def validate_submission(user, data, now_ms: int = None) -> SubmissionOutcome:
    """Run one submission through every gate and award the server score.

    Raises AuthError, ValidationError, RateLimitError or AntiCheatError on
    rejection, and StorageConflictError if the store keeps conflicting.
    """
    if user is None or not getattr(user, 'is_authenticated', False):
        raise AuthError("You must be signed in to submit puzzle results.", stage=SubmissionStage.RECEIVED)
    uid = user.get_id()
    display_name = getattr(user, 'username', None) or 'Anonymous'
    _advance(uid, SubmissionStage.AUTHENTICATED)

    result = parse_submission(data)
    stage = _advance(uid, SubmissionStage.INPUT_VALIDATED)
    current_app.logger.info(f"[submit] received uid={uid} puzzle={result.puzzle_id}")

    if not check_rate_limit(uid, now_ms=now_ms):
        raise RateLimitError("Too many submissions. Please wait before trying again.", stage=stage)
    stage = _advance(uid, SubmissionStage.RATE_CHECKED)

    # The client's score is never trusted: the checks see the authoritative one.
    # SCORE_ABOVE_MAX and NEGATIVE_SCORE therefore only fire for direct run_checks callers.
    server_score = calculate_score(result.difficulty, result.time_spent, result.attempts, result.hints_used)
    report = run_checks(replace(result, score=server_score))
    if not report.passed:
        details = result.to_dict()
        details['flags'] = [flag.to_dict() for flag in report.flags]
        log_suspicious_activity(uid, "Anti-cheat check failed", details)
        raise AntiCheatError("Submission rejected by anti-cheat system.", flags=report.flags, stage=stage)
    _advance(uid, SubmissionStage.ANTI_CHEAT_PASSED)

    matched = verify_score(result.score, result.difficulty, result.time_spent, result.attempts, result.hints_used)
    if not matched:
        current_app.logger.info(
            f"[submit] uid={uid} puzzle={result.puzzle_id} client score {result.score} differs from server score {server_score}"
        )
    _advance(uid, SubmissionStage.SCORED)

    outcome = record_result(uid, display_name, result, server_score, client_score_matched=matched)
    _advance(uid, SubmissionStage.PERSISTED)

    current_app.logger.info(
        f"[submit] validated uid={uid} puzzle={result.puzzle_id} server_score={outcome.server_score} client_score={result.score}"
    )
    _advance(uid, SubmissionStage.COMPLETE)
    return outcome
