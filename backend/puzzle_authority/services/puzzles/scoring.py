import math

MAX_SCORE_PER_PUZZLE = 200

BASE_EASY = 50
BASE_MEDIUM = 80
BASE_HARD = 120
HINT_PENALTY = 10
ATTEMPT_PENALTY = 5
TIME_BONUS_MAX = 50


def base_score_for_difficulty(difficulty: int) -> int:
    """Difficulties 1-2 are easy, 3 is medium, 4-5 are hard."""
    if difficulty <= 2:
        return BASE_EASY
    if difficulty == 3:
        return BASE_MEDIUM
    return BASE_HARD


def calculate_score(difficulty: int, time_spent: float, attempts: int, hints_used: int) -> int:
    """Server-authoritative score for one puzzle.

    base - hints*10 - (attempts-1)*5 + time bonus, clamped to [0, 200].
    The time bonus starts at 50 and loses a point every two seconds.
    """
    base = base_score_for_difficulty(difficulty)
    time_bonus = max(0, TIME_BONUS_MAX - math.floor(time_spent / 2))
    raw = (
        base
        - hints_used * HINT_PENALTY
        - max(0, attempts - 1) * ATTEMPT_PENALTY
        + time_bonus
    )
    return int(min(MAX_SCORE_PER_PUZZLE, max(0, raw)))
