"""Anti-cheat heuristics for puzzle submissions.

Every rule is evaluated, so one submission can carry several flags for the
audit trail. Flags are structured values; human-readable text is produced
only when they are rendered for logs or the suspicious-activity record.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .scoring import MAX_SCORE_PER_PUZZLE, calculate_score
from .types import PuzzleResult

MIN_SOLVE_TIME_SECONDS = 3


class ViolationKind(str, Enum):
    TOO_FAST = 'too_fast'
    SCORE_ABOVE_MAX = 'score_above_max'
    NEGATIVE_SCORE = 'negative_score'
    NEGATIVE_TIME = 'negative_time'
    TOO_FEW_ATTEMPTS = 'too_few_attempts'
    NEGATIVE_HINTS = 'negative_hints'


@dataclass(frozen=True)
class Violation:
    kind: ViolationKind
    value: float
    limit: Optional[float] = None

    @property
    def message(self) -> str:
        if self.kind is ViolationKind.TOO_FAST:
            return f"Solve time {self.value}s is below minimum threshold of {self.limit}s"
        if self.kind is ViolationKind.SCORE_ABOVE_MAX:
            return f"Reported score {self.value} exceeds maximum allowed score of {self.limit}"
        if self.kind is ViolationKind.NEGATIVE_SCORE:
            return f"Reported score {self.value} is negative"
        if self.kind is ViolationKind.NEGATIVE_TIME:
            return f"Reported timeSpent {self.value} is negative"
        if self.kind is ViolationKind.TOO_FEW_ATTEMPTS:
            return f"Reported attempts {self.value} is below {self.limit}"
        return f"Reported hintsUsed {self.value} is negative"

    def to_dict(self):
        return {
            'kind': self.kind.value,
            'value': self.value,
            'limit': self.limit,
            'message': self.message,
        }


@dataclass(frozen=True)
class AntiCheatReport:
    passed: bool
    flags: List[Violation] = field(default_factory=list)

    @property
    def kinds(self) -> List[ViolationKind]:
        return [f.kind for f in self.flags]

    @property
    def messages(self) -> List[str]:
        return [f.message for f in self.flags]


def run_checks(result: PuzzleResult) -> AntiCheatReport:
    flags: List[Violation] = []

    # Impossibly fast solve
    if result.time_spent < MIN_SOLVE_TIME_SECONDS:
        flags.append(Violation(ViolationKind.TOO_FAST, result.time_spent, MIN_SOLVE_TIME_SECONDS))

    if result.score > MAX_SCORE_PER_PUZZLE:
        flags.append(Violation(ViolationKind.SCORE_ABOVE_MAX, result.score, MAX_SCORE_PER_PUZZLE))

    # Values that should never appear at all
    if result.score < 0:
        flags.append(Violation(ViolationKind.NEGATIVE_SCORE, result.score, 0))
    if result.time_spent < 0:
        flags.append(Violation(ViolationKind.NEGATIVE_TIME, result.time_spent, 0))
    if result.attempts < 1:
        flags.append(Violation(ViolationKind.TOO_FEW_ATTEMPTS, result.attempts, 1))
    if result.hints_used < 0:
        flags.append(Violation(ViolationKind.NEGATIVE_HINTS, result.hints_used, 0))

    return AntiCheatReport(passed=not flags, flags=flags)


def verify_score(reported: float, difficulty: int, time_spent: float, attempts: int, hints_used: int) -> bool:
    """Whether the client-reported score equals the server recomputation.

    Diagnostic only: accepted submissions are always awarded the server score.
    """
    return reported == calculate_score(difficulty, time_spent, attempts, hints_used)
