from dataclasses import dataclass, field
from typing import Any, Dict, Optional

PUZZLE_CATEGORIES = ('console', 'navigation', 'audio', 'visual', 'meta')


@dataclass(frozen=True)
class PuzzleResult:
    """A client-reported puzzle completion, after input validation."""
    puzzle_id: str
    solved: bool
    time_spent: float
    attempts: int
    hints_used: int
    score: float
    difficulty: int
    category: Optional[str] = None
    submission_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self):
        return {
            'puzzleId': self.puzzle_id,
            'solved': self.solved,
            'timeSpent': self.time_spent,
            'attempts': self.attempts,
            'hintsUsed': self.hints_used,
            'clientScore': self.score,
            'difficulty': self.difficulty,
            'category': self.category,
            'submissionId': self.submission_id,
            'metadata': dict(self.metadata),
        }


@dataclass(frozen=True)
class SubmissionOutcome:
    server_score: int
    duplicate: bool = False

    def to_response(self):
        payload = {
            'success': True,
            'serverScore': self.server_score,
            'antiCheatPassed': True,
        }
        if self.duplicate:
            payload['duplicate'] = True
        return payload
