"""
models/session_state.py

State of one candidate attempt: question statuses, the answer sheet, the
attempt clock and the frozen submission snapshot.
Pydantic BaseModel based. No UI code.
"""

import time
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


class QuestionStatus(str, Enum):
    NOT_VISITED = "NotVisited"
    UNANSWERED = "Unanswered"
    ANSWERED = "Answered"
    MARKED_FOR_REVIEW = "MarkedForReview"
    ANSWERED_AND_MARKED = "AnsweredAndMarked"


ANSWERED_STATUSES = frozenset({QuestionStatus.ANSWERED, QuestionStatus.ANSWERED_AND_MARKED})
MARKED_STATUSES = frozenset({QuestionStatus.MARKED_FOR_REVIEW, QuestionStatus.ANSWERED_AND_MARKED})


class SessionState(BaseModel):
    """
    Everything the candidate can change during an attempt.

    Attributes:
        current_index: index of the question on screen (0-based).
        answers:       selected option key per question index, None when blank.
        statuses:      QuestionStatus per question index.
        frozen:        True once submission has begun. No further changes.
    """

    model_config = ConfigDict(frozen=True)

    current_index: int = Field(default=0, ge=0)
    answers: Tuple[Optional[str], ...] = ()
    statuses: Tuple[QuestionStatus, ...] = ()
    frozen: bool = False

    @property
    def question_count(self) -> int:
        return len(self.statuses)


class SessionClock(BaseModel):
    """Client-observed attempt clock. Timestamps are epoch milliseconds."""

    model_config = ConfigDict(frozen=True)

    start_timestamp: int
    duration_seconds: int = Field(..., ge=0)

    def remaining(self, now: int) -> int:
        """Whole seconds left at `now`, floored at 0."""
        elapsed_seconds = max(0, now - self.start_timestamp) // 1000
        return max(0, self.duration_seconds - elapsed_seconds)


class UserAnswer(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_id: str
    selected_option: Optional[str] = None
    status: QuestionStatus = QuestionStatus.NOT_VISITED


class TestSession(BaseModel):
    """
    Immutable snapshot of an attempt, taken when submission begins.

    Attributes:
        test_id:         test code of the attempted test.
        user_id:         candidate id (supplied by the auth layer).
        start_timestamp: when the instructions were dismissed (epoch ms).
        end_timestamp:   when submission began (epoch ms).
        answers:         one UserAnswer per question, in attempt order.
    """

    __test__ = False

    model_config = ConfigDict(frozen=True)

    test_id: str
    user_id: str
    start_timestamp: int
    end_timestamp: Optional[int] = None
    answers: List[UserAnswer] = Field(default_factory=list)
