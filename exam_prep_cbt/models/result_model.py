"""
models/result_model.py

Graded result of one attempt. Serialized with camelCase keys, the layout
the review and ranking pages read from stored reports.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from exam_prep_cbt.models.session_state import QuestionStatus

_REPORT_CONFIG = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)


class DetailedAnswer(BaseModel):
    """One row of the answer review: the question, what was picked, what was right."""

    model_config = _REPORT_CONFIG

    question_index: int
    question_id: str
    question_text: Optional[str] = None
    question_image_url: Optional[str] = None
    options: List[str] = Field(default_factory=list)
    user_answer: Optional[str] = None
    correct_answer: str
    is_correct: bool
    status: QuestionStatus
    marks: int
    explanation: Optional[str] = None


class TestResultSummary(BaseModel):
    """
    Immutable once created.

    totalMarks is the sum of all question marks; score is what the marking
    policy awarded; percentage is 0 when totalMarks is 0.
    """

    __test__ = False

    model_config = _REPORT_CONFIG

    test_code: str
    user_id: str
    test_name: str = ""
    attempt_timestamp: int
    submitted_at: int
    duration: int = Field(0, description="Test duration in minutes")
    total_questions: int
    attempted: int
    correct: int
    incorrect: int
    unanswered: int
    score: int
    total_marks: int
    percentage: float
    time_taken_minutes: int
    detailed_answers: List[DetailedAnswer] = Field(default_factory=list)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, indent=2)
