"""
models/question_model.py

Test definition models: the read-only question set a candidate attempts.
Pydantic v2.
"""

import re
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator, model_validator

OPTION_KEYS = ("A", "B", "C", "D")

SECTIONS = ("physics", "chemistry", "maths", "biology")

# "A", "Option A", "OPTION A", "option a." ...
_ANSWER_PATTERN = re.compile(r"^\s*(?:option\s+)?([A-D])\s*\.?\s*$", re.IGNORECASE)


class TestQuestion(BaseModel):
    """
    A single four-option MCQ.

    Stored definitions write the correct answer as "A", "Option A" or
    "OPTION A"; it is normalized to the bare key on load.
    """

    __test__ = False

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: Optional[str] = Field(
        None,
        description="Question id. Assigned as q-<index> by the definition when missing."
    )
    question: str = Field(
        "",
        description="Question text, or an image file name for image questions"
    )
    image_url: Optional[str] = Field(None, description="Image URL for image questions")
    options: List[str] = Field(..., description="Exactly four option texts, in A-D order")
    correct_option_key: str = Field(
        ...,
        alias="answer",
        description="Correct option key, one of A-D"
    )
    marks: PositiveInt = Field(1, description="Marks awarded for a correct answer")
    explanation: Optional[str] = Field(None, description="Explanation text or image path")

    @field_validator("options")
    @classmethod
    def validate_options_length(cls, v: List[str]) -> List[str]:
        if len(v) != len(OPTION_KEYS):
            raise ValueError(f"options must have exactly {len(OPTION_KEYS)} entries, got {len(v)}")
        return v

    @field_validator("correct_option_key", mode="before")
    @classmethod
    def normalize_answer(cls, v: object) -> str:
        match = _ANSWER_PATTERN.match(str(v or ""))
        if not match:
            raise ValueError(f"answer '{v}' is not one of {', '.join(OPTION_KEYS)}")
        return match.group(1).upper()

    @field_validator("marks", mode="before")
    @classmethod
    def default_missing_marks(cls, v: object) -> object:
        # stored definitions sometimes carry marks: null or 0
        return v or 1


class TestDefinition(BaseModel):
    """
    A test as stored on disk. Chapterwise tests carry a single `questions`
    list; full-length tests split questions into subject sections that are
    attempted in the order physics, chemistry, maths, biology.
    """

    __test__ = False

    model_config = ConfigDict(frozen=True)

    test_code: str = Field(..., min_length=1)
    name: str = ""
    duration: int = Field(..., ge=0, description="Test duration in minutes")
    test_type: Literal["chapterwise", "full_length"] = "chapterwise"
    test_subject: List[str] = Field(default_factory=list)
    lesson: Optional[str] = None
    questions: List[TestQuestion] = Field(default_factory=list)
    physics: List[TestQuestion] = Field(default_factory=list)
    chemistry: List[TestQuestion] = Field(default_factory=list)
    maths: List[TestQuestion] = Field(default_factory=list)
    biology: List[TestQuestion] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def normalize_raw_definition(cls, data: object) -> object:
        """
        Accepts the older `testType` / `testseriesType` spellings and gives
        every question without an id the id q-<position in attempt order>.
        """
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for legacy in ("testType", "testseriesType"):
            if legacy in data and "test_type" not in data:
                data["test_type"] = data.pop(legacy)

        sections = SECTIONS if data.get("test_type") == "full_length" else ("questions",)
        position = 0
        for section in sections:
            patched = []
            for q in data.get(section) or []:
                if isinstance(q, TestQuestion):
                    if not q.id:
                        q = q.model_copy(update={"id": f"q-{position}"})
                elif isinstance(q, dict) and not q.get("id"):
                    q = {**q, "id": f"q-{position}"}
                patched.append(q)
                position += 1
            data[section] = patched
        return data

    @property
    def ordered_questions(self) -> List[TestQuestion]:
        if self.test_type == "full_length":
            return [q for section in SECTIONS for q in getattr(self, section)]
        return list(self.questions)

    @property
    def question_count(self) -> int:
        return len(self.ordered_questions)

    @property
    def total_marks(self) -> int:
        return sum(q.marks for q in self.ordered_questions)

    @property
    def duration_seconds(self) -> int:
        return self.duration * 60
