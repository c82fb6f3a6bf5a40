import asyncio
import json
from typing import Dict, List, Optional

import pytest

from exam_prep_cbt.models.question_model import TestDefinition, TestQuestion
from exam_prep_cbt.models.result_model import TestResultSummary
from exam_prep_cbt.services.errors import PersistenceFailure
from exam_prep_cbt.services.report_store import ReportKey

START_MS = 1_700_000_000_000


class FakeClock:
    """Epoch-ms clock that only moves when told to."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


class MemoryReportSink:
    """ReportSink keeping reports in a dict and recording every put."""

    def __init__(self, fail_times: int = 0, delay: float = 0.0):
        self.fail_times = fail_times
        self.delay = delay
        self.puts: List[ReportKey] = []
        self.stored: Dict[ReportKey, str] = {}

    async def put(self, key: ReportKey, summary: TestResultSummary) -> None:
        self.puts.append(key)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_times > 0:
            self.fail_times -= 1
            raise PersistenceFailure("disk full")
        self.stored[key] = summary.to_json()

    async def get(self, key: ReportKey) -> Optional[TestResultSummary]:
        text = self.stored.get(key)
        return TestResultSummary.model_validate_json(text) if text else None


def make_question(index: int, answer: str = "A", marks: int = 4) -> TestQuestion:
    return TestQuestion(
        id=f"q{index}",
        question=f"Question {index}?",
        options=[f"opt {index}{k}" for k in "ABCD"],
        answer=answer,
        marks=marks,
        explanation=f"Because {answer}.",
    )


def make_definition(answers: str = "ABCDA", marks: int = 4, duration: int = 60, code: str = "CHEM01") -> TestDefinition:
    return TestDefinition(
        test_code=code,
        name="Chemical Bonding",
        duration=duration,
        test_subject=["Chemistry"],
        lesson="Chemical Bonding",
        questions=[make_question(i, a, marks) for i, a in enumerate(answers)],
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sink() -> MemoryReportSink:
    return MemoryReportSink()


@pytest.fixture
def definition() -> TestDefinition:
    return make_definition()


@pytest.fixture
def tests_dir(tmp_path):
    """A test_pages tree with one chapterwise, one full-length and one empty test."""
    root = tmp_path / "test_pages"
    (root / "chapterwise").mkdir(parents=True)
    (root / "full_length").mkdir(parents=True)

    chapterwise = {
        "test_code": "CHEM01",
        "name": "Chemical Bonding",
        "duration": 30,
        "test_subject": ["Chemistry"],
        "lesson": "Chemical Bonding",
        "questions": [
            {"question": "Bond angle of water?", "options": ["104.5", "109.5", "120", "180"],
             "answer": "OPTION A", "marks": 4},
            {"question": "Hybridisation of CH4?", "options": ["sp", "sp2", "sp3", "dsp2"],
             "answer": "Option C", "marks": 4},
            {"question": "Shape of BF3?", "options": ["linear", "trigonal planar", "bent", "tetrahedral"],
             "answer": "B", "marks": 4},
        ],
    }
    full_length = {
        "test_code": "JEE01",
        "name": "JEE Mock 1",
        "duration": 180,
        "testType": "full_length",
        "test_subject": ["Physics", "Chemistry", "Maths"],
        "physics": [{"question": "p1", "options": ["a", "b", "c", "d"], "answer": "A", "marks": 4}],
        "chemistry": [{"question": "c1", "options": ["a", "b", "c", "d"], "answer": "B", "marks": 4}],
        "maths": [{"question": "m1", "options": ["a", "b", "c", "d"], "answer": "C", "marks": 4}],
    }
    empty = {"test_code": "EMPTY1", "name": "Nothing here", "duration": 10, "questions": []}

    (root / "chapterwise" / "CHEM01.json").write_text(json.dumps(chapterwise), encoding="utf-8")
    (root / "full_length" / "JEE01.json").write_text(json.dumps(full_length), encoding="utf-8")
    (root / "chapterwise" / "EMPTY1.json").write_text(json.dumps(empty), encoding="utf-8")
    (root / "chapterwise" / "BROKEN.json").write_text("{not json", encoding="utf-8")
    return root
