"""
services/attempt.py

One candidate's run through one test, from dismissing the instructions to
a saved report. Owns the state machine, the countdown and the submission
coordinator; whoever drives the attempt (the HTTP session) just holds a
reference to it.
"""

import logging
from typing import Any, Callable, Dict, Optional

from exam_prep_cbt.models.question_model import TestDefinition, TestQuestion
from exam_prep_cbt.models.result_model import TestResultSummary
from exam_prep_cbt.models.session_state import SessionState, now_ms
from exam_prep_cbt.services.countdown import CountdownController, format_remaining
from exam_prep_cbt.services.errors import EmptyQuestionSet, PersistenceFailure
from exam_prep_cbt.services.exam_service import MarkingPolicy, full_marks_or_zero
from exam_prep_cbt.services.report_store import ReportKey, ReportSink
from exam_prep_cbt.services.session_machine import SessionStateMachine
from exam_prep_cbt.services.submission import SubmissionCoordinator

logger = logging.getLogger(__name__)


class TestAttempt:
    __test__ = False

    def __init__(
        self,
        definition: TestDefinition,
        user_id: str,
        sink: ReportSink,
        clock: Callable[[], int] = now_ms,
        tick_interval: float = 1.0,
        marking_policy: MarkingPolicy = full_marks_or_zero,
    ):
        if definition.question_count == 0:
            raise EmptyQuestionSet(definition.test_code)

        self.definition = definition
        self.user_id = user_id
        self.start_timestamp = clock()
        self.machine = SessionStateMachine(definition.question_count)
        self.countdown = CountdownController(self._auto_submit, clock=clock, interval=tick_interval)
        self.coordinator = SubmissionCoordinator(
            definition,
            self.machine,
            sink,
            user_id=user_id,
            start_timestamp=self.start_timestamp,
            clock=clock,
            marking_policy=marking_policy,
            on_freeze=self.countdown.cancel,
        )

    @classmethod
    def begin(cls, definition: TestDefinition, user_id: str, sink: ReportSink, **kwargs: Any) -> "TestAttempt":
        """Instructions dismissed: fix the start time and start the clock. Needs a running loop."""
        attempt = cls(definition, user_id, sink, **kwargs)
        attempt.countdown.start(attempt.start_timestamp, definition.duration_seconds)
        logger.info(
            f"attempt started: test={definition.test_code} user={user_id} "
            f"questions={definition.question_count} duration={definition.duration}m"
        )
        return attempt

    # ── Candidate actions ────────────────────────────────────────────────────

    def select_option(self, index: int, option_key: str) -> SessionState:
        return self.machine.select_option(index, option_key)

    def clear_response(self, index: int) -> SessionState:
        return self.machine.clear_response(index)

    def toggle_mark_for_review(self, index: int) -> SessionState:
        return self.machine.toggle_mark_for_review(index)

    def navigate_to(self, index: int) -> SessionState:
        return self.machine.navigate_to(index)

    async def submit(self, is_auto: bool = False) -> Optional[TestResultSummary]:
        return await self.coordinator.submit(is_auto=is_auto)

    async def _auto_submit(self) -> None:
        try:
            await self.coordinator.submit(is_auto=True)
        except PersistenceFailure:
            # kept on the coordinator as last_error; the candidate retries by hand
            logger.error(f"auto-submit of {self.report_key.filename} failed, waiting for manual retry")

    def close(self) -> None:
        """Stop the clock. Used when the driving session goes away."""
        self.countdown.cancel()

    # ── Read side ────────────────────────────────────────────────────────────

    @property
    def frozen(self) -> bool:
        return self.machine.frozen

    @property
    def submitted(self) -> bool:
        return self.coordinator.persisted

    @property
    def report_key(self) -> ReportKey:
        return self.coordinator.report_key

    def question(self, index: int) -> Optional[TestQuestion]:
        questions = self.definition.ordered_questions
        return questions[index] if 0 <= index < len(questions) else None

    def status(self) -> Dict[str, Any]:
        state = self.machine.state
        remaining = self.countdown.remaining()
        return {
            "test_code": self.definition.test_code,
            "test_name": self.definition.name,
            "user_id": self.user_id,
            "start_timestamp": self.start_timestamp,
            "current_index": state.current_index,
            "total": state.question_count,
            "answers": list(state.answers),
            "statuses": [s.value for s in state.statuses],
            "palette": self.machine.palette(),
            "remaining_seconds": remaining,
            "remaining_display": format_remaining(remaining),
            "timer_warning": self.countdown.is_warning(),
            "timer_state": self.countdown.state.value,
            "frozen": self.frozen,
            "submitting": self.coordinator.in_flight,
            "submitted": self.submitted,
            "auto_submitted": self.coordinator.auto_submitted,
            "last_error": self.coordinator.last_error,
        }
