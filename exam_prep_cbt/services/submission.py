"""
services/submission.py

Single entry point for both manual submission and timer expiry.

The in-flight flag and the freeze are set before the first await, so on
one event loop a timer expiry and a click landing in the same turn
produce exactly one scoring and save pass.
"""

import logging
from typing import Callable, Optional

from exam_prep_cbt.models.question_model import TestDefinition
from exam_prep_cbt.models.result_model import TestResultSummary
from exam_prep_cbt.models.session_state import TestSession, now_ms
from exam_prep_cbt.services.errors import PersistenceFailure
from exam_prep_cbt.services.exam_service import MarkingPolicy, full_marks_or_zero, score
from exam_prep_cbt.services.report_store import ReportKey, ReportSink
from exam_prep_cbt.services.session_machine import SessionStateMachine

logger = logging.getLogger(__name__)


class SubmissionCoordinator:
    """
    Freezes an attempt, grades it once and saves the report.

    After a failed save the attempt stays frozen and the graded summary is
    kept; calling submit() again retries the save with that same summary.
    """

    def __init__(
        self,
        definition: TestDefinition,
        machine: SessionStateMachine,
        sink: ReportSink,
        user_id: str,
        start_timestamp: int,
        clock: Callable[[], int] = now_ms,
        marking_policy: MarkingPolicy = full_marks_or_zero,
        on_freeze: Optional[Callable[[], None]] = None,
    ):
        self._definition = definition
        self._machine = machine
        self._sink = sink
        self._user_id = user_id
        self._start_timestamp = start_timestamp
        self._clock = clock
        self._marking_policy = marking_policy
        self._on_freeze = on_freeze

        self._in_flight = False
        self.persisted = False
        self.snapshot: Optional[TestSession] = None
        self.summary: Optional[TestResultSummary] = None
        self.auto_submitted: Optional[bool] = None
        self.last_error: Optional[str] = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def report_key(self) -> ReportKey:
        return ReportKey(self._definition.test_code, self._user_id, self._start_timestamp)

    async def submit(self, is_auto: bool = False) -> Optional[TestResultSummary]:
        """
        Submit the attempt.

        Returns:
            The saved summary. None when another submission is in flight.
            Once saved, later calls return the saved summary without writing.

        Raises:
            PersistenceFailure: the save failed; the call can be repeated.
        """
        if self._in_flight:
            logger.info(f"submit ignored (auto={is_auto}): submission already in flight")
            return None
        if self.persisted:
            logger.info(f"submit ignored (auto={is_auto}): attempt already saved")
            return self.summary

        self._in_flight = True
        try:
            if self.snapshot is None:
                self._freeze(is_auto)
            if self.summary is None:
                self.summary = score(self._definition, self.snapshot, self._marking_policy)
            await self._sink.put(self.report_key, self.summary)
        except PersistenceFailure as e:
            self.last_error = str(e)
            logger.error(f"attempt {self.report_key.filename} not saved: {e}")
            raise
        finally:
            self._in_flight = False

        self.persisted = True
        self.last_error = None
        logger.info(
            f"attempt saved: {self.report_key.filename} "
            f"score={self.summary.score}/{self.summary.total_marks} auto={self.auto_submitted}"
        )
        return self.summary

    def _freeze(self, is_auto: bool) -> None:
        self._machine.freeze()
        if self._on_freeze is not None:
            self._on_freeze()
        self.auto_submitted = is_auto
        question_ids = [q.id or f"q-{i}" for i, q in enumerate(self._definition.ordered_questions)]
        self.snapshot = TestSession(
            test_id=self._definition.test_code,
            user_id=self._user_id,
            start_timestamp=self._start_timestamp,
            end_timestamp=self._clock(),
            answers=self._machine.snapshot(question_ids),
        )
        logger.info(f"attempt frozen: {self.report_key.filename} auto={is_auto}")
