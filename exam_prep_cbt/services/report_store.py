"""
services/report_store.py

Persistence of graded attempts.

Reports are addressed by (test_code, user_id, attempt_timestamp); the
result page rebuilds a TestResultSummary from those three values alone.
JsonReportSink stores one file per attempt:

    <base_dir>/<user_id>/<test_code>-<user_id>-<attempt_timestamp>.json

Writes go to a temp file first and are swapped in with os.replace, so a
retried put with the same key simply overwrites identical content.
"""

import asyncio
import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, List, NamedTuple, Optional, Protocol

from pydantic import ValidationError

from exam_prep_cbt.models.result_model import TestResultSummary
from exam_prep_cbt.services.errors import PersistenceFailure

logger = logging.getLogger(__name__)


class ReportKey(NamedTuple):
    test_code: str
    user_id: str
    attempt_timestamp: int

    @classmethod
    def for_summary(cls, summary: TestResultSummary) -> "ReportKey":
        return cls(summary.test_code, summary.user_id, summary.attempt_timestamp)

    @property
    def filename(self) -> str:
        return f"{self.test_code}-{self.user_id}-{self.attempt_timestamp}.json"


class ReportSink(Protocol):
    async def put(self, key: ReportKey, summary: TestResultSummary) -> None:
        """Store `summary` under `key`. Raises PersistenceFailure."""
        ...

    async def get(self, key: ReportKey) -> Optional[TestResultSummary]:
        ...


def check_component(value: str, what: str) -> str:
    if not value or value in (".", "..") or "/" in value or "\\" in value or "\x00" in value:
        raise ValueError(f"invalid {what}: {value!r}")
    return value


class JsonReportSink:
    """ReportSink writing one pretty-printed JSON file per attempt."""

    def __init__(self, base_dir: str):
        self.base_dir = Path(base_dir)

    def path_for(self, key: ReportKey) -> Path:
        check_component(key.test_code, "test code")
        check_component(key.user_id, "user id")
        return self.base_dir / key.user_id / key.filename

    async def put(self, key: ReportKey, summary: TestResultSummary) -> None:
        try:
            path = self.path_for(key)
        except ValueError as e:
            logger.error(f"report key rejected: {key} - {e}")
            raise PersistenceFailure(f"Could not save report {key.filename}: {e}") from e
        try:
            await asyncio.to_thread(_write_atomic, path, summary.to_json())
        except OSError as e:
            logger.error(f"report write failed: {path} - {e}")
            raise PersistenceFailure(f"Could not save report {key.filename}: {e}") from e
        logger.info(f"report saved: {path}")

    async def get(self, key: ReportKey) -> Optional[TestResultSummary]:
        path = self.path_for(key)
        return await asyncio.to_thread(_read_report, path)

    async def list_for_user(self, user_id: str) -> List[TestResultSummary]:
        """All readable reports of one user, newest attempt first."""
        user_dir = self.base_dir / check_component(user_id, "user id")
        marker = f"-{user_id}-"
        reports = await asyncio.to_thread(_read_dir, user_dir, lambda name: marker in name)
        reports.sort(key=lambda r: r.attempt_timestamp, reverse=True)
        return reports

    async def list_for_test(self, test_code: str) -> List[TestResultSummary]:
        """
        All readable reports of one test across users, ranked: highest score
        first, then shortest time taken, then earliest attempt.
        """
        check_component(test_code, "test code")

        def _scan() -> List[TestResultSummary]:
            if not self.base_dir.is_dir():
                return []
            found: List[TestResultSummary] = []
            for user_dir in sorted(self.base_dir.iterdir()):
                if user_dir.is_dir():
                    prefix = f"{test_code}-{user_dir.name}-"
                    found.extend(_read_dir(user_dir, lambda name: name.startswith(prefix)))
            return found

        reports = await asyncio.to_thread(_scan)
        reports.sort(key=lambda r: (-r.score, r.time_taken_minutes, r.attempt_timestamp))
        return reports


# ── File helpers (run in worker threads) ───────────────────────────────────────

def _write_atomic(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=".json")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def _read_report(path: Path) -> Optional[TestResultSummary]:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.warning(f"report not found: {path}")
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.error(f"unreadable report {path}: {e}")
        return None
    try:
        return TestResultSummary.model_validate_json(text)
    except ValidationError as e:
        logger.error(f"unreadable report {path}: {e}")
        return None


def _read_dir(directory: Path, wanted: Callable[[str], bool]) -> List[TestResultSummary]:
    if not directory.is_dir():
        return []
    reports: List[TestResultSummary] = []
    for path in sorted(directory.glob("*.json")):
        if path.name.startswith(".tmp-") or not wanted(path.name):
            continue
        report = _read_report(path)
        if report is not None:
            reports.append(report)
    return reports
