"""
api/routes.py — FastAPI endpoints
"""

import logging

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field, field_validator

import api.session as session
from exam_prep_cbt.models.question_model import OPTION_KEYS, TestDefinition
from exam_prep_cbt.models.result_model import TestResultSummary
from exam_prep_cbt.services.attempt import TestAttempt
from exam_prep_cbt.services.errors import DefinitionNotFound, EmptyQuestionSet, PersistenceFailure
from exam_prep_cbt.services.report_store import JsonReportSink, ReportKey, check_component
from exam_prep_cbt.services.test_repository import TestRepository

logger = logging.getLogger(__name__)

router = APIRouter()

SAVE_FAILED_MESSAGE = "Could not save your test. Please retry."


# ── Pydantic request bodies ──────────────────────────────────────────────────

class StartAttemptBody(BaseModel):
    user_id: str = Field(..., min_length=1)

    @field_validator("user_id")
    @classmethod
    def user_id_usable_in_paths(cls, v: str) -> str:
        return check_component(v, "user id")


class IndexBody(BaseModel):
    index: int


class SelectOptionBody(BaseModel):
    index: int
    option_key: str


# ── Helpers ──────────────────────────────────────────────────────────────────

def _repository(request: Request) -> TestRepository:
    return request.app.state.repository


def _sink(request: Request) -> JsonReportSink:
    return request.app.state.report_sink


def _load_definition(request: Request, test_code: str) -> TestDefinition:
    try:
        return _repository(request).get(test_code)
    except DefinitionNotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except EmptyQuestionSet as e:
        raise HTTPException(status_code=422, detail=str(e))


def _current_attempt(request: Request) -> TestAttempt:
    attempt = session.get(request.state.session_id, "attempt")
    if attempt is None:
        raise HTTPException(status_code=404, detail="No test in progress.")
    return attempt


def _editable_attempt(request: Request) -> TestAttempt:
    attempt = _current_attempt(request)
    if attempt.frozen:
        raise HTTPException(status_code=409, detail="The test has already been submitted.")
    return attempt


def _report_path(key: ReportKey) -> str:
    return f"/api/reports/{key.test_code}/{key.user_id}/{key.attempt_timestamp}"


def _report_dict(summary: TestResultSummary, detailed: bool = True) -> dict:
    exclude = None if detailed else {"detailed_answers"}
    return summary.model_dump(mode="json", by_alias=True, exclude=exclude)


# ── Tests and instructions ───────────────────────────────────────────────────

@router.get("/api/tests")
async def list_tests(request: Request):
    return {"test_codes": _repository(request).available_codes()}


@router.get("/api/tests/{test_code}/instructions")
async def get_instructions(test_code: str, request: Request):
    definition = _load_definition(request, test_code)
    session.put(request.state.session_id, "pending_definition", definition)
    questions = definition.ordered_questions
    return {
        "test_code": definition.test_code,
        "name": definition.name,
        "test_type": definition.test_type,
        "subjects": definition.test_subject,
        "lesson": definition.lesson,
        "duration": definition.duration,
        "total_questions": len(questions),
        "marks_per_question": questions[0].marks,
        "total_marks": definition.total_marks,
        "option_keys": list(OPTION_KEYS),
    }


@router.post("/api/tests/{test_code}/start")
async def start_attempt(test_code: str, body: StartAttemptBody, request: Request):
    sid = request.state.session_id
    existing: TestAttempt = session.get(sid, "attempt")
    if existing is not None and not existing.submitted:
        # a frozen but unsaved attempt keeps its graded result for the retry
        detail = "A test is already in progress." if not existing.frozen else SAVE_FAILED_MESSAGE
        raise HTTPException(status_code=409, detail=detail)

    pending: TestDefinition = session.get(sid, "pending_definition")
    if pending is not None and pending.test_code == test_code:
        definition = pending
    else:
        definition = _load_definition(request, test_code)

    attempt = TestAttempt.begin(
        definition,
        body.user_id,
        _sink(request),
        tick_interval=request.app.state.tick_interval,
    )
    session.set_attempt(sid, attempt)
    return attempt.status()


# ── Attempt ──────────────────────────────────────────────────────────────────

@router.get("/api/attempt")
async def get_attempt(request: Request):
    return _current_attempt(request).status()


@router.get("/api/attempt/question/{index}")
async def get_question(index: int, request: Request):
    attempt = _current_attempt(request)
    question = attempt.question(index)
    if question is None:
        raise HTTPException(status_code=404, detail="Question not found.")
    state = attempt.machine.state
    return {
        "index": index,
        "total": state.question_count,
        "id": question.id,
        "question": question.question,
        "image_url": question.image_url,
        "options": [{"key": k, "text": t} for k, t in zip(OPTION_KEYS, question.options)],
        "marks": question.marks,
        "selected_option": state.answers[index],
        "status": state.statuses[index].value,
    }


@router.post("/api/attempt/select")
async def select_option(body: SelectOptionBody, request: Request):
    attempt = _editable_attempt(request)
    attempt.select_option(body.index, body.option_key)
    return attempt.status()


@router.post("/api/attempt/clear")
async def clear_response(body: IndexBody, request: Request):
    attempt = _editable_attempt(request)
    attempt.clear_response(body.index)
    return attempt.status()


@router.post("/api/attempt/mark")
async def toggle_mark_for_review(body: IndexBody, request: Request):
    attempt = _editable_attempt(request)
    attempt.toggle_mark_for_review(body.index)
    return attempt.status()


@router.post("/api/attempt/navigate")
async def navigate(body: IndexBody, request: Request):
    attempt = _editable_attempt(request)
    attempt.navigate_to(body.index)
    return attempt.status()


@router.post("/api/attempt/submit")
async def submit_attempt(request: Request):
    attempt = _current_attempt(request)
    try:
        summary = await attempt.submit(is_auto=False)
    except PersistenceFailure:
        raise HTTPException(status_code=503, detail=SAVE_FAILED_MESSAGE)
    if summary is None:
        raise HTTPException(status_code=409, detail="Submission already in progress.")

    key = attempt.report_key
    return {
        "ok": True,
        "auto_submitted": attempt.coordinator.auto_submitted,
        "result_path": _report_path(key),
        "summary": _report_dict(summary),
    }


@router.post("/api/reset")
async def reset_session(request: Request):
    session.reset(request.state.session_id)
    return {"ok": True}


# ── Reports ──────────────────────────────────────────────────────────────────

@router.get("/api/reports/{test_code}/{user_id}/{attempt_timestamp}")
async def get_report(test_code: str, user_id: str, attempt_timestamp: int, request: Request):
    try:
        summary = await _sink(request).get(ReportKey(test_code, user_id, attempt_timestamp))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if summary is None:
        raise HTTPException(status_code=404, detail="Report not found.")
    return _report_dict(summary)


@router.get("/api/reports/{user_id}")
async def list_user_reports(user_id: str, request: Request):
    try:
        reports = await _sink(request).list_for_user(user_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "reports": [
            {**_report_dict(r, detailed=False), "resultPath": _report_path(ReportKey.for_summary(r))}
            for r in reports
        ]
    }


@router.get("/api/tests/{test_code}/ranking")
async def get_ranking(test_code: str, request: Request):
    try:
        reports = await _sink(request).list_for_test(test_code)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "test_code": test_code,
        "ranking": [
            {"rank": rank, **_report_dict(r, detailed=False)}
            for rank, r in enumerate(reports, start=1)
        ],
    }
