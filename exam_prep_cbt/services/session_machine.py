"""
services/session_machine.py

Question navigation and answer-sheet state machine.

All transitions go through the pure `reduce(state, event)` function; the
transition tables below are the only place statuses change.
SessionStateMachine just keeps the latest state for the owning attempt.

  select_option          MarkedForReview | AnsweredAndMarked -> AnsweredAndMarked
                         anything else                      -> Answered
  clear_response         AnsweredAndMarked -> MarkedForReview
                         anything else     -> Unanswered
  toggle_mark_for_review Answered -> AnsweredAndMarked -> Answered
                         MarkedForReview -> Unanswered
                         Unanswered | NotVisited -> MarkedForReview
  navigate_to            NotVisited -> Unanswered (left and destination)

Out-of-range indexes, unknown option keys and any event after Freeze leave
the state untouched.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Union

from exam_prep_cbt.models.question_model import OPTION_KEYS
from exam_prep_cbt.models.session_state import QuestionStatus, SessionState, UserAnswer

S = QuestionStatus


# ── Events ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Initialize:
    question_count: int


@dataclass(frozen=True)
class SelectOption:
    index: int
    option_key: str


@dataclass(frozen=True)
class ClearResponse:
    index: int


@dataclass(frozen=True)
class ToggleMarkForReview:
    index: int


@dataclass(frozen=True)
class NavigateTo:
    index: int


@dataclass(frozen=True)
class Freeze:
    pass


Event = Union[Initialize, SelectOption, ClearResponse, ToggleMarkForReview, NavigateTo, Freeze]


# ── Transition tables ────────────────────────────────────────────────────────

_ON_SELECT: Dict[QuestionStatus, QuestionStatus] = {
    S.NOT_VISITED: S.ANSWERED,
    S.UNANSWERED: S.ANSWERED,
    S.ANSWERED: S.ANSWERED,
    S.MARKED_FOR_REVIEW: S.ANSWERED_AND_MARKED,
    S.ANSWERED_AND_MARKED: S.ANSWERED_AND_MARKED,
}

_ON_CLEAR: Dict[QuestionStatus, QuestionStatus] = {
    S.NOT_VISITED: S.UNANSWERED,
    S.UNANSWERED: S.UNANSWERED,
    S.ANSWERED: S.UNANSWERED,
    S.MARKED_FOR_REVIEW: S.UNANSWERED,
    S.ANSWERED_AND_MARKED: S.MARKED_FOR_REVIEW,
}

_ON_TOGGLE_MARK: Dict[QuestionStatus, QuestionStatus] = {
    S.NOT_VISITED: S.MARKED_FOR_REVIEW,
    S.UNANSWERED: S.MARKED_FOR_REVIEW,
    S.ANSWERED: S.ANSWERED_AND_MARKED,
    S.MARKED_FOR_REVIEW: S.UNANSWERED,
    S.ANSWERED_AND_MARKED: S.ANSWERED,
}


# ── Reducer ──────────────────────────────────────────────────────────────────

def initial_state(question_count: int) -> SessionState:
    """All questions NotVisited, then the first one is visited."""
    state = SessionState(
        current_index=0,
        answers=(None,) * question_count,
        statuses=(S.NOT_VISITED,) * question_count,
    )
    if question_count:
        state = _with_status(state, 0, S.UNANSWERED)
    return state


def reduce(state: SessionState, event: Event) -> SessionState:
    """Apply one event. Returns `state` itself when the event is rejected."""
    if state.frozen:
        return state

    if isinstance(event, Initialize):
        return initial_state(event.question_count)

    if isinstance(event, Freeze):
        return state.model_copy(update={"frozen": True})

    if not _in_range(state, event.index):
        return state
    i = event.index

    if isinstance(event, SelectOption):
        if event.option_key not in OPTION_KEYS:
            return state
        state = _with_answer(state, i, event.option_key)
        return _with_status(state, i, _ON_SELECT[state.statuses[i]])

    if isinstance(event, ClearResponse):
        state = _with_answer(state, i, None)
        return _with_status(state, i, _ON_CLEAR[state.statuses[i]])

    if isinstance(event, ToggleMarkForReview):
        return _with_status(state, i, _ON_TOGGLE_MARK[state.statuses[i]])

    if isinstance(event, NavigateTo):
        left = state.current_index
        if state.statuses[left] is S.NOT_VISITED and state.answers[left] is None:
            state = _with_status(state, left, S.UNANSWERED)
        if state.statuses[i] is S.NOT_VISITED:
            state = _with_status(state, i, S.UNANSWERED)
        return state.model_copy(update={"current_index": i})

    raise TypeError(f"Unknown session event: {event!r}")


def _in_range(state: SessionState, index: int) -> bool:
    return 0 <= index < state.question_count


def _with_status(state: SessionState, index: int, status: QuestionStatus) -> SessionState:
    statuses = list(state.statuses)
    statuses[index] = status
    return state.model_copy(update={"statuses": tuple(statuses)})


def _with_answer(state: SessionState, index: int, key: Optional[str]) -> SessionState:
    answers = list(state.answers)
    answers[index] = key
    return state.model_copy(update={"answers": tuple(answers)})


# ── Stateful wrapper ─────────────────────────────────────────────────────────

class SessionStateMachine:
    """Holds the current SessionState of one attempt and applies events to it."""

    def __init__(self, question_count: int = 0):
        self._state = initial_state(question_count)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def frozen(self) -> bool:
        return self._state.frozen

    @property
    def current_index(self) -> int:
        return self._state.current_index

    def dispatch(self, event: Event) -> SessionState:
        self._state = reduce(self._state, event)
        return self._state

    def initialize(self, question_count: int) -> SessionState:
        return self.dispatch(Initialize(question_count))

    def select_option(self, index: int, option_key: str) -> SessionState:
        return self.dispatch(SelectOption(index, option_key))

    def clear_response(self, index: int) -> SessionState:
        return self.dispatch(ClearResponse(index))

    def toggle_mark_for_review(self, index: int) -> SessionState:
        return self.dispatch(ToggleMarkForReview(index))

    def navigate_to(self, index: int) -> SessionState:
        return self.dispatch(NavigateTo(index))

    def freeze(self) -> SessionState:
        return self.dispatch(Freeze())

    def palette(self) -> Dict[str, int]:
        """Number of questions in each status, for the navigation panel legend."""
        counts = Counter(self._state.statuses)
        return {status.value: counts.get(status, 0) for status in QuestionStatus}

    def snapshot(self, question_ids: Sequence[str]) -> List[UserAnswer]:
        """Answer sheet as UserAnswer rows, aligned with `question_ids`."""
        state = self._state
        return [
            UserAnswer(
                question_id=qid,
                selected_option=state.answers[i],
                status=state.statuses[i],
            )
            for i, qid in enumerate(question_ids)
        ]
