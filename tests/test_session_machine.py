import random

import pytest

from exam_prep_cbt.models.session_state import ANSWERED_STATUSES, QuestionStatus
from exam_prep_cbt.services.session_machine import (
    ClearResponse, Freeze, NavigateTo, SelectOption, SessionStateMachine,
    ToggleMarkForReview, initial_state, reduce,
)

S = QuestionStatus


def _machine_with_status(status: QuestionStatus) -> SessionStateMachine:
    """Machine of 3 questions whose question 1 is in `status`, current index 1."""
    m = SessionStateMachine(3)
    if status is S.NOT_VISITED:
        return m
    m.navigate_to(1)
    if status is S.ANSWERED:
        m.select_option(1, "B")
    elif status is S.MARKED_FOR_REVIEW:
        m.toggle_mark_for_review(1)
    elif status is S.ANSWERED_AND_MARKED:
        m.select_option(1, "B")
        m.toggle_mark_for_review(1)
    assert m.state.statuses[1] is status
    return m


def test_initialize_visits_first_question():
    state = initial_state(4)
    assert state.current_index == 0
    assert state.statuses == (S.UNANSWERED, S.NOT_VISITED, S.NOT_VISITED, S.NOT_VISITED)
    assert state.answers == (None,) * 4
    assert not state.frozen


def test_initialize_event_resets_state():
    m = SessionStateMachine(2)
    m.select_option(0, "A")
    m.initialize(3)
    assert m.state == initial_state(3)


@pytest.mark.parametrize("before, after", [
    (S.NOT_VISITED, S.ANSWERED),
    (S.UNANSWERED, S.ANSWERED),
    (S.ANSWERED, S.ANSWERED),
    (S.MARKED_FOR_REVIEW, S.ANSWERED_AND_MARKED),
    (S.ANSWERED_AND_MARKED, S.ANSWERED_AND_MARKED),
])
def test_select_option_transitions(before, after):
    m = _machine_with_status(before)
    m.select_option(1, "D")
    assert m.state.statuses[1] is after
    assert m.state.answers[1] == "D"


@pytest.mark.parametrize("before, after", [
    (S.NOT_VISITED, S.UNANSWERED),
    (S.UNANSWERED, S.UNANSWERED),
    (S.ANSWERED, S.UNANSWERED),
    (S.MARKED_FOR_REVIEW, S.UNANSWERED),
    (S.ANSWERED_AND_MARKED, S.MARKED_FOR_REVIEW),
])
def test_clear_response_transitions(before, after):
    m = _machine_with_status(before)
    m.clear_response(1)
    assert m.state.statuses[1] is after
    assert m.state.answers[1] is None


@pytest.mark.parametrize("before, after", [
    (S.NOT_VISITED, S.MARKED_FOR_REVIEW),
    (S.UNANSWERED, S.MARKED_FOR_REVIEW),
    (S.ANSWERED, S.ANSWERED_AND_MARKED),
    (S.MARKED_FOR_REVIEW, S.UNANSWERED),
    (S.ANSWERED_AND_MARKED, S.ANSWERED),
])
def test_toggle_mark_for_review_transitions(before, after):
    m = _machine_with_status(before)
    answer_before = m.state.answers[1]
    m.toggle_mark_for_review(1)
    assert m.state.statuses[1] is after
    assert m.state.answers[1] == answer_before


def test_mark_then_answer_status_sequence():
    m = SessionStateMachine(5)
    seen = [m.state.statuses[2]]
    m.navigate_to(2)
    seen.append(m.state.statuses[2])
    m.toggle_mark_for_review(2)
    seen.append(m.state.statuses[2])
    m.select_option(2, "C")
    seen.append(m.state.statuses[2])
    assert seen == [S.NOT_VISITED, S.UNANSWERED, S.MARKED_FOR_REVIEW, S.ANSWERED_AND_MARKED]


def test_navigate_promotes_destination_and_keeps_answered_status():
    m = SessionStateMachine(3)
    m.select_option(0, "A")
    m.navigate_to(2)
    assert m.current_index == 2
    assert m.state.statuses == (S.ANSWERED, S.NOT_VISITED, S.UNANSWERED)


def test_navigate_promotes_left_question_left_not_visited():
    # only reachable by building the state by hand
    state = initial_state(2).model_copy(update={"statuses": (S.NOT_VISITED, S.NOT_VISITED)})
    state = reduce(state, NavigateTo(1))
    assert state.statuses == (S.UNANSWERED, S.UNANSWERED)


@pytest.mark.parametrize("index", [-1, 3, 99])
def test_out_of_range_events_are_ignored(index):
    m = SessionStateMachine(3)
    before = m.state
    for event in (SelectOption(index, "A"), ClearResponse(index), ToggleMarkForReview(index), NavigateTo(index)):
        assert m.dispatch(event) is before


@pytest.mark.parametrize("key", ["E", "a", "", "Option A"])
def test_unknown_option_key_is_ignored(key):
    m = SessionStateMachine(2)
    before = m.state
    assert m.select_option(0, key) is before


def test_frozen_session_rejects_everything():
    m = SessionStateMachine(3)
    m.select_option(0, "B")
    frozen = m.freeze()
    assert frozen.frozen
    for event in (SelectOption(1, "A"), ClearResponse(0), ToggleMarkForReview(0), NavigateTo(2), Freeze()):
        assert m.dispatch(event) is frozen
    m.initialize(5)
    assert m.state is frozen


def test_palette_counts_every_status():
    m = SessionStateMachine(4)
    m.select_option(0, "A")
    m.navigate_to(1)
    m.toggle_mark_for_review(1)
    assert m.palette() == {
        "NotVisited": 2,
        "Unanswered": 0,
        "Answered": 1,
        "MarkedForReview": 1,
        "AnsweredAndMarked": 0,
    }


def test_snapshot_lines_up_with_question_ids():
    m = SessionStateMachine(2)
    m.select_option(0, "C")
    rows = m.snapshot(["x", "y"])
    assert [(r.question_id, r.selected_option, r.status) for r in rows] == [
        ("x", "C", S.ANSWERED),
        ("y", None, S.NOT_VISITED),
    ]


def _random_event(rng: random.Random, count: int):
    index = rng.randint(-1, count)  # includes out-of-range values
    kind = rng.choice(["select", "clear", "mark", "navigate"])
    if kind == "select":
        return SelectOption(index, rng.choice("ABCDX"))
    if kind == "clear":
        return ClearResponse(index)
    if kind == "mark":
        return ToggleMarkForReview(index)
    return NavigateTo(index)


@pytest.mark.parametrize("seed", range(25))
def test_random_event_sequences_stay_consistent(seed):
    rng = random.Random(seed)
    count = rng.randint(1, 8)
    state = initial_state(count)
    visited = {0}

    for _ in range(200):
        event = _random_event(rng, count)
        state = reduce(state, event)
        visited.add(state.current_index)

        assert 0 <= state.current_index < count
        assert len(state.statuses) == len(state.answers) == count
        for i, (status, answer) in enumerate(zip(state.statuses, state.answers)):
            assert isinstance(status, QuestionStatus)
            assert (status in ANSWERED_STATUSES) == (answer is not None)
            if i in visited:
                assert status is not S.NOT_VISITED
