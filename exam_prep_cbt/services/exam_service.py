"""
services/exam_service.py

Grading of a submitted attempt.
Pure functions: no I/O and no global state.
"""

from typing import Callable, List, Optional, Sequence

from exam_prep_cbt.models.question_model import TestDefinition, TestQuestion
from exam_prep_cbt.models.result_model import DetailedAnswer, TestResultSummary
from exam_prep_cbt.models.session_state import QuestionStatus, TestSession, UserAnswer

# (question, is_correct, attempted) -> marks awarded
MarkingPolicy = Callable[[TestQuestion, bool, bool], int]


def full_marks_or_zero(question: TestQuestion, is_correct: bool, attempted: bool) -> int:
    """Default marking policy: the question's marks when correct, nothing otherwise."""
    return question.marks if is_correct else 0


def time_taken_minutes(start_timestamp: int, end_timestamp: int) -> int:
    """Whole minutes between two epoch-ms timestamps, halves rounded up, never negative."""
    elapsed_ms = max(0, end_timestamp - start_timestamp)
    return (elapsed_ms + 30_000) // 60_000


def score(
    definition: TestDefinition,
    session: TestSession,
    marking_policy: MarkingPolicy = full_marks_or_zero,
) -> TestResultSummary:
    """
    Grades a frozen TestSession against its TestDefinition.

    Answer rows are matched to questions by position. A question without a
    matching row counts as unanswered.

    Args:
        definition:     the test that was attempted.
        session:        the snapshot taken when submission began.
        marking_policy: marks awarded per question (default: full marks or zero).

    Returns:
        TestResultSummary. The same inputs always produce an identical summary,
        so a failed save can be retried with a recomputed result.
    """
    questions = definition.ordered_questions
    end_timestamp = session.end_timestamp if session.end_timestamp is not None else session.start_timestamp

    detailed: List[DetailedAnswer] = []
    attempted = correct = awarded = 0

    for index, question in enumerate(questions):
        answer = _answer_at(session.answers, index)
        selected = answer.selected_option if answer else None
        is_attempted = selected is not None
        is_correct = is_attempted and selected == question.correct_option_key

        attempted += is_attempted
        correct += is_correct
        awarded += marking_policy(question, is_correct, is_attempted)

        detailed.append(
            DetailedAnswer(
                question_index=index,
                question_id=question.id or f"q-{index}",
                question_text=question.question or None,
                question_image_url=question.image_url,
                options=list(question.options),
                user_answer=selected,
                correct_answer=question.correct_option_key,
                is_correct=is_correct,
                status=answer.status if answer else QuestionStatus.NOT_VISITED,
                marks=question.marks,
                explanation=question.explanation,
            )
        )

    total_questions = len(questions)
    total_marks = sum(q.marks for q in questions)

    return TestResultSummary(
        test_code=session.test_id,
        user_id=session.user_id,
        test_name=definition.name,
        attempt_timestamp=session.start_timestamp,
        submitted_at=end_timestamp,
        duration=definition.duration,
        total_questions=total_questions,
        attempted=attempted,
        correct=correct,
        incorrect=attempted - correct,
        unanswered=total_questions - attempted,
        score=awarded,
        total_marks=total_marks,
        percentage=(100 * awarded / total_marks) if total_marks else 0.0,
        time_taken_minutes=time_taken_minutes(session.start_timestamp, end_timestamp),
        detailed_answers=detailed,
    )


def _answer_at(answers: Sequence[UserAnswer], index: int) -> Optional[UserAnswer]:
    return answers[index] if index < len(answers) else None
