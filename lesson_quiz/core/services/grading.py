"""Grading, statistics and display numbering for a quiz session.

The unit counted everywhere is the *item*: each gap of a gap question is
one item, every other question is one item. Items are numbered in
question order, which is what lets a three-gap question show up as
"Questions 4-6 of 12".

Results are computed only from canonical answers and question data, never
from display positions, so recomputing over the same inputs always yields
the same result whatever order the options were shown in.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import Enum
import logging

from lesson_quiz.constants.quiz_constants import PASS_REQUIREMENT_MESSAGE, PASS_THRESHOLD
from lesson_quiz.core.answers import (
    AnswerStatus,
    canonical_gap_answers,
    evaluate,
    gap_count,
    gap_results,
    normalize_text,
)
from lesson_quiz.core.models import Answer, GapAnswer, ManualGradeRecord, Question
from lesson_quiz.core.services.quiz_session import QuizSession

logger = logging.getLogger(__name__)


class SessionStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    PENDING_REVIEW = "pending_review"


@dataclass(frozen=True, slots=True)
class NumberRange:
    """Item numbers (1-based, inclusive) covered by one question."""

    start: int
    end: int

    @property
    def count(self) -> int:
        return max(0, self.end - self.start + 1)

    def describe(self, total: int) -> str:
        if self.count == 0:
            return ""
        if self.count == 1:
            return f"Question {self.start} of {total}"
        return f"Questions {self.start}–{self.end} of {total}"


def item_count(question: Question) -> int:
    """Gap questions contribute one item per gap, all others one item."""
    return gap_count(question) if question.has_gaps else 1


def total_items(questions: Iterable[Question]) -> int:
    return sum(item_count(q) for q in questions)


def display_numbering(questions: Iterable[Question]) -> tuple[NumberRange, ...]:
    ranges: list[NumberRange] = []
    running = 0
    for question in questions:
        count = item_count(question)
        ranges.append(NumberRange(start=running + 1, end=running + count))
        running += count
    return tuple(ranges)


@dataclass(frozen=True, slots=True)
class GapStatistics:
    total_gaps: int = 0
    correct_gaps: int = 0
    regular_questions: int = 0
    correct_regular: int = 0
    graded_manual: int = 0
    manual_credit: float = 0.0
    pending_manual: int = 0

    @property
    def total_items(self) -> int:
        return self.total_gaps + self.regular_questions + self.graded_manual

    @property
    def correct_items(self) -> float:
        return self.correct_gaps + self.correct_regular + self.manual_credit


@dataclass(frozen=True, slots=True)
class ItemResult:
    question_id: str
    number: int
    status: AnswerStatus
    gap_index: int | None = None
    expected: str | None = None


@dataclass(frozen=True, slots=True)
class GradingResult:
    """Derived grading snapshot; recomputed on every reveal."""

    items: tuple[ItemResult, ...]
    statistics: GapStatistics
    score: float
    passed: bool
    status: SessionStatus
    feedback: dict[str, str]

    @property
    def score_percentage(self) -> float:
        return round(self.score * 100, 2)

    def items_for(self, question_id: str) -> tuple[ItemResult, ...]:
        return tuple(item for item in self.items if item.question_id == question_id)


def _gap_item_status(correct: bool, value: str) -> AnswerStatus:
    if correct:
        return AnswerStatus.CORRECT
    return AnswerStatus.INCORRECT if normalize_text(value) else AnswerStatus.UNANSWERED


def grade(
    questions: Iterable[Question],
    answers: Mapping[str, Answer],
    manual_records: Mapping[str, ManualGradeRecord] | None = None,
    threshold: float = PASS_THRESHOLD,
) -> GradingResult:
    """Grade every question and aggregate the item statistics."""
    manual_records = manual_records or {}
    items: list[ItemResult] = []
    feedback: dict[str, str] = {}
    total_gaps = correct_gaps = 0
    regular = correct_regular = 0
    graded_manual = pending_manual = 0
    manual_credit = 0.0

    numbering = 0
    for question in questions:
        answer = answers.get(question.id)
        if question.has_gaps:
            values = answer.values if isinstance(answer, GapAnswer) else ()
            expected = canonical_gap_answers(question)
            for gap_index, correct in enumerate(gap_results(question, answer)):
                numbering += 1
                value = values[gap_index] if gap_index < len(values) else ""
                items.append(
                    ItemResult(
                        question_id=question.id,
                        number=numbering,
                        status=_gap_item_status(correct, value),
                        gap_index=gap_index,
                        expected=expected[gap_index],
                    )
                )
                total_gaps += 1
                correct_gaps += int(correct)
            continue

        numbering += 1
        record = manual_records.get(question.id)
        status = evaluate(question, answer, record)
        items.append(ItemResult(question_id=question.id, number=numbering, status=status))
        if status is AnswerStatus.UNGRADED:
            pending_manual += 1
        elif status is AnswerStatus.GRADED and record is not None:
            graded_manual += 1
            percentage = record.score_percentage or 0.0
            manual_credit += min(max(percentage, 0.0), 100.0) / 100
            if record.feedback:
                feedback[question.id] = record.feedback
        else:
            regular += 1
            correct_regular += int(status is AnswerStatus.CORRECT)

    statistics = GapStatistics(
        total_gaps=total_gaps,
        correct_gaps=correct_gaps,
        regular_questions=regular,
        correct_regular=correct_regular,
        graded_manual=graded_manual,
        manual_credit=manual_credit,
        pending_manual=pending_manual,
    )
    score = statistics.correct_items / statistics.total_items if statistics.total_items else 0.0
    passed = statistics.total_items > 0 and score >= threshold
    if pending_manual:
        status = SessionStatus.PENDING_REVIEW
    else:
        status = SessionStatus.PASSED if passed else SessionStatus.FAILED
    logger.debug(
        "Graded %d items: %.2f correct, %d pending review",
        statistics.total_items,
        statistics.correct_items,
        pending_manual,
    )
    return GradingResult(
        items=tuple(items),
        statistics=statistics,
        score=score,
        passed=passed,
        status=status,
        feedback=feedback,
    )


def grade_session(
    session: QuizSession,
    manual_records: Mapping[str, ManualGradeRecord] | None = None,
    threshold: float = PASS_THRESHOLD,
) -> GradingResult:
    answers: dict[str, Answer] = {}
    for question in session.questions:
        answer = session.answer_for(question)
        if answer is not None:
            answers[question.id] = answer
    return grade(session.questions, answers, manual_records, threshold)


def pass_message(result: GradingResult) -> str:
    """One-line summary shown to the learner after the final reveal."""
    percentage = f"{result.score_percentage:g}%"
    if result.status is SessionStatus.PENDING_REVIEW:
        return f"Score so far: {percentage}. Some answers are waiting for review."
    if result.passed:
        return f"Passed with {percentage}."
    return f"Score: {percentage} ({PASS_REQUIREMENT_MESSAGE})."
