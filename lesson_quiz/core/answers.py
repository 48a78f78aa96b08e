"""Answer model: correctness and completeness rules per question variant.

Every function here is total. A missing answer, a payload of the wrong
shape or an out-of-range index counts as not correct; nothing raises.
Each rule dispatches over the full ``QuestionType`` set and ends in
``assert_never`` so a new variant cannot be added without updating it.
"""

from __future__ import annotations

from enum import Enum
from typing import assert_never

from lesson_quiz.constants.quiz_constants import SHORT_ANSWER_DELIMITER
from lesson_quiz.core.gap_parser import GapSegment, gap_segments
from lesson_quiz.core.models import (
    Answer,
    ChoiceAnswer,
    GapAnswer,
    ManualGradeRecord,
    MultiChoiceAnswer,
    Question,
    QuestionType,
    TextAnswer,
)


class AnswerStatus(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    UNANSWERED = "unanswered"
    UNGRADED = "ungraded"
    GRADED = "graded"


def normalize_text(value: object) -> str:
    """Trimmed, case-insensitive form used for every text comparison."""
    if value is None:
        return ""
    return str(value).strip().casefold()


def question_gaps(question: Question) -> tuple[GapSegment, ...]:
    if not question.has_gaps:
        return ()
    return gap_segments(question.gap_source, question.gap_separator)


def gap_count(question: Question) -> int:
    return len(question_gaps(question))


def correct_index(question: Question) -> int | None:
    """Canonical correct option index for single-answer choice questions."""
    value = question.correct_answer
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    flagged = [idx for idx, option in enumerate(question.options) if option.is_correct]
    if len(flagged) == 1:
        return flagged[0]
    return None


def correct_indices(question: Question) -> frozenset[int]:
    value = question.correct_answer
    if isinstance(value, tuple) and value and all(isinstance(item, int) for item in value):
        return frozenset(value)
    if isinstance(value, int) and not isinstance(value, bool):
        return frozenset({value})
    return frozenset(idx for idx, option in enumerate(question.options) if option.is_correct)


def accepted_short_answers(question: Question) -> tuple[str, ...]:
    raw = question.correct_answer if isinstance(question.correct_answer, str) else ""
    return tuple(
        normalize_text(part) for part in raw.split(SHORT_ANSWER_DELIMITER) if part.strip()
    )


def canonical_gap_answers(question: Question) -> tuple[str | None, ...]:
    return tuple(gap.canonical for gap in question_gaps(question))


def is_auto_graded(question: Question) -> bool:
    """Whether correctness can be decided without a human grader."""
    kind = question.question_type
    if kind is QuestionType.LONG_TEXT:
        return False
    if kind is QuestionType.MEDIA_QUESTION:
        return bool(question.options) and correct_index(question) is not None
    if (
        kind is QuestionType.SINGLE_CHOICE
        or kind is QuestionType.MULTIPLE_CHOICE
        or kind is QuestionType.FILL_BLANK
        or kind is QuestionType.TEXT_COMPLETION
        or kind is QuestionType.SHORT_ANSWER
    ):
        return True
    assert_never(kind)


def _gap_values(answer: Answer | None) -> tuple[str, ...]:
    if isinstance(answer, GapAnswer):
        return answer.values
    return ()


def gap_results(question: Question, answer: Answer | None) -> tuple[bool, ...]:
    """Per-gap correctness; a gap without candidates is never correct."""
    values = _gap_values(answer)
    results: list[bool] = []
    for gap in question_gaps(question):
        value = values[gap.index] if gap.index < len(values) else ""
        canonical = gap.canonical
        results.append(
            canonical is not None
            and bool(normalize_text(value))
            and normalize_text(value) == normalize_text(canonical)
        )
    return tuple(results)


def _choice_correct(question: Question, answer: Answer | None) -> bool:
    expected = correct_index(question)
    return isinstance(answer, ChoiceAnswer) and expected is not None and answer.index == expected


def is_correct(question: Question, answer: Answer | None) -> bool:
    """Automatic verdict. Manually graded variants are never 'correct' here."""
    kind = question.question_type
    if kind is QuestionType.SINGLE_CHOICE:
        return _choice_correct(question, answer)
    if kind is QuestionType.MULTIPLE_CHOICE:
        expected = correct_indices(question)
        return isinstance(answer, MultiChoiceAnswer) and bool(expected) and set(answer.indices) == expected
    if kind is QuestionType.FILL_BLANK or kind is QuestionType.TEXT_COMPLETION:
        results = gap_results(question, answer)
        return bool(results) and all(results)
    if kind is QuestionType.SHORT_ANSWER:
        if not isinstance(answer, TextAnswer):
            return False
        value = normalize_text(answer.text)
        return bool(value) and value in accepted_short_answers(question)
    if kind is QuestionType.MEDIA_QUESTION:
        return is_auto_graded(question) and _choice_correct(question, answer)
    if kind is QuestionType.LONG_TEXT:
        return False
    assert_never(kind)


def evaluate(
    question: Question,
    answer: Answer | None,
    manual_record: ManualGradeRecord | None = None,
) -> AnswerStatus:
    """Status reported for one question."""
    if not is_auto_graded(question):
        if manual_record is not None and manual_record.is_graded:
            return AnswerStatus.GRADED
        return AnswerStatus.UNGRADED
    if answer is None:
        return AnswerStatus.UNANSWERED
    return AnswerStatus.CORRECT if is_correct(question, answer) else AnswerStatus.INCORRECT


def required_gap_indices(question: Question) -> tuple[int, ...]:
    """Gaps the learner must fill; gaps without candidates cannot be answered."""
    return tuple(gap.index for gap in question_gaps(question) if gap.candidates)


def missing_fields(question: Question, answer: Answer | None) -> list[str]:
    """Human readable list of what is still required before checking."""
    kind = question.question_type
    if (
        kind is QuestionType.SINGLE_CHOICE
        or kind is QuestionType.MEDIA_QUESTION
    ):
        if kind is QuestionType.MEDIA_QUESTION and not question.options:
            if isinstance(answer, TextAnswer) and answer.text.strip():
                return []
            return ["Enter an answer."]
        if isinstance(answer, ChoiceAnswer) and 0 <= answer.index < len(question.options):
            return []
        return ["Select an option."]
    if kind is QuestionType.MULTIPLE_CHOICE:
        if isinstance(answer, MultiChoiceAnswer) and answer.indices:
            return []
        return ["Select at least one option."]
    if kind is QuestionType.FILL_BLANK or kind is QuestionType.TEXT_COMPLETION:
        values = _gap_values(answer)
        return [
            f"Fill in gap {index + 1}."
            for index in required_gap_indices(question)
            if index >= len(values) or not values[index].strip()
        ]
    if kind is QuestionType.SHORT_ANSWER or kind is QuestionType.LONG_TEXT:
        if isinstance(answer, TextAnswer) and answer.text.strip():
            return []
        return ["Enter an answer."]
    assert_never(kind)


def is_complete(question: Question, answer: Answer | None) -> bool:
    return not missing_fields(question, answer)
