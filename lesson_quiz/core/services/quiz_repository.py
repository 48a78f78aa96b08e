"""Service holding the validated, immutable question list of a quiz."""

from __future__ import annotations

from collections.abc import Iterable

from lesson_quiz.constants.quiz_constants import OPTION_LETTERS
from lesson_quiz.core.answers import correct_index, correct_indices, gap_count, is_auto_graded
from lesson_quiz.core.models import CHOICE_TYPES, Question, QuestionType


class QuizRepository:
    """Validates questions once on load and serves them read-only."""

    def __init__(self) -> None:
        self._questions: tuple[Question, ...] = ()

    def load_questions(self, questions: Iterable[Question]) -> None:
        """Replace the current quiz with a new list of questions."""
        prepared = tuple(questions)
        seen: set[str] = set()
        for position, question in enumerate(prepared, start=1):
            if question.id in seen:
                raise ValueError(f"Question {position}: duplicate id '{question.id}'.")
            seen.add(question.id)
            self.validate_question(question, position)
        self._questions = prepared

    def get_questions(self) -> tuple[Question, ...]:
        return self._questions

    def has_questions(self) -> bool:
        return bool(self._questions)

    def get_question_count(self) -> int:
        return len(self._questions)

    def get_question(self, question_id: str) -> Question:
        for question in self._questions:
            if question.id == question_id:
                return question
        raise KeyError(question_id)

    def clear(self) -> None:
        self._questions = ()

    @staticmethod
    def validate_question(question: Question, position: int = 1) -> None:
        """Raise ``ValueError`` when a question breaks a content invariant."""
        prefix = f"Question {position}"
        if not (question.prompt.strip() or question.content_text.strip()):
            raise ValueError(f"{prefix}: question text must not be empty.")
        if question.points < 0:
            raise ValueError(f"{prefix}: points must not be negative.")

        kind = question.question_type
        if kind in CHOICE_TYPES:
            if not question.options and kind is not QuestionType.MEDIA_QUESTION:
                raise ValueError(f"{prefix}: {kind.value} needs at least one option.")
            if len(question.options) > len(OPTION_LETTERS):
                raise ValueError(f"{prefix}: at most {len(OPTION_LETTERS)} options are supported.")
            if any(not option.text.strip() for option in question.options):
                raise ValueError(f"{prefix}: option text cannot be empty.")

        if kind is QuestionType.SINGLE_CHOICE:
            index = correct_index(question)
            if index is None or not 0 <= index < len(question.options):
                raise ValueError(f"{prefix}: single_choice needs exactly one correct option.")
        elif kind is QuestionType.MULTIPLE_CHOICE:
            indices = correct_indices(question)
            if not indices or any(not 0 <= i < len(question.options) for i in indices):
                raise ValueError(f"{prefix}: multiple_choice needs at least one valid correct option.")
        elif kind is QuestionType.MEDIA_QUESTION:
            if is_auto_graded(question) and not 0 <= (correct_index(question) or 0) < len(question.options):
                raise ValueError(f"{prefix}: media_question correct option is out of range.")
        elif question.has_gaps:
            expected = question.correct_answer
            if isinstance(expected, tuple) and len(expected) != gap_count(question):
                raise ValueError(
                    f"{prefix}: {len(expected)} correct answers given for {gap_count(question)} gaps."
                )
        elif kind is QuestionType.SHORT_ANSWER:
            if not isinstance(question.correct_answer, str) or not question.correct_answer.strip():
                raise ValueError(f"{prefix}: short_answer needs at least one accepted answer.")
