"""Domain models for the lesson quiz engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from lesson_quiz.constants.quiz_constants import DEFAULT_GAP_SEPARATOR


class QuestionType(str, Enum):
    """Closed set of question variants understood by the engine."""

    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    FILL_BLANK = "fill_blank"
    TEXT_COMPLETION = "text_completion"
    SHORT_ANSWER = "short_answer"
    LONG_TEXT = "long_text"
    MEDIA_QUESTION = "media_question"


GAP_TYPES = frozenset({QuestionType.FILL_BLANK, QuestionType.TEXT_COMPLETION})
CHOICE_TYPES = frozenset(
    {QuestionType.SINGLE_CHOICE, QuestionType.MULTIPLE_CHOICE, QuestionType.MEDIA_QUESTION}
)


class DisplayMode(str, Enum):
    """Sequential one-by-one presentation or the simultaneous feed."""

    ONE_BY_ONE = "one_by_one"
    ALL_AT_ONCE = "all_at_once"


@dataclass(frozen=True, slots=True)
class Option:
    """Answer option of a choice question."""

    id: str
    letter: str
    text: str
    is_correct: bool = False


CorrectAnswer = Union[int, tuple[int, ...], tuple[str, ...], str, None]


@dataclass(frozen=True, slots=True)
class Question:
    """A single quiz question; immutable once loaded into a session.

    ``correct_answer`` depends on the variant: an option index for
    single_choice and keyed media_question, a tuple of indices for
    multiple_choice, a tuple of canonical strings for gap questions, a
    ``|``-delimited string for short_answer and ``None`` for long_text.
    """

    id: str
    question_type: QuestionType
    prompt: str
    content_text: str = ""
    options: tuple[Option, ...] = ()
    correct_answer: CorrectAnswer = None
    points: int = 1
    explanation: str = ""
    media_url: str | None = None
    media_type: str | None = None
    gap_separator: str = DEFAULT_GAP_SEPARATOR

    @property
    def gap_source(self) -> str:
        """Text that carries the gap markers (passage first, prompt otherwise)."""
        return self.content_text or self.prompt

    @property
    def has_gaps(self) -> bool:
        return self.question_type in GAP_TYPES


@dataclass(frozen=True, slots=True)
class QuizDocument:
    """Quiz definition as delivered by the content collaborator."""

    title: str
    questions: tuple[Question, ...]
    display_mode: DisplayMode = DisplayMode.ONE_BY_ONE
    time_limit_minutes: int | None = None
    media_url: str | None = None
    media_type: str | None = None


@dataclass(frozen=True, slots=True)
class ChoiceAnswer:
    """Selected option, stored as the canonical (unshuffled) index."""

    index: int


@dataclass(frozen=True, slots=True)
class MultiChoiceAnswer:
    """Selected option set, stored as canonical indices."""

    indices: frozenset[int] = field(default_factory=frozenset)


@dataclass(frozen=True, slots=True)
class GapAnswer:
    """Values typed or picked for each gap, in gap order."""

    values: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class TextAnswer:
    text: str = ""


Answer = Union[ChoiceAnswer, MultiChoiceAnswer, GapAnswer, TextAnswer]


@dataclass(frozen=True, slots=True)
class ManualGradeRecord:
    """Read-only record supplied by the manual grading collaborator."""

    is_graded: bool
    score_percentage: float | None = None
    feedback: str = ""
