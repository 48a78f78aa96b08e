"""Question rendering utilities for displaying quiz questions.

A ``QuestionView`` is everything a client needs to draw one question:
HTML for the prompt and passage (gaps already turned into inputs or
selects), options in the session's display order, and, once the question
is revealed, the verdict per option and per gap.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import html

from lesson_quiz.constants.quiz_constants import OPTION_LETTERS
from lesson_quiz.core.answers import AnswerStatus, correct_index, correct_indices, gap_count, normalize_text
from lesson_quiz.core.gap_parser import GapSegment
from lesson_quiz.core.markdown_math_renderer import MarkdownMathRenderer
from lesson_quiz.core.models import (
    ChoiceAnswer,
    GapAnswer,
    MultiChoiceAnswer,
    Question,
    QuestionType,
    TextAnswer,
)
from lesson_quiz.core.services.grading import GradingResult, NumberRange
from lesson_quiz.core.services.quiz_session import QuizSession


@dataclass(slots=True)
class OptionView:
    display_index: int
    letter: str
    html: str
    selected: bool = False
    is_correct: bool | None = None


@dataclass(slots=True)
class QuestionView:
    question_id: str
    question_type: str
    number_label: str
    prompt_html: str
    content_html: str | None = None
    options: list[OptionView] = field(default_factory=list)
    gap_count: int = 0
    text_answer: str | None = None
    revealed: bool = False
    status: str | None = None
    explanation_html: str | None = None
    feedback: str | None = None
    media_url: str | None = None
    media_type: str | None = None


def _gap_values(session: QuizSession, question: Question) -> tuple[str, ...]:
    answer = session.answer_for(question)
    return answer.values if isinstance(answer, GapAnswer) else ()


def _gap_widget(session: QuizSession, question: Question, values: tuple[str, ...]):
    def markup(gap: GapSegment) -> str:
        value = values[gap.index] if gap.index < len(values) else ""
        name = html.escape(f"gap-{question.id}-{gap.index}", quote=True)
        if question.question_type is QuestionType.FILL_BLANK:
            choices = ['<option value="">…</option>']
            for candidate in session.display_order.candidates(question.id, gap.index):
                escaped = html.escape(candidate, quote=True)
                selected = " selected" if candidate == value else ""
                choices.append(f'<option value="{escaped}"{selected}>{escaped}</option>')
            return (
                f'<select class="gap-select" name="{name}" data-gap-index="{gap.index}">'
                + "".join(choices)
                + "</select>"
            )
        escaped_value = html.escape(value, quote=True)
        return (
            f'<input class="gap-input" type="text" name="{name}" '
            f'data-gap-index="{gap.index}" value="{escaped_value}" />'
        )

    return markup


def _gap_review(values: tuple[str, ...]):
    def markup(gap: GapSegment) -> str:
        value = values[gap.index] if gap.index < len(values) else ""
        shown = html.escape(value) or "—"
        correct = gap.canonical is not None and normalize_text(value) == normalize_text(gap.canonical)
        if correct:
            return f'<span class="gap gap-correct" data-gap-index="{gap.index}">{shown}</span>'
        expected = html.escape(gap.canonical or "")
        return (
            f'<span class="gap gap-incorrect" data-gap-index="{gap.index}">{shown} '
            f'<span class="gap-expected">(Correct: <strong>{expected}</strong>)</span></span>'
        )

    return markup


def _correct_options(question: Question) -> frozenset[int]:
    if question.question_type is QuestionType.MULTIPLE_CHOICE:
        return correct_indices(question)
    index = correct_index(question)
    return frozenset({index}) if index is not None else frozenset()


def _option_views(
    renderer: MarkdownMathRenderer,
    session: QuizSession,
    question: Question,
    correct: frozenset[int],
    revealed: bool,
) -> list[OptionView]:
    answer = session.answer_for(question)
    if isinstance(answer, ChoiceAnswer):
        chosen = {answer.index}
    elif isinstance(answer, MultiChoiceAnswer):
        chosen = set(answer.indices)
    else:
        chosen = set()

    views: list[OptionView] = []
    for display_index, canonical in enumerate(session.display_order.option_order(question.id)):
        option = question.options[canonical]
        views.append(
            OptionView(
                display_index=display_index,
                letter=OPTION_LETTERS[display_index],
                html=renderer.render_fragment(option.text),
                selected=canonical in chosen,
                is_correct=(canonical in correct) if revealed else None,
            )
        )
    return views


def render_question_view(
    renderer: MarkdownMathRenderer,
    session: QuizSession,
    question: Question,
    numbering: NumberRange,
    total_items: int,
    grading: GradingResult | None = None,
) -> QuestionView:
    """Build the view of ``question``; results are shown when ``grading`` is given."""
    revealed = grading is not None
    view = QuestionView(
        question_id=question.id,
        question_type=question.question_type.value,
        number_label=numbering.describe(total_items),
        prompt_html=renderer.render_fragment(question.prompt) if question.prompt else "",
        revealed=revealed,
        media_url=question.media_url,
        media_type=question.media_type,
    )

    if question.has_gaps:
        values = _gap_values(session, question)
        widget = _gap_review(values) if revealed else _gap_widget(session, question, values)
        gapped = renderer.render_with_gaps(question.gap_source, widget, question.gap_separator)
        if question.content_text:
            view.content_html = gapped
        else:
            view.prompt_html = gapped
        view.gap_count = gap_count(question)
    elif question.content_text:
        view.content_html = renderer.render_fragment(question.content_text)

    if question.options:
        view.options = _option_views(renderer, session, question, _correct_options(question), revealed)

    answer = session.answer_for(question)
    if isinstance(answer, TextAnswer):
        view.text_answer = answer.text

    if grading is not None:
        items = grading.items_for(question.id)
        if question.has_gaps:
            all_correct = bool(items) and all(item.status is AnswerStatus.CORRECT for item in items)
            view.status = (AnswerStatus.CORRECT if all_correct else AnswerStatus.INCORRECT).value
        elif items:
            view.status = items[0].status.value
        if question.explanation:
            view.explanation_html = renderer.render_fragment(question.explanation)
        view.feedback = grading.feedback.get(question.id)
    return view
