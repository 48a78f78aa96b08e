import pytest

from lesson_quiz.core.markdown_math_renderer import MarkdownMathRenderer
from lesson_quiz.core.question_renderer import render_question_view
from lesson_quiz.core.services.grading import display_numbering, grade_session, total_items
from lesson_quiz.core.services.quiz_session import (
    ContentArrived,
    FillGap,
    SelectOption,
    new_session,
    reduce,
)


@pytest.fixture
def renderer() -> MarkdownMathRenderer:
    return MarkdownMathRenderer()


@pytest.fixture
def feed_session(feed_document):
    return reduce(new_session("render", seed=11), ContentArrived(feed_document)).session


def view_for(renderer, session, index, grading=None):
    question = session.questions[index]
    numbering = display_numbering(session.questions)[index]
    return render_question_view(renderer, session, question, numbering, total_items(session.questions), grading)


def test_fragment_combines_markdown_and_math(renderer):
    html = renderer.render_fragment("**Area** is $\\pi r^2$")

    assert html == '<p><strong>Area</strong> is <span class="math math-inline">\\(\\pi r^2\\)</span></p>\n'


def test_math_is_protected_from_markdown(renderer):
    html = renderer.render_fragment("$a_1 * b_2 * c$")

    assert "<em>" not in html
    assert "\\(a_1 * b_2 * c\\)" in html


def test_empty_fragment_placeholder(renderer):
    assert renderer.render_fragment("   ") == "<p><em>No content provided.</em></p>"


def test_gap_markup_replaces_markers(renderer):
    html = renderer.render_with_gaps("Price [[$5$,x]] and $y$", lambda gap: f"<gap-{gap.index}>")

    assert "<gap-0>" in html
    assert "[[" not in html
    assert "\\(y\\)" in html
    assert "\\(5\\)" not in html


def test_full_document_loads_mathjax(renderer):
    page = renderer.render_full_document("Hello", title="Demo")

    assert "<title>Demo</title>" in page
    assert "mathjax@3" in page
    assert "<p>Hello</p>" in page


def test_choice_view_uses_display_order(renderer, feed_session):
    view = view_for(renderer, feed_session, 0)
    order = feed_session.display_order.option_order("q1")
    texts = [feed_session.questions[0].options[canonical].text for canonical in order]

    assert view.number_label == "Question 1 of 6"
    assert [option.letter for option in view.options] == ["A", "B", "C"]
    assert [option.html for option in view.options] == [f"<p>{text}</p>\n" for text in texts]
    assert all(option.is_correct is None for option in view.options)
    assert "\\(2+2\\)" in view.prompt_html


def test_selected_option_is_marked(renderer, feed_session):
    session = reduce(feed_session, SelectOption("q1", 2)).session

    view = view_for(renderer, session, 0)

    assert [option.selected for option in view.options] == [False, False, True]


def test_fill_blank_renders_selects_in_display_order(renderer, feed_session):
    view = view_for(renderer, feed_session, 2)

    assert view.number_label == "Questions 3–4 of 6"
    assert view.gap_count == 2
    assert view.content_html.count('<select class="gap-select"') == 2
    first_gap = feed_session.display_order.candidates("q3", 0)
    positions = [view.content_html.index(f'value="{candidate}"') for candidate in first_gap]
    assert positions == sorted(positions)
    assert "<p>Complete the sentence.</p>" in view.prompt_html


def test_text_completion_renders_inputs_in_prompt(renderer, feed_session):
    session = reduce(feed_session, FillGap("q4", 0, "Rome")).session

    view = view_for(renderer, session, 3)

    assert view.content_html is None
    assert '<input class="gap-input" type="text"' in view.prompt_html
    assert 'value="Rome"' in view.prompt_html


def test_review_shows_expected_gap_values(renderer, feed_session):
    session = feed_session
    answers = [
        SelectOption("q1", session.display_order.to_display("q1", 1)),
        FillGap("q3", 0, "blue"),
        FillGap("q3", 1, "red"),
    ]
    for event in answers:
        session = reduce(session, event).session
    grading = grade_session(session)

    choice_view = view_for(renderer, session, 0, grading)
    gap_view = view_for(renderer, session, 2, grading)

    assert choice_view.revealed
    assert choice_view.status == "correct"
    assert "<strong>four</strong>" in choice_view.explanation_html
    assert [option.is_correct for option in choice_view.options].count(True) == 1
    assert gap_view.status == "incorrect"
    assert '<span class="gap gap-correct" data-gap-index="0">blue</span>' in gap_view.content_html
    assert "(Correct: <strong>green</strong>)" in gap_view.content_html
    assert "red" in gap_view.content_html


def test_literal_placeholder_text_is_left_alone(renderer):
    html = renderer.render_with_gaps(
        "XQZPLACEHOLDERX7XQZPLACEHOLDERX and XQZPLACEHOLDERX0XQZPLACEHOLDERX then [[a]] $x$",
        lambda gap: "<gap>",
    )

    assert "XQZPLACEHOLDERX7XQZPLACEHOLDERX" in html
    assert "XQZPLACEHOLDERX0XQZPLACEHOLDERX" in html
    assert html.count("<gap>") == 1
    assert "\\(x\\)" in html
