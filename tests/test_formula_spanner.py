import logging
import threading

import pytest

from lesson_quiz.core.formula_spanner import (
    DeferredRender,
    FormulaSpan,
    TextRun,
    find_formula_spans,
    formula_error_marker,
    render_formulas,
    span_formulas,
)
from lesson_quiz.core.typesetting import MathJaxTypesetter, ValidationResult


class ExplodingTypesetter:
    """Typesetter that fails for one expression."""

    def render(self, expression: str, display_mode: bool) -> str:
        if expression == "boom":
            raise RuntimeError("typesetter crashed")
        return f"<m>{expression}</m>"

    def validate(self, expression: str) -> ValidationResult:
        return ValidationResult(True)


@pytest.fixture
def typesetter() -> MathJaxTypesetter:
    return MathJaxTypesetter()


def test_inline_formula_with_trailing_literal(typesetter):
    text = "$x^2$ is a square"

    assert span_formulas(text) == (
        FormulaSpan(start=0, end=5, expression="x^2", display=False, source="$x^2$"),
        TextRun(" is a square"),
    )
    assert render_formulas(text, typesetter) == (
        '<span class="math math-inline">\\(x^2\\)</span> is a square'
    )


def test_block_spans_are_found_before_inline(typesetter):
    spans = find_formula_spans("$$a$b$$ and $c$")

    assert [(span.expression, span.display) for span in spans] == [("a$b", True), ("c", False)]


def test_block_formula_may_span_lines():
    spans = find_formula_spans("Before\n$$\nx = 1\n$$\nafter")

    assert len(spans) == 1
    assert spans[0].display
    assert spans[0].expression == "\nx = 1\n"


def test_inline_formula_does_not_cross_lines():
    assert find_formula_spans("costs $x\nand y$") == ()


@pytest.mark.parametrize(
    "text",
    [
        "I paid $24 for it and $5 more",
        "Bold $<b>x</b>$ is not math",
        "$" + "x" * 201 + "$",
        "No dollars at all",
    ],
)
def test_non_math_dollar_usage_is_left_alone(text):
    assert find_formula_spans(text) == ()


def test_literal_text_is_not_escaped(typesetter):
    text = "a < b & c"

    assert render_formulas(text, typesetter) == text


def test_invalid_expression_becomes_error_marker(typesetter):
    rendered = render_formulas("Start $\\frac{1$ then $y$ end", typesetter)

    assert rendered.startswith("Start ")
    assert '<span class="math-error"' in rendered
    assert "LaTeX Error: \\frac{1" in rendered
    assert '<span class="math math-inline">\\(y\\)</span>' in rendered
    assert rendered.endswith(" end")


def test_typesetter_failure_is_logged_and_contained(caplog):
    with caplog.at_level(logging.WARNING, logger="lesson_quiz.core.formula_spanner"):
        rendered = render_formulas("$ok$ and $boom$", ExplodingTypesetter())

    assert rendered.startswith("<m>ok</m> and ")
    assert "LaTeX Error: boom" in rendered
    assert "typesetter crashed" in caplog.text


def test_error_marker_contains_no_dollar():
    marker = formula_error_marker("a$b", "bad $ thing")

    assert "$" not in marker
    assert "&#36;" in marker


def test_rendering_is_idempotent(typesetter):
    text = "Area $\\pi r^2$, display $$\\sum_i i$$ and broken $\\frac{1$."

    once = render_formulas(text, typesetter)

    assert render_formulas(once, typesetter) == once


def test_deferred_render_runs_callback():
    fired = threading.Event()
    deferred = DeferredRender(0.01)

    deferred.schedule(fired.set)

    assert fired.wait(2)
    assert not deferred.pending


def test_deferred_render_cancel_drops_callback():
    fired = threading.Event()
    deferred = DeferredRender(5)

    deferred.schedule(fired.set)
    assert deferred.pending
    assert deferred.cancel()

    assert not deferred.pending
    assert not fired.wait(0.05)
    assert not deferred.cancel()
