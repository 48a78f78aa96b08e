"""Detection and rendering of ``$...$`` and ``$$...$$`` math spans.

Block spans (``$$...$$``) are located first over the whole text. Inline
spans (``$...$``) are then searched only in the text the block spans left
unmatched, left to right, so the two kinds never overlap. Each expression
is handed to the typesetting collaborator; a failure for one expression is
replaced by a visible error marker and never aborts the surrounding text.

Literal text is returned untouched. Escaping and markdown belong to the
caller, which keeps the spanner idempotent: once no dollar-delimited
substrings remain, running it again changes nothing.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import html
import logging
import re
from threading import Lock, Timer
from typing import Union

from lesson_quiz.constants.quiz_constants import MAX_INLINE_FORMULA_LENGTH, RERENDER_DELAY_SECONDS
from lesson_quiz.core.typesetting import Typesetter

logger = logging.getLogger(__name__)

_BLOCK_PATTERN = re.compile(r"\$\$(.+?)\$\$", re.DOTALL)
_INLINE_PATTERN = re.compile(r"\$([^$\n]+?)\$")
_HTML_TAG_PATTERN = re.compile(r"<[^>]+>")
_CURRENCY_PATTERN = re.compile(r"^\d+\s")


@dataclass(frozen=True, slots=True)
class TextRun:
    text: str


@dataclass(frozen=True, slots=True)
class FormulaSpan:
    """A located math span; ``source`` includes its delimiters."""

    start: int
    end: int
    expression: str
    display: bool
    source: str


Span = Union[TextRun, FormulaSpan]


def _looks_like_math(content: str) -> bool:
    if content == "\\$" or content.startswith(("\\$ ", "\\$\n")):
        return False
    if _HTML_TAG_PATTERN.search(content):
        return False
    if len(content) > MAX_INLINE_FORMULA_LENGTH:
        return False
    # "$24 coming to me" style currency rather than math
    if _CURRENCY_PATTERN.match(content):
        return False
    return True


def _inline_spans(text: str, start: int, end: int) -> list[FormulaSpan]:
    spans: list[FormulaSpan] = []
    for match in _INLINE_PATTERN.finditer(text, start, end):
        content = match.group(1)
        if not _looks_like_math(content):
            continue
        spans.append(
            FormulaSpan(
                start=match.start(),
                end=match.end(),
                expression=content,
                display=False,
                source=match.group(0),
            )
        )
    return spans


def find_formula_spans(text: str) -> tuple[FormulaSpan, ...]:
    """Locate block spans, then inline spans in the remaining gaps."""
    if not text or "$" not in text:
        return ()

    spans: list[FormulaSpan] = []
    cursor = 0
    for match in _BLOCK_PATTERN.finditer(text):
        spans.extend(_inline_spans(text, cursor, match.start()))
        spans.append(
            FormulaSpan(
                start=match.start(),
                end=match.end(),
                expression=match.group(1),
                display=True,
                source=match.group(0),
            )
        )
        cursor = match.end()
    spans.extend(_inline_spans(text, cursor, len(text)))
    return tuple(spans)


def span_formulas(text: str) -> tuple[Span, ...]:
    """Segment ``text`` into literal runs and formula spans."""
    segments: list[Span] = []
    cursor = 0
    for span in find_formula_spans(text):
        if span.start > cursor:
            segments.append(TextRun(text[cursor:span.start]))
        segments.append(span)
        cursor = span.end
    if cursor < len(text):
        segments.append(TextRun(text[cursor:]))
    return tuple(segments)


def formula_error_marker(expression: str, error: str) -> str:
    """Inline marker shown in place of an expression that failed to render."""
    source = html.escape(expression, quote=False).replace("$", "&#36;")
    title = html.escape(error, quote=True).replace("$", "&#36;")
    return f'<span class="math-error" title="{title}">LaTeX Error: {source}</span>'


def render_span(span: FormulaSpan, typesetter: Typesetter) -> str:
    """Typeset one span, degrading to an error marker on failure."""
    try:
        return typesetter.render(span.expression, span.display)
    except Exception as exc:  # collaborator failures stay local to the span
        logger.warning("Typesetting failed for %r: %s", span.source, exc)
        return formula_error_marker(span.expression, str(exc))


def render_formulas(text: str, typesetter: Typesetter) -> str:
    """Replace every math span in ``text`` by typeset markup."""
    parts: list[str] = []
    for segment in span_formulas(text):
        if isinstance(segment, TextRun):
            parts.append(segment.text)
        else:
            parts.append(render_span(segment, typesetter))
    return "".join(parts)


class DeferredRender:
    """Single pending re-render, cancellable on teardown."""

    def __init__(self, delay_seconds: float = RERENDER_DELAY_SECONDS) -> None:
        self._delay_seconds = delay_seconds
        self._timer: Timer | None = None
        self._lock = Lock()

    def schedule(self, callback: Callable[[], None]) -> None:
        """Schedule ``callback``; a pending callback is replaced."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            timer = Timer(self._delay_seconds, self._run, args=(callback,))
            timer.daemon = True
            self._timer = timer
            timer.start()

    def cancel(self) -> bool:
        """Cancel the pending callback. Returns True if one was pending."""
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is None:
            return False
        timer.cancel()
        return True

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def _run(self, callback: Callable[[], None]) -> None:
        with self._lock:
            self._timer = None
        callback()
