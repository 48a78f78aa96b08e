"""Markdown + gap + LaTeX rendering of question text.

Pipeline for a piece of question text:

1. gap markers are extracted first (``gap_parser``);
2. math spans are located only inside the literal runs between gaps
   (``formula_spanner``), never inside bracket tokens;
3. gaps and formulas are replaced by inert placeholders, the text goes
   through markdown-it, and the placeholders are swapped for the gap
   widgets and typeset formulas.

Architecture note:
    Formulas are typeset by the injected ``Typesetter``; the default emits
    MathJax delimiters and MathJax does the heavy lifting in the browser.
    Rendering is a pure function of its inputs, so fragments without gaps
    are cached per renderer instance.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
import re

from markdown_it import MarkdownIt

from lesson_quiz.constants.quiz_constants import DEFAULT_GAP_SEPARATOR
from lesson_quiz.core.formula_spanner import FormulaSpan, TextRun, render_span, span_formulas
from lesson_quiz.core.gap_parser import GapSegment, LiteralSegment, parse_gaps
from lesson_quiz.core.typesetting import MathJaxTypesetter, Typesetter

_MATHJAX_SCRIPT = (
    "https://cdn.jsdelivr.net/npm/mathjax@3/es5/tex-mml-chtml.js"
)

_PLACEHOLDER_MARK = "XQZPLACEHOLDERX"

GapMarkup = Callable[[GapSegment], str]


def _free_mark(segments: tuple[LiteralSegment | GapSegment, ...]) -> str:
    """Placeholder mark that does not occur anywhere in the literal text."""
    literal = "".join(segment.text for segment in segments if isinstance(segment, LiteralSegment))
    mark = _PLACEHOLDER_MARK
    while mark in literal:
        mark += "X"
    return mark


@dataclass(slots=True)
class MarkdownMathRenderer:
    """Converts markdown-with-math (and gaps) into HTML fragments or documents."""

    typesetter: Typesetter = field(default_factory=MathJaxTypesetter)
    enable_html: bool = False
    _markdown: MarkdownIt = field(init=False, repr=False)
    _cache: dict[str, str] = field(init=False, repr=False, default_factory=dict)

    def __post_init__(self) -> None:
        self._markdown = (
            MarkdownIt("commonmark", {"html": self.enable_html})
            .enable("table")
            .enable("strikethrough")
        )

    def render_fragment(self, markdown_text: str) -> str:
        """Render a markdown string with math into an HTML fragment."""

        sanitized = markdown_text.strip() or ""
        if not sanitized:
            return "<p><em>No content provided.</em></p>"
        cached = self._cache.get(sanitized)
        if cached is None:
            cached = self._render((LiteralSegment(sanitized),), None)
            self._cache[sanitized] = cached
        return cached

    def render_with_gaps(
        self,
        text: str,
        gap_markup: GapMarkup,
        separator: str = DEFAULT_GAP_SEPARATOR,
    ) -> str:
        """Render text whose gap markers are replaced by ``gap_markup(gap)``."""

        sanitized = text.strip()
        if not sanitized:
            return "<p><em>No content provided.</em></p>"
        return self._render(parse_gaps(sanitized, separator), gap_markup)

    def _render(
        self,
        segments: tuple[LiteralSegment | GapSegment, ...],
        gap_markup: GapMarkup | None,
    ) -> str:
        mark = _free_mark(segments)
        fragments: list[str] = []
        source_parts: list[str] = []
        for segment in segments:
            if isinstance(segment, GapSegment):
                markup = gap_markup(segment) if gap_markup is not None else ""
                source_parts.append(f"{mark}{len(fragments)}{mark}")
                fragments.append(markup)
                continue
            for piece in span_formulas(segment.text):
                if isinstance(piece, TextRun):
                    source_parts.append(piece.text)
                elif isinstance(piece, FormulaSpan):
                    source_parts.append(f"{mark}{len(fragments)}{mark}")
                    fragments.append(render_span(piece, self.typesetter))

        rendered = self._markdown.render("".join(source_parts))

        def restore(match: re.Match[str]) -> str:
            index = int(match.group(1))
            return fragments[index] if index < len(fragments) else match.group(0)

        return re.compile(rf"{mark}(\d+){mark}").sub(restore, rendered)

    def wrap_with_mathjax(self, body_html: str, title: str = "Lesson Quiz") -> str:
        """Wrap a fragment inside a minimal HTML document that loads MathJax."""

        return f"""<!doctype html>
<html lang=\"en\">
  <head>
    <meta charset=\"utf-8\" />
    <title>{title}</title>
    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\" />
    <style>
      body {{ font-family: 'Segoe UI', system-ui, sans-serif; margin: 0; padding: 1rem; }}
      .question-html {{ font-size: 1.1rem; line-height: 1.5; }}
      .math-display {{ display: block; text-align: center; margin: 0.5rem 0; }}
      .math-error {{ color: #cc0000; }}
    </style>
    <script>
      window.MathJax = {{ tex: {{ inlineMath: [['\\\\(','\\\\)']], displayMath: [['\\\\[','\\\\]']] }} }};
    </script>
    <script defer src=\"{_MATHJAX_SCRIPT}\"></script>
  </head>
  <body>
    <div class=\"question-html\">{body_html}</div>
  </body>
</html>"""

    def render_full_document(self, markdown_text: str, title: str = "Lesson Quiz") -> str:
        """Convenience wrapper to render markdown and embed MathJax."""

        fragment = self.render_fragment(markdown_text)
        return self.wrap_with_mathjax(fragment, title=title)
