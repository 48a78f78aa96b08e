"""Math typesetting collaborator.

The engine never typesets math itself. It hands every expression to a
``Typesetter``, which exposes ``render(expression, display_mode)`` and
``validate(expression)``.

Architecture note:
    The default ``MathJaxTypesetter`` keeps the display-time approach: it
    emits the expression wrapped in MathJax delimiters and lets MathJax do
    the heavy lifting in the browser. Server-side validation catches the
    structural mistakes MathJax would otherwise render as garbage (unbalanced
    braces, mismatched environments), so a broken expression can be replaced
    by an error marker before it reaches the learner.
"""

from __future__ import annotations

from dataclasses import dataclass
import html
import re
from typing import Protocol


class TypesettingError(Exception):
    """Raised when an expression cannot be typeset."""


@dataclass(frozen=True, slots=True)
class ValidationResult:
    valid: bool
    error: str | None = None


class Typesetter(Protocol):
    def render(self, expression: str, display_mode: bool) -> str: ...

    def validate(self, expression: str) -> ValidationResult: ...


_ENVIRONMENT_PATTERN = re.compile(r"\\(begin|end)\{([^}]*)\}")
_LEFT_PATTERN = re.compile(r"\\left(?![a-zA-Z])")
_RIGHT_PATTERN = re.compile(r"\\right(?![a-zA-Z])")


@dataclass(slots=True)
class MathJaxTypesetter:
    """Emits MathJax-delimited markup for client-side typesetting."""

    inline_class: str = "math math-inline"
    display_class: str = "math math-display"

    def render(self, expression: str, display_mode: bool) -> str:
        result = self.validate(expression)
        if not result.valid:
            raise TypesettingError(result.error or "Invalid expression")
        escaped = html.escape(expression.strip(), quote=False)
        if display_mode:
            return f'<span class="{self.display_class}">\\[{escaped}\\]</span>'
        return f'<span class="{self.inline_class}">\\({escaped}\\)</span>'

    def validate(self, expression: str) -> ValidationResult:
        if not expression or not expression.strip():
            return ValidationResult(False, "Empty expression")

        error = _check_braces(expression)
        if error is None:
            error = _check_environments(expression)
        if error is None and len(_LEFT_PATTERN.findall(expression)) != len(_RIGHT_PATTERN.findall(expression)):
            error = "Unbalanced \\left and \\right"
        if error is not None:
            return ValidationResult(False, error)
        return ValidationResult(True)


def _check_braces(expression: str) -> str | None:
    depth = 0
    escaped = False
    for position, char in enumerate(expression):
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth < 0:
                return f"Unexpected '}}' at position {position}"
    if depth:
        return "Missing closing '}'"
    return None


def _check_environments(expression: str) -> str | None:
    stack: list[str] = []
    for match in _ENVIRONMENT_PATTERN.finditer(expression):
        kind, name = match.groups()
        if kind == "begin":
            stack.append(name)
        elif not stack or stack.pop() != name:
            return f"Unmatched \\end{{{name}}}"
    if stack:
        return f"Missing \\end{{{stack[-1]}}}"
    return None
