"""Parser for the embedded answer-gap mini-syntax.

Gap markers look like ``[[correct,distractor1,distractor2]]``. The text
between the double brackets is split on the question's separator, each
token is trimmed and empty tokens are dropped. The first remaining token is
the canonical answer, the rest are distractors.

Markers never span lines and are matched non-greedily, so
``[[a]] and [[b]]`` yields two gaps. Anything that does not form a complete
marker (a lone ``[[`` or ``]]``) stays in the literal text.

Architecture note:
    Parsing is a pure function of ``(text, separator)`` and the result is
    immutable, so it is memoised. Shuffling candidates for display happens
    in the session's display order, never here, which keeps gap indices and
    canonical answers stable however the candidates are later presented.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
import re
from typing import Union

from lesson_quiz.constants.quiz_constants import DEFAULT_GAP_SEPARATOR

GAP_OPEN = "[["
GAP_CLOSE = "]]"

_GAP_PATTERN = re.compile(r"\[\[(.*?)\]\]")


@dataclass(frozen=True, slots=True)
class LiteralSegment:
    text: str


@dataclass(frozen=True, slots=True)
class GapSegment:
    """A gap slot; ``raw`` keeps the original bracket content."""

    index: int
    candidates: tuple[str, ...]
    raw: str

    @property
    def canonical(self) -> str | None:
        """Canonical correct value, or ``None`` for an unanswerable gap."""
        return self.candidates[0] if self.candidates else None

    @property
    def distractors(self) -> tuple[str, ...]:
        return self.candidates[1:]


Segment = Union[LiteralSegment, GapSegment]


@dataclass(frozen=True, slots=True)
class Gap:
    """A gap bound to the question that owns it."""

    question_id: str
    index: int
    candidates: tuple[str, ...]

    @property
    def canonical(self) -> str | None:
        return self.candidates[0] if self.candidates else None


def split_candidates(inner: str, separator: str = DEFAULT_GAP_SEPARATOR) -> tuple[str, ...]:
    """Split bracket content into trimmed, non-empty candidates."""
    separator = separator or DEFAULT_GAP_SEPARATOR
    return tuple(token.strip() for token in inner.split(separator) if token.strip())


def join_candidates(candidates: tuple[str, ...] | list[str], separator: str = DEFAULT_GAP_SEPARATOR) -> str:
    """Inverse of :func:`split_candidates` modulo whitespace trimming."""
    return (separator or DEFAULT_GAP_SEPARATOR).join(candidates)


def embed_gap(candidates: tuple[str, ...] | list[str], separator: str = DEFAULT_GAP_SEPARATOR) -> str:
    """Build a gap marker from a candidate list."""
    return f"{GAP_OPEN}{join_candidates(candidates, separator)}{GAP_CLOSE}"


@lru_cache(maxsize=512)
def parse_gaps(text: str, separator: str = DEFAULT_GAP_SEPARATOR) -> tuple[Segment, ...]:
    """Segment ``text`` into literal runs and gap slots in document order.

    Gap indices count up from zero by first occurrence. Empty literal runs
    between adjacent markers are not emitted.
    """
    if not text:
        return ()

    segments: list[Segment] = []
    cursor = 0
    gap_index = 0
    for match in _GAP_PATTERN.finditer(text):
        if match.start() > cursor:
            segments.append(LiteralSegment(text[cursor:match.start()]))
        inner = match.group(1)
        segments.append(
            GapSegment(index=gap_index, candidates=split_candidates(inner, separator), raw=inner)
        )
        gap_index += 1
        cursor = match.end()
    if cursor < len(text):
        segments.append(LiteralSegment(text[cursor:]))
    return tuple(segments)


def gap_segments(text: str, separator: str = DEFAULT_GAP_SEPARATOR) -> tuple[GapSegment, ...]:
    return tuple(seg for seg in parse_gaps(text, separator) if isinstance(seg, GapSegment))


def count_gaps(text: str, separator: str = DEFAULT_GAP_SEPARATOR) -> int:
    return len(gap_segments(text, separator))


def extract_gaps(question_id: str, text: str, separator: str = DEFAULT_GAP_SEPARATOR) -> tuple[Gap, ...]:
    """Return the gaps of ``text`` bound to ``question_id``."""
    return tuple(
        Gap(question_id=question_id, index=seg.index, candidates=seg.candidates)
        for seg in gap_segments(text, separator)
    )


def has_gap_markers(text: str) -> bool:
    return _GAP_PATTERN.search(text or "") is not None
