"""Seeded display order for options and gap candidates.

The order is drawn once when the session's content arrives and kept for
the session's lifetime, so re-rendering never contradicts choices the
learner has already seen. Answers are always mapped back to canonical
indices before they are stored; grading never sees display positions.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
import random

from lesson_quiz.core.answers import question_gaps
from lesson_quiz.core.models import Question, QuestionType


@dataclass(frozen=True, slots=True)
class DisplayOrder:
    seed: int | None = None
    option_orders: dict[str, tuple[int, ...]] = field(default_factory=dict)
    candidate_orders: dict[tuple[str, int], tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def build(
        cls,
        questions: Iterable[Question],
        seed: int | None,
        shuffle_options: bool = True,
        shuffle_candidates: bool = True,
    ) -> DisplayOrder:
        """Draw every permutation up front from a single seeded generator."""
        rng = random.Random(seed)
        option_orders: dict[str, tuple[int, ...]] = {}
        candidate_orders: dict[tuple[str, int], tuple[str, ...]] = {}

        for question in questions:
            indices = list(range(len(question.options)))
            if shuffle_options and len(indices) > 1:
                rng.shuffle(indices)
            option_orders[question.id] = tuple(indices)

            if question.question_type is not QuestionType.FILL_BLANK:
                continue
            for gap in question_gaps(question):
                candidates = list(gap.candidates)
                if shuffle_candidates and len(candidates) > 1:
                    rng.shuffle(candidates)
                candidate_orders[(question.id, gap.index)] = tuple(candidates)

        return cls(seed=seed, option_orders=option_orders, candidate_orders=candidate_orders)

    def option_order(self, question_id: str) -> tuple[int, ...]:
        return self.option_orders.get(question_id, ())

    def to_canonical(self, question_id: str, display_index: int) -> int | None:
        order = self.option_order(question_id)
        if 0 <= display_index < len(order):
            return order[display_index]
        return None

    def to_display(self, question_id: str, canonical_index: int) -> int | None:
        try:
            return self.option_order(question_id).index(canonical_index)
        except ValueError:
            return None

    def candidates(self, question_id: str, gap_index: int) -> tuple[str, ...]:
        return self.candidate_orders.get((question_id, gap_index), ())
