"""Quiz presentation state machine as a pure reducer.

Sequential sessions move ``title -> question -> result -> question ... ->
completed`` and back to ``title`` on retake. Feed sessions (all questions on
one page) only know ``open -> checked`` and back to ``open`` on retry. A
session created before its content arrives sits in ``stalled`` and rejects
every event except the content arrival.

``reduce`` never mutates its input and never raises for a learner action:
anything that cannot happen in the current state comes back as a rejected
``Transition`` carrying the reason, with the session unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
import logging
from typing import Any, Union

from lesson_quiz.constants.quiz_constants import STALLED_REASON
from lesson_quiz.core.answers import gap_count, missing_fields
from lesson_quiz.core.models import (
    CHOICE_TYPES,
    Answer,
    ChoiceAnswer,
    DisplayMode,
    GapAnswer,
    MultiChoiceAnswer,
    Question,
    QuestionType,
    QuizDocument,
    TextAnswer,
)
from lesson_quiz.core.services.display_order import DisplayOrder

logger = logging.getLogger(__name__)


class QuizState(str, Enum):
    STALLED = "stalled"
    TITLE = "title"
    QUESTION = "question"
    RESULT = "result"
    COMPLETED = "completed"
    OPEN = "open"
    CHECKED = "checked"


_SEQUENTIAL_STATES = frozenset({QuizState.TITLE, QuizState.QUESTION, QuizState.RESULT, QuizState.COMPLETED})
_FEED_STATES = frozenset({QuizState.OPEN, QuizState.CHECKED})


@dataclass(frozen=True, slots=True)
class QuizSession:
    """Immutable snapshot of one learner's quiz session."""

    session_id: str
    seed: int | None = None
    state: QuizState = QuizState.STALLED
    display_mode: DisplayMode = DisplayMode.ONE_BY_ONE
    mode_override: DisplayMode | None = None
    title: str = ""
    questions: tuple[Question, ...] = ()
    current_index: int = 0
    answers: dict[str, Answer] = field(default_factory=dict)
    gap_answers: dict[str, tuple[str, ...]] = field(default_factory=dict)
    revealed: bool = False
    attempt: int = 1
    display_order: DisplayOrder = field(default_factory=DisplayOrder)

    @property
    def is_ready(self) -> bool:
        return self.state is not QuizState.STALLED

    @property
    def is_feed(self) -> bool:
        return self.display_mode is DisplayMode.ALL_AT_ONCE

    @property
    def current_question(self) -> Question | None:
        if self.is_feed or not 0 <= self.current_index < len(self.questions):
            return None
        return self.questions[self.current_index]

    def find_question(self, question_id: str) -> Question | None:
        return next((q for q in self.questions if q.id == question_id), None)

    def answer_for(self, question: Question) -> Answer | None:
        if question.has_gaps:
            values = self.gap_answers.get(question.id)
            return GapAnswer(values) if values is not None else None
        return self.answers.get(question.id)


@dataclass(frozen=True, slots=True)
class ContentArrived:
    document: QuizDocument


@dataclass(frozen=True, slots=True)
class StartQuiz:
    pass


@dataclass(frozen=True, slots=True)
class SelectOption:
    """Pick one option by its position on screen."""

    question_id: str
    display_index: int


@dataclass(frozen=True, slots=True)
class ToggleOption:
    question_id: str
    display_index: int


@dataclass(frozen=True, slots=True)
class EnterText:
    question_id: str
    text: str


@dataclass(frozen=True, slots=True)
class FillGap:
    question_id: str
    gap_index: int
    value: str


@dataclass(frozen=True, slots=True)
class CheckAnswer:
    pass


@dataclass(frozen=True, slots=True)
class AdvanceQuestion:
    pass


@dataclass(frozen=True, slots=True)
class CheckAll:
    pass


@dataclass(frozen=True, slots=True)
class Retake:
    pass


Event = Union[
    ContentArrived,
    StartQuiz,
    SelectOption,
    ToggleOption,
    EnterText,
    FillGap,
    CheckAnswer,
    AdvanceQuestion,
    CheckAll,
    Retake,
]


@dataclass(frozen=True, slots=True)
class Transition:
    """Outcome of feeding one event to the reducer.

    ``reveal`` is set when the transition exposes results, which is when
    grading has to be recomputed.
    """

    session: QuizSession
    accepted: bool
    reason: str | None = None
    reveal: bool = False


def new_session(
    session_id: str,
    seed: int | None = None,
    display_mode: DisplayMode | None = None,
) -> QuizSession:
    """Create a stalled session waiting for its content."""
    return QuizSession(
        session_id=session_id,
        seed=seed,
        display_mode=display_mode or DisplayMode.ONE_BY_ONE,
        mode_override=display_mode,
    )


def _accept(session: QuizSession, reveal: bool = False) -> Transition:
    return Transition(session=session, accepted=True, reveal=reveal)


def _reject(session: QuizSession, reason: str) -> Transition:
    logger.debug("Rejected transition in state %s: %s", session.state.value, reason)
    return Transition(session=session, accepted=False, reason=reason)


def _initial_state(display_mode: DisplayMode) -> QuizState:
    return QuizState.OPEN if display_mode is DisplayMode.ALL_AT_ONCE else QuizState.TITLE


def _on_content(session: QuizSession, event: ContentArrived) -> Transition:
    if session.is_ready:
        return _reject(session, "Quiz content is already loaded.")
    document = event.document
    display_mode = session.mode_override or document.display_mode
    loaded = replace(
        session,
        state=_initial_state(display_mode),
        display_mode=display_mode,
        title=document.title,
        questions=tuple(document.questions),
        current_index=0,
        answers={},
        gap_answers={},
        revealed=False,
        display_order=DisplayOrder.build(document.questions, session.seed),
    )
    return _accept(loaded)


def _capture_target(session: QuizSession, question_id: str) -> tuple[Question | None, str | None]:
    """Resolve the question an answer event targets, or why it cannot."""
    if session.state is QuizState.QUESTION:
        current = session.current_question
        if current is None or current.id != question_id:
            return None, "Only the current question can be answered."
        return current, None
    if session.state is QuizState.OPEN:
        question = session.find_question(question_id)
        if question is None:
            return None, f"Unknown question '{question_id}'."
        return question, None
    return None, f"Answers cannot be changed in state '{session.state.value}'."


def _store_answer(session: QuizSession, question_id: str, answer: Answer) -> QuizSession:
    answers = dict(session.answers)
    answers[question_id] = answer
    return replace(session, answers=answers)


def _on_select(session: QuizSession, event: SelectOption) -> Transition:
    question, reason = _capture_target(session, event.question_id)
    if question is None:
        return _reject(session, reason or "")
    if question.question_type not in CHOICE_TYPES or question.question_type is QuestionType.MULTIPLE_CHOICE:
        return _reject(session, "This question does not take a single option.")
    canonical = session.display_order.to_canonical(question.id, event.display_index)
    if canonical is None:
        return _reject(session, f"Option {event.display_index} does not exist.")
    return _accept(_store_answer(session, question.id, ChoiceAnswer(canonical)))


def _on_toggle(session: QuizSession, event: ToggleOption) -> Transition:
    question, reason = _capture_target(session, event.question_id)
    if question is None:
        return _reject(session, reason or "")
    if question.question_type is not QuestionType.MULTIPLE_CHOICE:
        return _reject(session, "This question does not take multiple options.")
    canonical = session.display_order.to_canonical(question.id, event.display_index)
    if canonical is None:
        return _reject(session, f"Option {event.display_index} does not exist.")
    previous = session.answers.get(question.id)
    selected = set(previous.indices) if isinstance(previous, MultiChoiceAnswer) else set()
    selected ^= {canonical}
    return _accept(_store_answer(session, question.id, MultiChoiceAnswer(frozenset(selected))))


def _on_text(session: QuizSession, event: EnterText) -> Transition:
    question, reason = _capture_target(session, event.question_id)
    if question is None:
        return _reject(session, reason or "")
    free_text = question.question_type in (QuestionType.SHORT_ANSWER, QuestionType.LONG_TEXT) or (
        question.question_type is QuestionType.MEDIA_QUESTION and not question.options
    )
    if not free_text:
        return _reject(session, "This question does not take a text answer.")
    return _accept(_store_answer(session, question.id, TextAnswer(event.text)))


def _on_gap(session: QuizSession, event: FillGap) -> Transition:
    question, reason = _capture_target(session, event.question_id)
    if question is None:
        return _reject(session, reason or "")
    if not question.has_gaps:
        return _reject(session, "This question has no gaps.")
    count = gap_count(question)
    if not 0 <= event.gap_index < count:
        return _reject(session, f"Gap {event.gap_index} does not exist.")
    values = list(session.gap_answers.get(question.id, ()))
    values.extend([""] * (count - len(values)))
    values[event.gap_index] = event.value
    gap_answers = dict(session.gap_answers)
    gap_answers[question.id] = tuple(values)
    return _accept(replace(session, gap_answers=gap_answers))


def _on_start(session: QuizSession) -> Transition:
    if session.state is not QuizState.TITLE:
        return _reject(session, f"Cannot start from state '{session.state.value}'.")
    if not session.questions:
        return _reject(session, "Quiz has no questions.")
    return _accept(replace(session, state=QuizState.QUESTION, current_index=0, revealed=False))


def _on_check(session: QuizSession) -> Transition:
    if session.state is not QuizState.QUESTION:
        return _reject(session, f"Cannot check from state '{session.state.value}'.")
    question = session.current_question
    if question is None:
        return _reject(session, "No current question.")
    missing = missing_fields(question, session.answer_for(question))
    if missing:
        return _reject(session, " ".join(missing))
    return _accept(replace(session, state=QuizState.RESULT, revealed=True), reveal=True)


def _on_advance(session: QuizSession) -> Transition:
    if session.state is not QuizState.RESULT:
        return _reject(session, f"Cannot advance from state '{session.state.value}'.")
    next_index = session.current_index + 1
    if next_index < len(session.questions):
        return _accept(replace(session, state=QuizState.QUESTION, current_index=next_index, revealed=False))
    return _accept(replace(session, state=QuizState.COMPLETED, revealed=True), reveal=True)


def _on_check_all(session: QuizSession) -> Transition:
    if session.state is not QuizState.OPEN:
        return _reject(session, f"Cannot check all from state '{session.state.value}'.")
    problems = []
    for number, question in enumerate(session.questions, start=1):
        missing = missing_fields(question, session.answer_for(question))
        if missing:
            problems.append(f"Question {number}: {' '.join(missing)}")
    if problems:
        return _reject(session, " ".join(problems))
    return _accept(replace(session, state=QuizState.CHECKED, revealed=True), reveal=True)


def _on_retake(session: QuizSession) -> Transition:
    if session.state is QuizState.COMPLETED:
        target = QuizState.TITLE
    elif session.state is QuizState.CHECKED:
        target = QuizState.OPEN
    else:
        return _reject(session, f"Cannot retake from state '{session.state.value}'.")
    return _accept(
        replace(
            session,
            state=target,
            current_index=0,
            answers={},
            gap_answers={},
            revealed=False,
            attempt=session.attempt + 1,
        )
    )


def reduce(session: QuizSession, event: Event) -> Transition:
    """Apply ``event`` to ``session`` and return the resulting transition."""
    if isinstance(event, ContentArrived):
        return _on_content(session, event)
    if not session.is_ready:
        return _reject(session, STALLED_REASON)
    if isinstance(event, StartQuiz):
        return _on_start(session)
    if isinstance(event, SelectOption):
        return _on_select(session, event)
    if isinstance(event, ToggleOption):
        return _on_toggle(session, event)
    if isinstance(event, EnterText):
        return _on_text(session, event)
    if isinstance(event, FillGap):
        return _on_gap(session, event)
    if isinstance(event, CheckAnswer):
        return _on_check(session)
    if isinstance(event, AdvanceQuestion):
        return _on_advance(session)
    if isinstance(event, CheckAll):
        return _on_check_all(session)
    if isinstance(event, Retake):
        return _on_retake(session)
    return _reject(session, f"Unsupported event {type(event).__name__}.")


# --- Drafts ---


def _encode_answer(answer: Answer) -> dict[str, Any]:
    if isinstance(answer, ChoiceAnswer):
        return {"kind": "choice", "index": answer.index}
    if isinstance(answer, MultiChoiceAnswer):
        return {"kind": "multi", "indices": sorted(answer.indices)}
    if isinstance(answer, TextAnswer):
        return {"kind": "text", "text": answer.text}
    return {"kind": "gaps", "values": list(answer.values)}


def _decode_answer(payload: dict[str, Any]) -> Answer | None:
    kind = payload.get("kind")
    try:
        if kind == "choice":
            return ChoiceAnswer(int(payload["index"]))
        if kind == "multi":
            return MultiChoiceAnswer(frozenset(int(i) for i in payload["indices"]))
        if kind == "text":
            return TextAnswer(str(payload["text"]))
    except (KeyError, TypeError, ValueError):
        return None
    return None


def session_to_draft(session: QuizSession) -> dict[str, Any]:
    """JSON-compatible snapshot of the learner's progress."""
    return {
        "session_id": session.session_id,
        "seed": session.seed,
        "state": session.state.value,
        "current_index": session.current_index,
        "attempt": session.attempt,
        "answers": {qid: _encode_answer(answer) for qid, answer in session.answers.items()},
        "gap_answers": {qid: list(values) for qid, values in session.gap_answers.items()},
    }


def _mapping(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def restore_draft(session: QuizSession, draft: dict[str, Any]) -> QuizSession:
    """Re-apply a saved draft onto a session whose content has arrived.

    Anything that does not fit the loaded content (unknown questions, a
    state from the other display mode, an out-of-range index) is dropped
    rather than trusted.
    """
    if not session.is_ready:
        return session

    known = {q.id: q for q in session.questions}
    answers: dict[str, Answer] = {}
    for qid, payload in _mapping(draft.get("answers")).items():
        question = known.get(qid)
        answer = _decode_answer(payload) if isinstance(payload, dict) else None
        if question is not None and answer is not None and not question.has_gaps:
            answers[qid] = answer
    gap_answers: dict[str, tuple[str, ...]] = {}
    for qid, values in _mapping(draft.get("gap_answers")).items():
        question = known.get(qid)
        if question is not None and question.has_gaps and isinstance(values, list):
            gap_answers[qid] = tuple(str(v) for v in values)

    allowed = _FEED_STATES if session.is_feed else _SEQUENTIAL_STATES
    try:
        state = QuizState(draft.get("state"))
    except ValueError:
        state = session.state
    if state not in allowed:
        state = session.state

    current_index = draft.get("current_index", 0)
    if not isinstance(current_index, int) or not 0 <= current_index < max(len(session.questions), 1):
        current_index = 0

    seed = draft.get("seed", session.seed)
    if not isinstance(seed, int) or isinstance(seed, bool):
        seed = session.seed
    display_order = session.display_order
    if seed != session.seed:
        display_order = DisplayOrder.build(session.questions, seed)

    attempt = draft.get("attempt", session.attempt)
    return replace(
        session,
        seed=seed,
        state=state,
        current_index=current_index,
        answers=answers,
        gap_answers=gap_answers,
        revealed=state in (QuizState.RESULT, QuizState.COMPLETED, QuizState.CHECKED),
        attempt=attempt if isinstance(attempt, int) and attempt > 0 else session.attempt,
        display_order=display_order,
    )
