"""Business logic for one learner's quiz session, shared by API and CLI."""

from __future__ import annotations

import logging
import random
from threading import Lock
from uuid import uuid4

from lesson_quiz.constants.quiz_constants import PASS_THRESHOLD, RERENDER_DELAY_SECONDS
from lesson_quiz.core.answers import is_auto_graded
from lesson_quiz.core.formula_spanner import DeferredRender
from lesson_quiz.core.markdown_math_renderer import MarkdownMathRenderer
from lesson_quiz.core.models import DisplayMode, ManualGradeRecord, QuizDocument
from lesson_quiz.core.question_renderer import QuestionView, render_question_view
from lesson_quiz.core.services.collaborators import (
    CollaboratorUnavailableError,
    ContentSource,
    DraftStore,
    ManualGradingStore,
)
from lesson_quiz.core.services.grading import (
    GradingResult,
    NumberRange,
    display_numbering,
    grade_session,
    total_items,
)
from lesson_quiz.core.services.quiz_repository import QuizRepository
from lesson_quiz.core.services.quiz_session import (
    AdvanceQuestion,
    CheckAll,
    CheckAnswer,
    ContentArrived,
    EnterText,
    Event,
    FillGap,
    QuizSession,
    QuizState,
    Retake,
    SelectOption,
    StartQuiz,
    ToggleOption,
    Transition,
    new_session,
    reduce,
    restore_draft,
    session_to_draft,
)
from lesson_quiz.core.typesetting import MathJaxTypesetter, Typesetter

logger = logging.getLogger(__name__)

_REVEALED_STATES = frozenset({QuizState.RESULT, QuizState.COMPLETED, QuizState.CHECKED})


class QuizManager:
    """Facade over the session reducer, grading and rendering.

    Every collaborator is passed in explicitly. The manager is created
    before its content may be available; until ``load_content`` or
    ``receive_content`` succeeds the session stays ``stalled`` and rejects
    learner actions.
    """

    def __init__(
        self,
        content_source: ContentSource | None = None,
        typesetter: Typesetter | None = None,
        grading_store: ManualGradingStore | None = None,
        draft_store: DraftStore | None = None,
        session_id: str | None = None,
        seed: int | None = None,
        display_mode: DisplayMode | None = None,
        pass_threshold: float = PASS_THRESHOLD,
        rerender_delay_seconds: float = RERENDER_DELAY_SECONDS,
    ) -> None:
        self._lock = Lock()

        # Collaborators
        self._content_source = content_source
        self._grading_store = grading_store
        self._draft_store = draft_store
        self._renderer = MarkdownMathRenderer(typesetter=typesetter or MathJaxTypesetter())

        # Session
        if seed is None:
            seed = random.SystemRandom().randrange(2**32)
        self._session: QuizSession = new_session(session_id or uuid4().hex, seed, display_mode)
        self._repository = QuizRepository()
        self._document: QuizDocument | None = None
        self._grading: GradingResult | None = None
        self._pass_threshold = pass_threshold
        self._deferred_render = DeferredRender(rerender_delay_seconds)
        self._closed = False

    # --- Content ---

    def load_content(self) -> bool:
        """Pull the quiz from the content source. Returns True once ready."""
        if self.is_ready():
            return True
        if self._content_source is None:
            logger.info("No content source configured; session %s stays stalled.", self.session_id)
            return False
        try:
            document = self._content_source.load()
        except CollaboratorUnavailableError as exc:
            logger.warning("Content source unavailable for session %s: %s", self.session_id, exc)
            return False
        if document is None:
            logger.info("Quiz content not ready yet for session %s.", self.session_id)
            return False
        return self.receive_content(document).accepted

    def receive_content(self, document: QuizDocument) -> Transition:
        """Accept content pushed by the content collaborator."""
        with self._lock:
            if not self._session.is_ready:
                try:
                    self._repository.load_questions(document.questions)
                except ValueError as exc:
                    logger.warning("Rejected quiz content for session %s: %s", self.session_id, exc)
                    return Transition(self._session, accepted=False, reason=str(exc))
            transition = self._apply_locked(ContentArrived(document))
            if transition.accepted:
                self._document = document
                logger.info(
                    "Loaded quiz '%s' with %d questions for session %s.",
                    document.title,
                    len(document.questions),
                    self.session_id,
                )
        if transition.accepted and not self._closed:
            self._deferred_render.schedule(self._warm_render_cache)
        return transition

    def is_ready(self) -> bool:
        with self._lock:
            return self._session.is_ready

    @property
    def session_id(self) -> str:
        return self._session.session_id

    def get_document(self) -> QuizDocument | None:
        with self._lock:
            return self._document

    # --- Learner events ---

    def dispatch(self, event: Event) -> Transition:
        with self._lock:
            return self._apply_locked(event)

    def start_quiz(self) -> Transition:
        return self.dispatch(StartQuiz())

    def select_option(self, question_id: str, display_index: int) -> Transition:
        return self.dispatch(SelectOption(question_id, display_index))

    def toggle_option(self, question_id: str, display_index: int) -> Transition:
        return self.dispatch(ToggleOption(question_id, display_index))

    def enter_text(self, question_id: str, text: str) -> Transition:
        return self.dispatch(EnterText(question_id, text))

    def fill_gap(self, question_id: str, gap_index: int, value: str) -> Transition:
        return self.dispatch(FillGap(question_id, gap_index, value))

    def check_answer(self) -> Transition:
        return self.dispatch(CheckAnswer())

    def advance(self) -> Transition:
        return self.dispatch(AdvanceQuestion())

    def check_all(self) -> Transition:
        return self.dispatch(CheckAll())

    def retake(self) -> Transition:
        return self.dispatch(Retake())

    # --- Queries ---

    def get_session(self) -> QuizSession:
        with self._lock:
            return self._session

    def get_state(self) -> QuizState:
        with self._lock:
            return self._session.state

    def get_grading(self) -> GradingResult | None:
        """Result of the last reveal, or None while nothing is revealed."""
        with self._lock:
            return self._grading if self._session.revealed else None

    def refresh_grading(self) -> GradingResult | None:
        """Recompute grading, e.g. after an external grader supplied a score."""
        with self._lock:
            if not self._session.revealed:
                return None
            self._grading = self._grade_locked()
            return self._grading

    def get_numbering(self) -> tuple[NumberRange, ...]:
        with self._lock:
            return display_numbering(self._session.questions)

    def get_total_items(self) -> int:
        with self._lock:
            return total_items(self._session.questions)

    def get_current_view(self) -> QuestionView | None:
        """View of the current question in sequential mode."""
        with self._lock:
            session = self._session
            if session.state not in (QuizState.QUESTION, QuizState.RESULT):
                return None
            question = session.current_question
            if question is None:
                return None
            return self._view_locked(session.current_index)

    def get_all_views(self) -> list[QuestionView]:
        """Views of every question, as shown in the feed."""
        with self._lock:
            if not self._session.is_ready:
                return []
            return [self._view_locked(index) for index in range(len(self._session.questions))]

    def get_question_view(self, question_id: str) -> QuestionView:
        with self._lock:
            for index, question in enumerate(self._session.questions):
                if question.id == question_id:
                    return self._view_locked(index)
        raise KeyError(question_id)

    # --- Drafts ---

    def save_draft(self) -> bool:
        with self._lock:
            return self._save_draft_locked()

    def resume_draft(self) -> bool:
        """Re-apply a stored draft. Returns True if one was applied."""
        if self._draft_store is None:
            return False
        try:
            draft = self._draft_store.load(self.session_id)
        except CollaboratorUnavailableError as exc:
            logger.warning("Draft store unavailable for session %s: %s", self.session_id, exc)
            return False
        if not draft:
            return False
        with self._lock:
            if not self._session.is_ready:
                return False
            self._session = restore_draft(self._session, draft)
            self._grading = self._grade_locked() if self._session.revealed else None
        logger.info("Resumed draft for session %s.", self.session_id)
        return True

    # --- Teardown ---

    def close(self) -> None:
        """Drop pending work; the session's in-memory state is discarded."""
        self._closed = True
        if self._deferred_render.cancel():
            logger.debug("Cancelled pending re-render for session %s.", self.session_id)

    # --- Internals ---

    def _apply_locked(self, event: Event) -> Transition:
        transition = reduce(self._session, event)
        self._session = transition.session
        if not transition.accepted:
            return transition
        if transition.reveal:
            self._grading = self._grade_locked()
        elif not self._session.revealed:
            self._grading = None
        if not isinstance(event, ContentArrived):
            self._save_draft_locked()
        return transition

    def _manual_records_locked(self) -> dict[str, ManualGradeRecord]:
        records: dict[str, ManualGradeRecord] = {}
        if self._grading_store is None:
            return records
        for question in self._session.questions:
            if is_auto_graded(question):
                continue
            try:
                record = self._grading_store.lookup(self.session_id, question.id)
            except CollaboratorUnavailableError as exc:
                logger.warning("Manual grading lookup failed for %s: %s", question.id, exc)
                continue
            if record is not None:
                records[question.id] = record
        return records

    def _grade_locked(self) -> GradingResult:
        result = grade_session(self._session, self._manual_records_locked(), self._pass_threshold)
        logger.info(
            "Session %s graded: %.0f%% (%s)",
            self.session_id,
            result.score_percentage,
            result.status.value,
        )
        return result

    def _view_locked(self, index: int) -> QuestionView:
        session = self._session
        question = session.questions[index]
        numbering = display_numbering(session.questions)[index]
        revealed = session.state in _REVEALED_STATES and (
            session.is_feed or index <= session.current_index
        )
        return render_question_view(
            self._renderer,
            session,
            question,
            numbering,
            total_items(session.questions),
            self._grading if revealed else None,
        )

    def _save_draft_locked(self) -> bool:
        if self._draft_store is None or not self._session.is_ready:
            return False
        try:
            self._draft_store.save(self.session_id, session_to_draft(self._session))
        except CollaboratorUnavailableError as exc:
            logger.warning("Could not save draft for session %s: %s", self.session_id, exc)
            return False
        return True

    def _warm_render_cache(self) -> None:
        if self._closed:
            return
        with self._lock:
            questions = self._session.questions
            for question in questions:
                if question.prompt:
                    self._renderer.render_fragment(question.prompt)
                for option in question.options:
                    self._renderer.render_fragment(option.text)
        logger.debug("Pre-rendered %d questions for session %s.", len(questions), self.session_id)
