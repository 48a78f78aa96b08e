"""External collaborators of the quiz engine and simple implementations.

The engine owns no global handles. Content, manual grading results and
drafts all come from objects passed into ``QuizManager``; the classes
below cover local files and in-memory use (tests, single-process runs).
Any of them may raise ``CollaboratorUnavailableError``, which the manager
turns into a degraded but well-defined state.
"""

from __future__ import annotations

import json
from pathlib import Path
from threading import Lock
from typing import Any, Protocol

from lesson_quiz.core.models import ManualGradeRecord, QuizDocument
from lesson_quiz.core.quiz_importer import QuizImportError, load_quiz_from_file


class CollaboratorUnavailableError(RuntimeError):
    """Raised when an external collaborator cannot serve a request."""


class ContentSource(Protocol):
    def load(self) -> QuizDocument | None:
        """Return the quiz document, or ``None`` while it is not ready yet."""
        ...


class ManualGradingStore(Protocol):
    def lookup(self, session_id: str, question_id: str) -> ManualGradeRecord | None: ...


class DraftStore(Protocol):
    def save(self, session_id: str, draft: dict[str, Any]) -> None: ...

    def load(self, session_id: str) -> dict[str, Any] | None: ...

    def delete(self, session_id: str) -> None: ...


class StaticContentSource:
    """Serves a document that is already in memory (or not yet)."""

    def __init__(self, document: QuizDocument | None = None) -> None:
        self._document = document

    def publish(self, document: QuizDocument) -> None:
        self._document = document

    def load(self) -> QuizDocument | None:
        return self._document


class FileContentSource:
    """Loads a quiz document from a JSON file on every request."""

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path

    def load(self) -> QuizDocument | None:
        if not self._file_path.exists():
            return None
        try:
            return load_quiz_from_file(self._file_path).document
        except (OSError, UnicodeDecodeError) as exc:
            raise CollaboratorUnavailableError(f"Cannot read {self._file_path}: {exc}") from exc
        except QuizImportError as exc:
            raise CollaboratorUnavailableError(f"Invalid quiz in {self._file_path}: {exc}") from exc


class InMemoryManualGradingStore:
    """Manual grading results recorded by an external grader."""

    def __init__(self) -> None:
        self._records: dict[tuple[str, str], ManualGradeRecord] = {}
        self._lock = Lock()

    def record(self, session_id: str, question_id: str, record: ManualGradeRecord) -> None:
        with self._lock:
            self._records[(session_id, question_id)] = record

    def lookup(self, session_id: str, question_id: str) -> ManualGradeRecord | None:
        with self._lock:
            return self._records.get((session_id, question_id))


class InMemoryDraftStore:
    def __init__(self) -> None:
        self._drafts: dict[str, dict[str, Any]] = {}
        self._lock = Lock()

    def save(self, session_id: str, draft: dict[str, Any]) -> None:
        with self._lock:
            self._drafts[session_id] = json.loads(json.dumps(draft))

    def load(self, session_id: str) -> dict[str, Any] | None:
        with self._lock:
            draft = self._drafts.get(session_id)
            return json.loads(json.dumps(draft)) if draft is not None else None

    def delete(self, session_id: str) -> None:
        with self._lock:
            self._drafts.pop(session_id, None)


class JsonFileDraftStore:
    """One JSON file per session inside ``directory``."""

    def __init__(self, directory: Path) -> None:
        self._directory = directory

    def _path_for(self, session_id: str) -> Path:
        safe_name = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in session_id)
        return self._directory / f"{safe_name}.json"

    def save(self, session_id: str, draft: dict[str, Any]) -> None:
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            self._path_for(session_id).write_text(json.dumps(draft, indent=2), encoding="utf-8")
        except OSError as exc:
            raise CollaboratorUnavailableError(f"Cannot save draft: {exc}") from exc

    def load(self, session_id: str) -> dict[str, Any] | None:
        path = self._path_for(session_id)
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise CollaboratorUnavailableError(f"Cannot read draft: {exc}") from exc
        return data if isinstance(data, dict) else None

    def delete(self, session_id: str) -> None:
        self._path_for(session_id).unlink(missing_ok=True)
