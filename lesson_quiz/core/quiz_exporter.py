"""Utilities for exporting quizzes to the JSON format used for imports."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from lesson_quiz.constants.quiz_constants import DEFAULT_GAP_SEPARATOR
from lesson_quiz.core.models import Question, QuizDocument


def save_quiz_to_file(file_path: Path, document: QuizDocument) -> None:
    """Persist the quiz document to disk in the import format."""

    if not document.questions:
        raise ValueError("Cannot export an empty quiz.")

    file_path = file_path.resolve()
    file_path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(serialize_document(document), ensure_ascii=False, indent=2)
    file_path.write_text(text + "\n", encoding="utf-8")


def serialize_document(document: QuizDocument) -> dict[str, Any]:
    data: dict[str, Any] = {
        "title": document.title,
        "display_mode": document.display_mode.value,
        "questions": [_serialize_question(question) for question in document.questions],
    }
    if document.time_limit_minutes is not None:
        data["time_limit_minutes"] = document.time_limit_minutes
    if document.media_url:
        data["quiz_media_url"] = document.media_url
        data["quiz_media_type"] = document.media_type
    return data


def _serialize_question(question: Question) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": question.id,
        "question_type": question.question_type.value,
        "question_text": question.prompt,
        "points": question.points,
    }
    if question.content_text:
        data["content_text"] = question.content_text
    if question.options:
        data["options"] = [
            {"id": option.id, "letter": option.letter, "text": option.text, "is_correct": option.is_correct}
            for option in question.options
        ]
    correct = question.correct_answer
    if correct is not None:
        data["correct_answer"] = list(correct) if isinstance(correct, tuple) else correct
    if question.explanation:
        data["explanation"] = question.explanation
    if question.media_url:
        data["media_url"] = question.media_url
        data["media_type"] = question.media_type
    if question.gap_separator != DEFAULT_GAP_SEPARATOR:
        data["gap_separator"] = question.gap_separator
    return data
