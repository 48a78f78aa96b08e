"""Utilities for importing quiz documents from JSON.

Document shape::

    {
      "title": "Fractions",
      "display_mode": "one_by_one" | "all_at_once",
      "time_limit_minutes": 10,            (optional)
      "questions": [
        {
          "id": "q1",                      (optional, defaults to q<position>)
          "question_type": "fill_blank",
          "question_text": "Complete the sentence.",
          "content_text": "The sky is [[blue,green,red]].",
          "options": [...],                (choice types; strings or objects)
          "correct_answer": ...,           (shape depends on the type)
          "points": 1,
          "explanation": "...",
          "media_url": null,
          "gap_separator": ","
        }
      ]
    }

Architecture note:
    Conversion and validation live here so the server and the content
    collaborators can share one entry point. Content rules that hold for
    any source (one correct option, gap counts) are enforced by
    ``QuizRepository.validate_question`` and surface as ``QuizImportError``.
"""

from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
from typing import Any

from lesson_quiz.constants.quiz_constants import DEFAULT_GAP_SEPARATOR, OPTION_LETTERS, SHORT_ANSWER_DELIMITER
from lesson_quiz.core.models import (
    CorrectAnswer,
    DisplayMode,
    Option,
    Question,
    QuestionType,
    QuizDocument,
)
from lesson_quiz.core.services.quiz_repository import QuizRepository


class QuizImportError(Exception):
    """Raised when a quiz definition cannot be parsed."""


@dataclass(slots=True)
class ImportedQuiz:
    """Container for imported quiz metadata and questions."""

    source_path: Path
    document: QuizDocument


def load_quiz_from_file(file_path: Path) -> ImportedQuiz:
    text = file_path.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise QuizImportError(f"Quiz file is not valid JSON: {exc.msg} (line {exc.lineno}).") from exc
    return ImportedQuiz(source_path=file_path, document=parse_quiz_document(data))


def parse_quiz_document(data: Any) -> QuizDocument:
    if not isinstance(data, dict):
        raise QuizImportError("Quiz document must be a JSON object.")

    raw_questions = data.get("questions")
    if not isinstance(raw_questions, list) or not raw_questions:
        raise QuizImportError("Quiz document did not contain any questions.")

    try:
        display_mode = DisplayMode(data.get("display_mode") or DisplayMode.ONE_BY_ONE.value)
    except ValueError as exc:
        raise QuizImportError(f"Unknown display_mode '{data.get('display_mode')}'.") from exc

    time_limit = data.get("time_limit_minutes")
    if time_limit is not None and (not isinstance(time_limit, int) or time_limit <= 0):
        raise QuizImportError("time_limit_minutes must be a positive integer.")

    questions = [_parse_question(raw, position) for position, raw in enumerate(raw_questions, start=1)]
    try:
        QuizRepository().load_questions(questions)
    except ValueError as exc:
        raise QuizImportError(str(exc)) from exc

    return QuizDocument(
        title=str(data.get("title") or "").strip(),
        questions=tuple(questions),
        display_mode=display_mode,
        time_limit_minutes=time_limit,
        media_url=data.get("quiz_media_url") or data.get("media_url"),
        media_type=data.get("quiz_media_type") or data.get("media_type"),
    )


def _parse_question(raw: Any, position: int) -> Question:
    if not isinstance(raw, dict):
        raise QuizImportError(f"Question {position} must be an object.")

    try:
        question_type = QuestionType(raw.get("question_type"))
    except ValueError as exc:
        raise QuizImportError(
            f"Question {position}: unknown question_type '{raw.get('question_type')}'."
        ) from exc

    options = _parse_options(raw.get("options") or [], position)
    points = raw.get("points", 1)
    if not isinstance(points, int) or isinstance(points, bool):
        raise QuizImportError(f"Question {position}: points must be an integer.")

    return Question(
        id=str(raw.get("id") or f"q{position}"),
        question_type=question_type,
        prompt=str(raw.get("question_text") or raw.get("prompt") or "").strip(),
        content_text=str(raw.get("content_text") or ""),
        options=options,
        correct_answer=_parse_correct_answer(question_type, raw.get("correct_answer"), options, position),
        points=points,
        explanation=str(raw.get("explanation") or ""),
        media_url=raw.get("media_url"),
        media_type=raw.get("media_type"),
        gap_separator=str(raw.get("gap_separator") or DEFAULT_GAP_SEPARATOR),
    )


def _parse_options(raw_options: Any, position: int) -> tuple[Option, ...]:
    if not isinstance(raw_options, list):
        raise QuizImportError(f"Question {position}: options must be a list.")
    if len(raw_options) > len(OPTION_LETTERS):
        raise QuizImportError(f"Question {position}: too many options.")

    options: list[Option] = []
    for idx, raw in enumerate(raw_options):
        letter = OPTION_LETTERS[idx]
        if isinstance(raw, str):
            options.append(Option(id=str(idx), letter=letter, text=raw.strip()))
        elif isinstance(raw, dict):
            options.append(
                Option(
                    id=str(raw.get("id", idx)),
                    letter=str(raw.get("letter") or letter),
                    text=str(raw.get("text") or "").strip(),
                    is_correct=bool(raw.get("is_correct", False)),
                )
            )
        else:
            raise QuizImportError(f"Question {position}: option {letter} must be text or an object.")
    return tuple(options)


def _option_index(value: Any, options: tuple[Option, ...], position: int) -> int:
    if isinstance(value, bool):
        raise QuizImportError(f"Question {position}: correct_answer must be an option index.")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        letter = value.strip().upper()
        for idx, option in enumerate(options):
            if option.letter.upper() == letter:
                return idx
    raise QuizImportError(f"Question {position}: correct_answer '{value}' does not name an option.")


def _parse_correct_answer(
    question_type: QuestionType,
    value: Any,
    options: tuple[Option, ...],
    position: int,
) -> CorrectAnswer:
    if value is None or question_type is QuestionType.LONG_TEXT:
        return None
    if question_type in (QuestionType.SINGLE_CHOICE, QuestionType.MEDIA_QUESTION):
        return _option_index(value, options, position)
    if question_type is QuestionType.MULTIPLE_CHOICE:
        values = value if isinstance(value, list) else [value]
        return tuple(sorted({_option_index(item, options, position) for item in values}))
    if question_type in (QuestionType.FILL_BLANK, QuestionType.TEXT_COMPLETION):
        values = value if isinstance(value, list) else [value]
        return tuple(str(item) for item in values)
    if isinstance(value, list):
        return SHORT_ANSWER_DELIMITER.join(str(item) for item in value)
    return str(value)
