import json

import pytest

from lesson_quiz.core.models import DisplayMode, QuestionType
from lesson_quiz.core.quiz_exporter import save_quiz_to_file, serialize_document
from lesson_quiz.core.quiz_importer import QuizImportError, load_quiz_from_file, parse_quiz_document

SAMPLE_QUIZ = {
    "title": "Fractions",
    "display_mode": "all_at_once",
    "time_limit_minutes": 10,
    "quiz_media_url": "https://example.org/intro.mp4",
    "quiz_media_type": "video",
    "questions": [
        {
            "question_type": "single_choice",
            "question_text": "What is $\\frac{1}{2} + \\frac{1}{2}$?",
            "options": ["0", "1", "2"],
            "correct_answer": "B",
            "explanation": "Halves add up to one.",
        },
        {
            "id": "multi",
            "question_type": "multiple_choice",
            "question_text": "Which are equal to one half?",
            "options": [
                {"text": "2/4", "is_correct": True},
                {"text": "3/4"},
                {"text": "5/10", "is_correct": True},
            ],
        },
        {
            "question_type": "fill_blank",
            "question_text": "Complete.",
            "content_text": "One half is [[0.5;0.25]] as a decimal.",
            "gap_separator": ";",
        },
        {
            "question_type": "short_answer",
            "prompt": "Write one half as a fraction.",
            "correct_answer": ["1/2", "2/4"],
            "points": 2,
        },
        {
            "question_type": "long_text",
            "question_text": "Explain why 2/4 equals 1/2.",
        },
    ],
}


def test_parse_full_document():
    document = parse_quiz_document(SAMPLE_QUIZ)

    assert document.title == "Fractions"
    assert document.display_mode is DisplayMode.ALL_AT_ONCE
    assert document.time_limit_minutes == 10
    assert document.media_url == "https://example.org/intro.mp4"
    first, multi, gaps, short, essay = document.questions
    assert first.id == "q1"
    assert first.correct_answer == 1
    assert [option.letter for option in first.options] == ["A", "B", "C"]
    assert multi.id == "multi"
    assert [option.is_correct for option in multi.options] == [True, False, True]
    assert gaps.gap_separator == ";"
    assert short.prompt == "Write one half as a fraction."
    assert short.correct_answer == "1/2|2/4"
    assert short.points == 2
    assert essay.question_type is QuestionType.LONG_TEXT
    assert essay.correct_answer is None


@pytest.mark.parametrize(
    ("data", "message"),
    [
        ([], "must be a JSON object"),
        ({"questions": []}, "did not contain any questions"),
        ({"questions": [{"question_type": "essay", "question_text": "x"}]}, "unknown question_type"),
        ({"display_mode": "sideways", "questions": [{}]}, "Unknown display_mode"),
        (
            {"questions": [{"question_type": "single_choice", "question_text": "x", "options": ["a", "b"]}]},
            "exactly one correct option",
        ),
        (
            {"questions": [{"question_type": "single_choice", "question_text": "x", "options": ["a"], "correct_answer": "Z"}]},
            "does not name an option",
        ),
        (
            {
                "questions": [
                    {"question_type": "fill_blank", "question_text": "[[a]] and [[b]]", "correct_answer": ["a"]}
                ]
            },
            "1 correct answers given for 2 gaps",
        ),
        ({"questions": [{"question_type": "short_answer", "question_text": "x"}]}, "accepted answer"),
        (
            {
                "questions": [
                    {"id": "same", "question_type": "long_text", "question_text": "x"},
                    {"id": "same", "question_type": "long_text", "question_text": "y"},
                ]
            },
            "duplicate id",
        ),
    ],
)
def test_invalid_documents_are_rejected(data, message):
    with pytest.raises(QuizImportError, match=message):
        parse_quiz_document(data)


def test_invalid_json_file(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(QuizImportError, match="not valid JSON"):
        load_quiz_from_file(path)


def test_export_then_import_keeps_document(tmp_path):
    document = parse_quiz_document(SAMPLE_QUIZ)
    path = tmp_path / "out" / "quiz.json"

    save_quiz_to_file(path, document)

    assert json.loads(path.read_text(encoding="utf-8"))["questions"][2]["gap_separator"] == ";"
    assert load_quiz_from_file(path).document == document


def test_export_rejects_empty_quiz(tmp_path):
    document = parse_quiz_document(SAMPLE_QUIZ)

    with pytest.raises(ValueError):
        save_quiz_to_file(tmp_path / "empty.json", type(document)(title="Empty", questions=()))


def test_serialized_short_answer_keeps_delimited_string():
    data = serialize_document(parse_quiz_document(SAMPLE_QUIZ))

    assert data["questions"][3]["correct_answer"] == "1/2|2/4"
    assert "correct_answer" not in data["questions"][4]
