from dataclasses import replace

import pytest

from lesson_quiz.core.models import DisplayMode, Option, Question, QuestionType, QuizDocument


def choice_options(*texts: str, correct: tuple[int, ...] = ()) -> tuple[Option, ...]:
    letters = "ABCDEFGH"
    return tuple(
        Option(id=str(idx), letter=letters[idx], text=text, is_correct=idx in correct)
        for idx, text in enumerate(texts)
    )


@pytest.fixture
def single_choice() -> Question:
    return Question(
        id="q1",
        question_type=QuestionType.SINGLE_CHOICE,
        prompt="What is $2+2$?",
        options=choice_options("3", "4", "5"),
        correct_answer=1,
        explanation="Two plus two is **four**.",
    )


@pytest.fixture
def multiple_choice() -> Question:
    return Question(
        id="q2",
        question_type=QuestionType.MULTIPLE_CHOICE,
        prompt="Pick the prime numbers.",
        options=choice_options("2", "4", "5", "9"),
        correct_answer=(0, 2),
    )


@pytest.fixture
def fill_blank() -> Question:
    return Question(
        id="q3",
        question_type=QuestionType.FILL_BLANK,
        prompt="Complete the sentence.",
        content_text="The sky is [[blue,green,red]] and grass is [[green,blue]].",
    )


@pytest.fixture
def text_completion() -> Question:
    return Question(
        id="q4",
        question_type=QuestionType.TEXT_COMPLETION,
        prompt="The capital of France is [[Paris]].",
    )


@pytest.fixture
def short_answer() -> Question:
    return Question(
        id="q5",
        question_type=QuestionType.SHORT_ANSWER,
        prompt="Name the largest planet.",
        correct_answer="Jupiter|planet Jupiter",
    )


@pytest.fixture
def long_text() -> Question:
    return Question(
        id="q6",
        question_type=QuestionType.LONG_TEXT,
        prompt="Explain photosynthesis in your own words.",
    )


@pytest.fixture
def document(single_choice, multiple_choice, fill_blank, text_completion, short_answer) -> QuizDocument:
    """Auto-graded quiz with 6 items (the fill_blank question has two gaps)."""
    return QuizDocument(
        title="Mixed quiz",
        questions=(single_choice, multiple_choice, fill_blank, text_completion, short_answer),
    )


@pytest.fixture
def feed_document(document) -> QuizDocument:
    return replace(document, display_mode=DisplayMode.ALL_AT_ONCE)


@pytest.fixture
def manual_document(single_choice, long_text) -> QuizDocument:
    return QuizDocument(title="With essay", questions=(single_choice, long_text))
