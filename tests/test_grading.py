import pytest

from conftest import choice_options
from lesson_quiz.core.answers import AnswerStatus
from lesson_quiz.core.models import (
    ChoiceAnswer,
    GapAnswer,
    ManualGradeRecord,
    Question,
    QuestionType,
    TextAnswer,
)
from lesson_quiz.core.services.display_order import DisplayOrder
from lesson_quiz.core.services.grading import (
    NumberRange,
    SessionStatus,
    display_numbering,
    grade,
    grade_session,
    item_count,
    pass_message,
    total_items,
)
from lesson_quiz.core.services.quiz_session import ContentArrived, SelectOption, StartQuiz, new_session, reduce


def choice(question_id: str, correct: int = 0) -> Question:
    return Question(
        id=question_id,
        question_type=QuestionType.SINGLE_CHOICE,
        prompt=f"Question {question_id}",
        options=choice_options("yes", "no"),
        correct_answer=correct,
    )


@pytest.fixture
def three_gaps() -> Question:
    return Question(
        id="gaps",
        question_type=QuestionType.FILL_BLANK,
        prompt="Fill in.",
        content_text="Red [[apple,pear]], yellow [[banana,lime]], green [[lime,lemon]].",
    )


def test_mixed_quiz_aggregation(three_gaps):
    questions = [choice("a"), choice("b"), three_gaps]
    answers = {
        "a": ChoiceAnswer(0),
        "b": ChoiceAnswer(1),
        "gaps": GapAnswer(("apple", "banana", "lemon")),
    }

    result = grade(questions, answers)

    stats = result.statistics
    assert (stats.total_gaps, stats.correct_gaps) == (3, 2)
    assert (stats.regular_questions, stats.correct_regular) == (2, 1)
    assert result.score == pytest.approx(0.6)
    assert result.score_percentage == 60
    assert result.passed
    assert result.status is SessionStatus.PASSED


def test_gap_items_carry_expected_value(three_gaps):
    result = grade([three_gaps], {"gaps": GapAnswer(("apple", "", "lemon"))})

    assert [(item.number, item.gap_index, item.status, item.expected) for item in result.items] == [
        (1, 0, AnswerStatus.CORRECT, "apple"),
        (2, 1, AnswerStatus.UNANSWERED, "banana"),
        (3, 2, AnswerStatus.INCORRECT, "lime"),
    ]


def test_below_threshold_fails():
    result = grade([choice("a"), choice("b"), choice("c")], {"a": ChoiceAnswer(0), "b": ChoiceAnswer(1)})

    assert result.score == pytest.approx(1 / 3)
    assert not result.passed
    assert result.status is SessionStatus.FAILED
    assert "minimum 50% required to continue" in pass_message(result)


def test_exactly_half_passes():
    result = grade([choice("a"), choice("b")], {"a": ChoiceAnswer(0), "b": ChoiceAnswer(1)})

    assert result.passed
    assert pass_message(result) == "Passed with 50%."


def test_pending_manual_item_forces_review(long_text):
    questions = [choice("a"), long_text]
    answers = {"a": ChoiceAnswer(0), long_text.id: TextAnswer("Light becomes sugar.")}

    result = grade(questions, answers)

    assert result.status is SessionStatus.PENDING_REVIEW
    assert result.statistics.pending_manual == 1
    assert result.statistics.total_items == 1
    assert result.score == pytest.approx(1.0)
    assert result.items[1].status is AnswerStatus.UNGRADED
    assert "waiting for review" in pass_message(result)


def test_manual_score_counts_as_partial_credit(long_text):
    questions = [choice("a"), long_text]
    answers = {"a": ChoiceAnswer(1), long_text.id: TextAnswer("Light becomes sugar.")}
    records = {long_text.id: ManualGradeRecord(is_graded=True, score_percentage=80, feedback="Nice")}

    result = grade(questions, answers, records)

    assert result.status is SessionStatus.FAILED
    assert result.score == pytest.approx(0.4)
    assert result.statistics.graded_manual == 1
    assert result.feedback == {long_text.id: "Nice"}
    assert result.items[1].status is AnswerStatus.GRADED


def test_empty_quiz_does_not_pass():
    result = grade([], {})

    assert result.score == 0
    assert not result.passed
    assert result.status is SessionStatus.FAILED


def test_numbering_counts_gaps(three_gaps, text_completion, long_text):
    questions = [choice("a"), three_gaps, text_completion, long_text]

    numbering = display_numbering(questions)

    assert numbering == (
        NumberRange(1, 1),
        NumberRange(2, 4),
        NumberRange(5, 5),
        NumberRange(6, 6),
    )
    assert total_items(questions) == 6
    assert numbering[0].describe(6) == "Question 1 of 6"
    assert numbering[1].describe(6) == "Questions 2–4 of 6"


def test_gap_question_without_gaps_contributes_nothing():
    question = Question(id="none", question_type=QuestionType.FILL_BLANK, prompt="No markers here.")

    assert item_count(question) == 0
    assert display_numbering([question, choice("a")])[1] == NumberRange(1, 1)
    assert grade([question], {}).statistics.total_items == 0


def test_result_ignores_display_order(document):
    results = []
    for seed in (1, 2, 3, 4):
        session = reduce(new_session("s", seed=seed), ContentArrived(document)).session
        session = reduce(session, StartQuiz()).session
        display_index = session.display_order.to_display("q1", 1)
        session = reduce(session, SelectOption("q1", display_index)).session
        assert session.display_order == DisplayOrder.build(document.questions, seed)
        results.append(grade_session(session))

    assert all(result == results[0] for result in results)
    assert results[0].items[0].status is AnswerStatus.CORRECT
