from dataclasses import replace

import pytest

from conftest import choice_options
from lesson_quiz.core.answers import (
    AnswerStatus,
    canonical_gap_answers,
    evaluate,
    gap_count,
    gap_results,
    is_auto_graded,
    is_complete,
    is_correct,
    missing_fields,
)
from lesson_quiz.core.models import (
    ChoiceAnswer,
    GapAnswer,
    ManualGradeRecord,
    MultiChoiceAnswer,
    Question,
    QuestionType,
    TextAnswer,
)

ALL_ANSWER_SHAPES = [
    None,
    ChoiceAnswer(0),
    ChoiceAnswer(99),
    ChoiceAnswer(-1),
    MultiChoiceAnswer(frozenset()),
    MultiChoiceAnswer(frozenset({0, 2})),
    GapAnswer(()),
    GapAnswer(("blue", "green")),
    TextAnswer(""),
    TextAnswer("Jupiter"),
]


def test_single_choice_is_correct_only_for_key(single_choice):
    assert is_correct(single_choice, ChoiceAnswer(1))
    for index in (0, 2, 3, -1):
        assert not is_correct(single_choice, ChoiceAnswer(index))
    assert not is_correct(single_choice, None)
    assert not is_correct(single_choice, MultiChoiceAnswer(frozenset({1})))


def test_single_choice_key_from_flagged_option():
    question = Question(
        id="flagged",
        question_type=QuestionType.SINGLE_CHOICE,
        prompt="Pick B",
        options=choice_options("A", "B", correct=(1,)),
    )

    assert is_correct(question, ChoiceAnswer(1))
    assert not is_correct(question, ChoiceAnswer(0))


def test_multiple_choice_requires_exact_set(multiple_choice):
    assert is_correct(multiple_choice, MultiChoiceAnswer(frozenset({2, 0})))
    assert not is_correct(multiple_choice, MultiChoiceAnswer(frozenset({0})))
    assert not is_correct(multiple_choice, MultiChoiceAnswer(frozenset({0, 1, 2})))
    assert not is_correct(multiple_choice, MultiChoiceAnswer(frozenset()))


def test_gap_answers_compare_trimmed_and_case_insensitive(fill_blank):
    assert gap_count(fill_blank) == 2
    assert canonical_gap_answers(fill_blank) == ("blue", "green")
    assert gap_results(fill_blank, GapAnswer((" BLUE ", "green"))) == (True, True)
    assert is_correct(fill_blank, GapAnswer(("Blue", "Green")))


def test_gap_answers_partially_correct(fill_blank):
    answer = GapAnswer(("blue", "blue"))

    assert gap_results(fill_blank, answer) == (True, False)
    assert not is_correct(fill_blank, answer)


def test_missing_gap_values_are_incorrect(fill_blank):
    assert gap_results(fill_blank, GapAnswer(("blue",))) == (True, False)
    assert gap_results(fill_blank, None) == (False, False)


def test_gap_source_falls_back_to_prompt(text_completion):
    assert gap_count(text_completion) == 1
    assert is_correct(text_completion, GapAnswer(("paris",)))


def test_gap_without_candidates_is_never_correct():
    question = Question(id="g", question_type=QuestionType.TEXT_COMPLETION, prompt="Odd [[ ]] gap [[x]]")

    assert gap_results(question, GapAnswer(("", "x"))) == (False, True)
    assert is_complete(question, GapAnswer(("", "x")))


def test_short_answer_accepts_alternatives(short_answer):
    assert is_correct(short_answer, TextAnswer("jupiter"))
    assert is_correct(short_answer, TextAnswer("  Planet JUPITER "))
    assert not is_correct(short_answer, TextAnswer("Saturn"))
    assert not is_correct(short_answer, TextAnswer("   "))


def test_long_text_is_ungraded_not_incorrect(long_text):
    assert not is_auto_graded(long_text)
    assert evaluate(long_text, TextAnswer("Plants make sugar.")) is AnswerStatus.UNGRADED
    assert evaluate(long_text, None) is AnswerStatus.UNGRADED


def test_manual_record_marks_item_graded(long_text):
    pending = ManualGradeRecord(is_graded=False)
    graded = ManualGradeRecord(is_graded=True, score_percentage=80, feedback="Good")

    assert evaluate(long_text, TextAnswer("x"), pending) is AnswerStatus.UNGRADED
    assert evaluate(long_text, TextAnswer("x"), graded) is AnswerStatus.GRADED


def test_media_question_with_key_is_auto_graded():
    keyed = Question(
        id="m1",
        question_type=QuestionType.MEDIA_QUESTION,
        prompt="Which animal is shown?",
        options=choice_options("Cat", "Dog"),
        correct_answer=1,
        media_url="https://example.org/dog.png",
        media_type="image",
    )
    unkeyed = replace(keyed, id="m2", options=(), correct_answer=None)

    assert evaluate(keyed, ChoiceAnswer(1)) is AnswerStatus.CORRECT
    assert evaluate(keyed, ChoiceAnswer(0)) is AnswerStatus.INCORRECT
    assert evaluate(unkeyed, TextAnswer("a dog")) is AnswerStatus.UNGRADED
    assert missing_fields(unkeyed, None) == ["Enter an answer."]


def test_auto_graded_without_answer_is_unanswered(single_choice):
    assert evaluate(single_choice, None) is AnswerStatus.UNANSWERED


@pytest.mark.parametrize("answer", ALL_ANSWER_SHAPES)
def test_correctness_is_total(answer, single_choice, multiple_choice, fill_blank, short_answer, long_text):
    for question in (single_choice, multiple_choice, fill_blank, short_answer, long_text):
        assert isinstance(is_correct(question, answer), bool)
        assert isinstance(evaluate(question, answer), AnswerStatus)
        assert isinstance(missing_fields(question, answer), list)


def test_missing_fields_per_variant(single_choice, multiple_choice, fill_blank, short_answer):
    assert missing_fields(single_choice, None) == ["Select an option."]
    assert missing_fields(single_choice, ChoiceAnswer(5)) == ["Select an option."]
    assert is_complete(single_choice, ChoiceAnswer(0))
    assert missing_fields(multiple_choice, MultiChoiceAnswer(frozenset())) == ["Select at least one option."]
    assert missing_fields(fill_blank, GapAnswer(("blue", " "))) == ["Fill in gap 2."]
    assert missing_fields(fill_blank, None) == ["Fill in gap 1.", "Fill in gap 2."]
    assert missing_fields(short_answer, TextAnswer("")) == ["Enter an answer."]
