import pytest

from classes.errors import ValidationError
from classes.question_types import normalize_question, normalize_correct_answer


def test_multiple_choice_index_becomes_option_text():
    options, answer = normalize_correct_answer("MULTIPLE_CHOICE", 1, ["Nile", "Amazon", "Yangtze"])
    assert options == ["Nile", "Amazon", "Yangtze"]
    assert answer == "Amazon"


def test_multiple_choice_index_counts_only_non_blank_options():
    options, answer = normalize_correct_answer("MULTIPLE_CHOICE", 1, ["Nile", "  ", "Amazon"])
    assert options == ["Nile", "Amazon"]
    assert answer == "Amazon"


def test_multiple_choice_accepts_option_text():
    _, answer = normalize_correct_answer("MULTIPLE_CHOICE", "Nile", ["Nile", "Amazon"])
    assert answer == "Nile"


@pytest.mark.parametrize("correct_answer", [5, -1, "Danube", True, None])
def test_multiple_choice_rejects_answers_outside_options(correct_answer):
    with pytest.raises(ValidationError):
        normalize_correct_answer("MULTIPLE_CHOICE", correct_answer, ["Nile", "Amazon"])


def test_multiple_choice_needs_two_options():
    with pytest.raises(ValidationError):
        normalize_correct_answer("MULTIPLE_CHOICE", 0, ["Nile", ""])


def test_true_false_accepts_bool_and_strings():
    assert normalize_correct_answer("TRUE_FALSE", True)[1] == "true"
    assert normalize_correct_answer("TRUE_FALSE", "false") == ([], "false")
    with pytest.raises(ValidationError):
        normalize_correct_answer("TRUE_FALSE", "True")


def test_short_answer_is_stored_verbatim():
    assert normalize_correct_answer("SHORT_ANSWER", " Paris ") == ([], " Paris ")
    with pytest.raises(ValidationError):
        normalize_correct_answer("SHORT_ANSWER", "   ")


def test_normalize_question_fills_defaults_and_uppercases_type():
    fields = normalize_question({"text": "2 + 2?", "type": "short_answer", "correct_answer": "4"})
    assert fields == {
        "text": "2 + 2?",
        "type": "SHORT_ANSWER",
        "options": [],
        "correct_answer": "4",
        "points": 1,
        "image_url": None,
    }


@pytest.mark.parametrize("points", [0, -2, 1.5, "3", True])
def test_normalize_question_rejects_bad_points(points):
    with pytest.raises(ValidationError):
        normalize_question({"text": "Q", "type": "TRUE_FALSE", "correct_answer": "true", "points": points})


def test_normalize_question_rejects_unknown_type():
    with pytest.raises(ValidationError):
        normalize_question({"text": "Q", "type": "ESSAY", "correct_answer": "x"})


def test_editing_type_rechecks_the_stored_answer(app, course):
    from conftest import quiz_named
    short_answer = quiz_named(course, "Capitals").questions[1]

    # "Paris" is not a valid true/false answer
    with pytest.raises(ValidationError):
        normalize_question({"type": "TRUE_FALSE"}, existing=short_answer)

    fields = normalize_question({"points": 5}, existing=short_answer)
    assert fields["correct_answer"] == "Paris"
    assert fields["points"] == 5
