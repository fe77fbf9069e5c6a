"""Question variants and the authoring-side normalization of their answers.

Authoring clients send ``correct_answer`` in whatever shape their widget
produces: an option index for multiple choice, a bool or "true"/"false" for
true/false, free text for short answers. Everything is turned into the
canonical string stored on ``Question.correct_answer`` here, so grading only
ever compares strings.
"""

from classes.errors import ValidationError

MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
TRUE_FALSE = "TRUE_FALSE"
SHORT_ANSWER = "SHORT_ANSWER"

QUESTION_TYPES = (MULTIPLE_CHOICE, TRUE_FALSE, SHORT_ANSWER)
TRUE_FALSE_ANSWERS = ("true", "false")


def _clean_options(options):
    if not isinstance(options, list):
        raise ValidationError("options must be a list")
    cleaned = []
    for option in options:
        if not isinstance(option, str):
            raise ValidationError("options must be strings")
        if option.strip():
            cleaned.append(option)
    if len(cleaned) < 2:
        raise ValidationError("Multiple-choice questions need at least two options")
    if len(set(cleaned)) != len(cleaned):
        raise ValidationError("Multiple-choice options must be unique")
    return cleaned


def _multiple_choice_answer(correct_answer, options):
    # An int is an index into the cleaned option list, a string must be one of the options
    if isinstance(correct_answer, bool):
        raise ValidationError("Select the correct option")
    if isinstance(correct_answer, int):
        if not 0 <= correct_answer < len(options):
            raise ValidationError("Correct option index is out of range")
        return options[correct_answer]
    if isinstance(correct_answer, str) and correct_answer in options:
        return correct_answer
    raise ValidationError("The correct answer must be one of the options")


def _true_false_answer(correct_answer):
    if isinstance(correct_answer, bool):
        return "true" if correct_answer else "false"
    if correct_answer in TRUE_FALSE_ANSWERS:
        return correct_answer
    raise ValidationError("True/false questions need 'true' or 'false' as the correct answer")


def _short_answer(correct_answer):
    if not isinstance(correct_answer, str) or not correct_answer.strip():
        raise ValidationError("Correct answer is required")
    return correct_answer


def normalize_correct_answer(question_type, correct_answer, options=None):
    """Return ``(options, correct_answer)`` in their canonical stored form."""
    if question_type == MULTIPLE_CHOICE:
        cleaned = _clean_options(options)
        return cleaned, _multiple_choice_answer(correct_answer, cleaned)
    if question_type == TRUE_FALSE:
        return [], _true_false_answer(correct_answer)
    if question_type == SHORT_ANSWER:
        return [], _short_answer(correct_answer)
    raise ValidationError(f"Question type must be one of {', '.join(QUESTION_TYPES)}")


def normalize_question(data, existing=None):
    """Validate an authoring payload and return the fields to store.

    ``existing`` is the stored question when editing; fields missing from
    ``data`` fall back to it, and a new type or options list forces the
    correct answer to be re-checked against them.
    """
    if not isinstance(data, dict):
        raise ValidationError("Each question must be an object")

    def pick(key, default=None):
        if key in data:
            return data[key]
        if existing is not None:
            return getattr(existing, key)
        return default

    text = pick("text")
    if not isinstance(text, str) or not text.strip():
        raise ValidationError("Question text is required")

    question_type = pick("type")
    if isinstance(question_type, str):
        question_type = question_type.upper()

    points = pick("points", 1)
    if isinstance(points, bool) or not isinstance(points, int) or points <= 0:
        raise ValidationError("Points must be a positive integer")

    options, correct_answer = normalize_correct_answer(
        question_type, pick("correct_answer"), pick("options", [])
    )

    return {
        "text": text,
        "type": question_type,
        "options": options,
        "correct_answer": correct_answer,
        "points": points,
        "image_url": pick("image_url"),
    }
