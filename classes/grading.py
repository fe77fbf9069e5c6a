"""Quiz grading.

``grade_quiz`` is a pure function: it reads question attributes and the
submitted answers and returns a ``GradingResult``. Persisting the outcome is
left to ``SubmissionManager``.
"""

import math
from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class GradedAnswer:
    question_id: int
    student_answer: str
    correct_answer: str
    is_correct: bool
    points_earned: int
    points: int

    def to_dict(self):
        return {
            "question_id": self.question_id,
            "student_answer": self.student_answer,
            "correct_answer": self.correct_answer,
            "is_correct": self.is_correct,
            "points_earned": self.points_earned,
            "points": self.points,
        }


@dataclass(frozen=True)
class GradingResult:
    score: int
    total_points: int
    percentage: int
    answers: List[GradedAnswer] = field(default_factory=list)

    @property
    def correct_count(self):
        return sum(1 for answer in self.answers if answer.is_correct)

    def to_dict(self):
        return {
            "score": self.score,
            "total_points": self.total_points,
            "percentage": self.percentage,
            "correct_count": self.correct_count,
            "answers": [answer.to_dict() for answer in self.answers],
        }


def compute_percentage(score, total_points):
    """Percentage rounded half up; 0 when the quiz is worth nothing."""
    if total_points <= 0:
        return 0
    return int(math.floor(100 * score / total_points + 0.5))


def is_answer_correct(question, submitted_answer):
    # Exact match for every question type, case and whitespace included
    return submitted_answer == question.correct_answer


def index_answers(submitted_answers):
    """Map question id (as text) to answer; the last entry for an id wins."""
    answers = {}
    for entry in submitted_answers or []:
        answers[str(entry["question_id"])] = entry.get("answer") or ""
    return answers


def grade_quiz(questions, submitted_answers):
    """Grade ``submitted_answers`` (``[{"question_id", "answer"}]``) against ``questions``.

    Answers are matched to questions by id, not by order. Questions without a
    submitted answer are graded against an empty string.
    """
    by_question = index_answers(submitted_answers)

    graded = []
    for question in questions:
        student_answer = by_question.get(str(question.id), "")
        correct = is_answer_correct(question, student_answer)
        graded.append(GradedAnswer(
            question_id=question.id,
            student_answer=student_answer,
            correct_answer=question.correct_answer,
            is_correct=correct,
            points_earned=question.points if correct else 0,
            points=question.points,
        ))

    score = sum(answer.points_earned for answer in graded)
    total_points = sum(answer.points for answer in graded)

    return GradingResult(
        score=score,
        total_points=total_points,
        percentage=compute_percentage(score, total_points),
        answers=graded,
    )
