import logging

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.quiz_results import QuizResult
from models.quiz_answers import QuizAnswer
from classes.attempt_tracker import AttemptTracker
from classes.errors import ValidationError, PersistenceFailure
from classes.grading import grade_quiz
from utils.helpers import utcnow

logger = logging.getLogger(__name__)


class SubmissionManager:
    @staticmethod
    def parse_answers(payload):
        """Validate the ``answers`` list of a submission request.

        Accepts ``[{"question_id": .., "answer": ..}]``; a missing or null
        answer counts as unanswered.
        """
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise ValidationError("answers must be a list")

        answers = []
        for entry in payload:
            if not isinstance(entry, dict) or entry.get("question_id") in (None, ""):
                raise ValidationError("Each answer needs a question_id")
            answer = entry.get("answer")
            if answer is None:
                answer = ""
            if not isinstance(answer, str):
                raise ValidationError("Answers must be strings")
            answers.append({"question_id": entry["question_id"], "answer": answer})
        return answers

    @staticmethod
    def submit(quiz, student_id, answers, auto_submitted=False):
        """Grade a submission and store it as a new QuizResult.

        Grading happens fully in memory; the result, its answers and the
        closing of the attempt marker are written in a single commit.
        """
        result_count = AttemptTracker.result_count(quiz.id, student_id)
        AttemptTracker.check_can_submit(quiz.max_attempts, result_count)

        grading = grade_quiz(quiz.questions, answers)
        submitted_at = utcnow()

        result = QuizResult(
            student_id=student_id,
            quiz_id=quiz.id,
            score=grading.score,
            total_points=grading.total_points,
            percentage=grading.percentage,
            attempt_number=result_count + 1,
            auto_submitted=auto_submitted,
            submitted_at=submitted_at,
            answers=[
                QuizAnswer(
                    question_id=graded.question_id,
                    student_answer=graded.student_answer,
                    correct_answer=graded.correct_answer,
                    is_correct=graded.is_correct,
                    points_earned=graded.points_earned,
                )
                for graded in grading.answers
            ],
        )

        try:
            db.session.add(result)
            AttemptTracker.close_open_attempts(quiz.id, student_id, submitted_at)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Could not store result for quiz %s, student %s", quiz.id, student_id)
            raise PersistenceFailure()

        logger.info(
            "Student %s submitted quiz %s (attempt %s%s): %s/%s (%s%%)",
            student_id, quiz.id, result.attempt_number,
            ", auto" if auto_submitted else "",
            grading.score, grading.total_points, grading.percentage,
        )
        return result, grading
