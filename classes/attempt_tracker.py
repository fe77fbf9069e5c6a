import logging

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.quiz_attempts import QuizAttempt
from models.quiz_results import QuizResult
from classes.errors import MaxAttemptsReached, AttemptAlreadyStarted, PersistenceFailure
from classes.quiz_timer import QuizTimer
from utils.helpers import utcnow

logger = logging.getLogger(__name__)


class AttemptTracker:
    @staticmethod
    def check_can_open(max_attempts, result_count, open_attempt=None, timer_minutes=None, now=None):
        """Raise if a student may not open the quiz. Reads only, never writes.

        ``open_attempt`` is the unsubmitted attempt marker, if any. Reopening
        resumes its countdown instead of starting a fresh one.
        """
        AttemptTracker.check_can_submit(max_attempts, result_count)

        if open_attempt is not None:
            elapsed = ((now or utcnow()) - open_attempt.started_at).total_seconds()
            timer = QuizTimer.resume(timer_minutes, elapsed)
            raise AttemptAlreadyStarted(
                attempt_id=open_attempt.id,
                started_at=open_attempt.started_at.isoformat(),
                seconds_remaining=timer.seconds_remaining,
                expired=not timer.is_running,
            )

    @staticmethod
    def check_can_submit(max_attempts, result_count):
        max_attempts = max_attempts or 1
        if result_count >= max_attempts:
            raise MaxAttemptsReached(
                max_attempts=max_attempts,
                total_attempts=result_count,
            )

    @staticmethod
    def result_count(quiz_id, student_id):
        return QuizResult.query.filter_by(quiz_id=quiz_id, student_id=student_id).count()

    @staticmethod
    def open_attempt(quiz_id, student_id):
        return (
            QuizAttempt.query
            .filter_by(quiz_id=quiz_id, student_id=student_id, submitted_at=None)
            .order_by(QuizAttempt.started_at.desc())
            .first()
        )

    @staticmethod
    def status(quiz, student_id):
        """Attempt counters shown next to a quiz."""
        count = AttemptTracker.result_count(quiz.id, student_id)
        max_attempts = quiz.max_attempts or 1
        return {
            "max_attempts": max_attempts,
            "previous_attempts": count,
            "current_attempt": min(count + 1, max_attempts),
            "attempts_left": max(0, max_attempts - count),
        }

    @staticmethod
    def start(quiz, student_id):
        """Open a quiz: validate, then record the in-progress marker."""
        AttemptTracker.check_can_open(
            quiz.max_attempts,
            AttemptTracker.result_count(quiz.id, student_id),
            AttemptTracker.open_attempt(quiz.id, student_id),
            timer_minutes=quiz.timer,
        )

        attempt = QuizAttempt(quiz_id=quiz.id, student_id=student_id, started_at=utcnow())
        try:
            db.session.add(attempt)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Could not record attempt for quiz %s, student %s", quiz.id, student_id)
            raise PersistenceFailure()

        logger.info("Student %s started quiz %s", student_id, quiz.id)
        return attempt

    @staticmethod
    def close_open_attempts(quiz_id, student_id, submitted_at):
        """Mark open markers as submitted. Does not commit."""
        open_attempts = QuizAttempt.query.filter_by(
            quiz_id=quiz_id, student_id=student_id, submitted_at=None
        ).all()
        for attempt in open_attempts:
            attempt.submitted_at = submitted_at
        return len(open_attempts)
