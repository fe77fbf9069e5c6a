from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.chapters import Chapter
from models.chapter_progress import ChapterProgress
from models.purchases import Purchase
from models.quizzes import Quiz
from models.quiz_results import QuizResult
from classes import content_ordering
from classes.errors import PersistenceFailure
from utils.helpers import utcnow


def best_result(results):
    """Highest percentage wins; ties go to the earliest submission."""
    best = None
    for result in results:
        if best is None or result.percentage > best.percentage:
            best = result
        elif result.percentage == best.percentage and result.submitted_at < best.submitted_at:
            best = result
    return best


class ProgressManager:
    @staticmethod
    def complete_chapter(chapter, student_id):
        progress = ChapterProgress.query.filter_by(
            student_id=student_id, chapter_id=chapter.id
        ).first()
        if progress and progress.is_completed:
            return progress

        if not progress:
            progress = ChapterProgress(student_id=student_id, chapter_id=chapter.id)
            db.session.add(progress)
        progress.is_completed = True
        progress.completed_at = utcnow()

        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise PersistenceFailure()
        return progress

    @staticmethod
    def completed_chapter_ids(student_id, chapter_ids):
        if not chapter_ids:
            return set()
        rows = ChapterProgress.query.filter(
            ChapterProgress.student_id == student_id,
            ChapterProgress.chapter_id.in_(chapter_ids),
            ChapterProgress.is_completed.is_(True),
        ).all()
        return {row.chapter_id for row in rows}

    @staticmethod
    def results_by_quiz(student_id, quiz_ids):
        grouped = {quiz_id: [] for quiz_id in quiz_ids}
        if not quiz_ids:
            return grouped
        results = (
            QuizResult.query
            .filter(QuizResult.student_id == student_id, QuizResult.quiz_id.in_(quiz_ids))
            .order_by(QuizResult.submitted_at.asc())
            .all()
        )
        for result in results:
            grouped[result.quiz_id].append(result)
        return grouped

    @staticmethod
    def course_progress(course_id, student_id):
        """Share of published chapters completed and quizzes attempted."""
        content = content_ordering.merged_content(course_id, published_only=True)
        chapter_ids = [obj.id for t, obj in content if t == content_ordering.CHAPTER]
        quiz_ids = [obj.id for t, obj in content if t == content_ordering.QUIZ]

        completed_chapters = ProgressManager.completed_chapter_ids(student_id, chapter_ids)
        results = ProgressManager.results_by_quiz(student_id, quiz_ids)
        completed_quizzes = [quiz_id for quiz_id in quiz_ids if results[quiz_id]]

        total = len(chapter_ids) + len(quiz_ids)
        completed = len(completed_chapters) + len(completed_quizzes)
        return {
            "course_id": course_id,
            "total_items": total,
            "completed_items": completed,
            "progress": round(completed / total * 100, 2) if total > 0 else 0,
            "is_completed": total > 0 and completed == total,
        }

    @staticmethod
    def course_grades(course_id, student_id):
        """Best attempt per published quiz and the average of those percentages."""
        content = content_ordering.merged_content(course_id, published_only=True)
        quizzes = [obj for t, obj in content if t == content_ordering.QUIZ]
        results = ProgressManager.results_by_quiz(student_id, [quiz.id for quiz in quizzes])

        grades = []
        for quiz in quizzes:
            attempts = results[quiz.id]
            best = best_result(attempts)
            grades.append({
                "quiz_id": quiz.id,
                "title": quiz.title,
                "position": quiz.position,
                "attempts": len(attempts),
                "max_attempts": quiz.max_attempts,
                "best_result": best.to_dict(include_answers=False) if best else None,
            })

        graded = [g["best_result"]["percentage"] for g in grades if g["best_result"]]
        return {
            "course_id": course_id,
            "quizzes": grades,
            "average_percentage": round(sum(graded) / len(graded), 2) if graded else 0,
        }

    @staticmethod
    def engaged_course_ids(student_id):
        """Courses the student bought, completed a chapter in or submitted a quiz for."""
        course_ids = {
            purchase.course_id
            for purchase in Purchase.query.filter_by(student_id=student_id, status="ACTIVE")
        }
        course_ids.update(
            row.course_id for row in
            Chapter.query.join(ChapterProgress, ChapterProgress.chapter_id == Chapter.id)
            .filter(ChapterProgress.student_id == student_id, ChapterProgress.is_completed.is_(True))
        )
        course_ids.update(
            row.course_id for row in
            Quiz.query.join(QuizResult, QuizResult.quiz_id == Quiz.id)
            .filter(QuizResult.student_id == student_id)
        )
        return course_ids
