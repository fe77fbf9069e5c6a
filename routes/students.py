import logging

from flask import Blueprint, jsonify, g, request, url_for

from utils.utils import login_required, current_user_id
from utils.helpers import get_json_body, parse_positive_int
from classes import content_ordering
from classes.attempt_tracker import AttemptTracker
from classes.balance_manager import BalanceManager
from classes.errors import NotFound, AccessDenied, AttemptAlreadyStarted, MaxAttemptsReached
from classes.progress_manager import ProgressManager, best_result
from classes.purchase_manager import PurchaseManager
from classes.quiz_timer import initial_seconds
from classes.submission_manager import SubmissionManager

from models import db
from models.users import User
from models.courses import Course
from models.chapters import Chapter
from models.quizzes import Quiz
from models.quiz_results import QuizResult
from models.purchases import Purchase

logger = logging.getLogger(__name__)

# Students' blueprint
student_bp = Blueprint("student", __name__)


def get_visible_course(course_id):
    course = db.session.get(Course, course_id)
    if not course or not (course.is_published or g.user.get("role") in ("teacher", "admin")):
        raise NotFound("Course not found")
    return course


def get_accessible_course(course_id):
    course = get_visible_course(course_id)
    if not PurchaseManager.has_access(course, current_user_id(), g.user.get("role")):
        raise AccessDenied("Purchase this course to access its content")
    return course


def get_published_item(model, course, item_id, label):
    item = model.query.filter_by(id=item_id, course_id=course.id, is_published=True).first()
    if not item:
        raise NotFound(f"{label} not found")
    return item


def result_url(course_id, quiz_id):
    return url_for("student.get_latest_result", course_id=course_id, quiz_id=quiz_id)


def quiz_payload(quiz, student_id):
    """Quiz as shown to a student: no correct answers."""
    return {
        **quiz.to_dict(include_answers=False),
        **AttemptTracker.status(quiz, student_id),
    }

#__________________________________________________________________________________________ * Courses *__________________________________________________

@student_bp.route("/courses", methods=["GET"])
@login_required
def get_courses():
    student_id = current_user_id()
    courses = Course.query.filter_by(is_published=True).order_by(Course.created_at.desc()).all()

    return jsonify({"courses": [
        {
            **course.to_dict(),
            "has_access": PurchaseManager.has_access(course, student_id, g.user.get("role")),
        }
        for course in courses
    ]}), 200


@student_bp.route("/courses/<int:course_id>", methods=["GET"])
@login_required
def get_course_details(course_id):
    course = get_visible_course(course_id)
    return jsonify({
        **course.to_dict(),
        "has_access": PurchaseManager.has_access(course, current_user_id(), g.user.get("role")),
    }), 200


@student_bp.route("/courses/<int:course_id>/content", methods=["GET"])
@login_required
def get_course_content(course_id):
    """Published chapters and quizzes in position order, with the student's progress."""
    course = get_visible_course(course_id)
    student_id = current_user_id()
    has_access = PurchaseManager.has_access(course, student_id, g.user.get("role"))

    content = content_ordering.merged_content(course.id, published_only=True)
    chapter_ids = [obj.id for t, obj in content if t == content_ordering.CHAPTER]
    quiz_ids = [obj.id for t, obj in content if t == content_ordering.QUIZ]
    completed = ProgressManager.completed_chapter_ids(student_id, chapter_ids)
    results = ProgressManager.results_by_quiz(student_id, quiz_ids)

    items = []
    for content_type, obj in content:
        if content_type == content_ordering.CHAPTER:
            items.append({
                **obj.to_dict(),
                "is_locked": not (has_access or obj.is_free),
                "is_completed": obj.id in completed,
            })
        else:
            best = best_result(results[obj.id])
            items.append({
                "id": obj.id,
                "type": content_ordering.QUIZ,
                "title": obj.title,
                "position": obj.position,
                "timer": obj.timer,
                "max_attempts": obj.max_attempts,
                "is_locked": not has_access,
                "attempts": len(results[obj.id]),
                "best_result": best.to_dict(include_answers=False) if best else None,
            })

    return jsonify(items), 200

#__________________________________________________________________________________________ * Chapters *__________________________________________________

@student_bp.route("/courses/<int:course_id>/chapters/<int:chapter_id>", methods=["GET"])
@login_required
def get_chapter(course_id, chapter_id):
    course = get_visible_course(course_id)
    chapter = get_published_item(Chapter, course, chapter_id, "Chapter")

    if not chapter.is_free and not PurchaseManager.has_access(course, current_user_id(), g.user.get("role")):
        raise AccessDenied("Purchase this course to access its content")

    completed = ProgressManager.completed_chapter_ids(current_user_id(), [chapter.id])
    return jsonify({
        **chapter.to_dict(),
        "is_completed": chapter.id in completed,
        "navigation": content_ordering.navigation(course.id, content_ordering.CHAPTER, chapter.id),
    }), 200


@student_bp.route("/courses/<int:course_id>/chapters/<int:chapter_id>/complete", methods=["POST"])
@login_required
def complete_chapter(course_id, chapter_id):
    course = get_accessible_course(course_id)
    chapter = get_published_item(Chapter, course, chapter_id, "Chapter")

    ProgressManager.complete_chapter(chapter, current_user_id())
    return jsonify({
        "message": "Chapter marked as completed",
        "progress": ProgressManager.course_progress(course.id, current_user_id()),
    }), 200


@student_bp.route("/courses/<int:course_id>/chapters/<int:chapter_id>/navigation", methods=["GET"])
@login_required
def get_chapter_navigation(course_id, chapter_id):
    course = get_visible_course(course_id)
    chapter = get_published_item(Chapter, course, chapter_id, "Chapter")
    return jsonify(content_ordering.navigation(course.id, content_ordering.CHAPTER, chapter.id)), 200

#                                                         QUIZZES
#_____________________________________________________________________________________________________________

# Open a quiz; records the in-progress attempt marker
@student_bp.route("/courses/<int:course_id>/quizzes/<int:quiz_id>", methods=["GET"])
@login_required
def open_quiz(course_id, quiz_id):
    course = get_accessible_course(course_id)
    quiz = get_published_item(Quiz, course, quiz_id, "Quiz")
    student_id = current_user_id()

    try:
        attempt = AttemptTracker.start(quiz, student_id)
    except MaxAttemptsReached as error:
        logger.info("Student %s has no attempts left on quiz %s", student_id, quiz.id)
        error.payload["redirect"] = result_url(course.id, quiz.id)
        raise
    except AttemptAlreadyStarted as error:
        # Resume with the remaining time instead of restarting the countdown
        return jsonify({
            **error.to_dict(),
            "quiz": quiz_payload(quiz, student_id),
        }), error.status_code

    return jsonify({
        **quiz_payload(quiz, student_id),
        "attempt_id": attempt.id,
        "started_at": attempt.started_at.isoformat(),
        "seconds_remaining": initial_seconds(quiz.timer),
    }), 200


def _submit(course_id, quiz_id, auto_submitted):
    course = get_accessible_course(course_id)
    quiz = get_published_item(Quiz, course, quiz_id, "Quiz")
    student_id = current_user_id()

    data = get_json_body()
    answers = SubmissionManager.parse_answers(data.get("answers"))

    try:
        result, grading = SubmissionManager.submit(quiz, student_id, answers, auto_submitted=auto_submitted)
    except MaxAttemptsReached as error:
        error.payload["redirect"] = result_url(course.id, quiz.id)
        raise

    return jsonify({
        "message": "Quiz auto-submitted due to timeout." if auto_submitted else "Quiz submitted successfully",
        "result_id": result.id,
        "attempt_number": result.attempt_number,
        **grading.to_dict(),
        **AttemptTracker.status(quiz, student_id),
    }), 201


@student_bp.route("/courses/<int:course_id>/quizzes/<int:quiz_id>/submit", methods=["POST"])
@login_required
def submit_quiz(course_id, quiz_id):
    """Grades the quiz and stores the result."""
    return _submit(course_id, quiz_id, auto_submitted=False)


#Auto-Submit Quiz on Timeout
@student_bp.route("/courses/<int:course_id>/quizzes/<int:quiz_id>/auto-submit", methods=["POST"])
@login_required
def auto_submit_quiz(course_id, quiz_id):
    return _submit(course_id, quiz_id, auto_submitted=True)


#Get the latest result with per-question feedback
@student_bp.route("/courses/<int:course_id>/quizzes/<int:quiz_id>/result", methods=["GET"])
@login_required
def get_latest_result(course_id, quiz_id):
    course = get_visible_course(course_id)
    quiz = Quiz.query.filter_by(id=quiz_id, course_id=course.id).first()
    if not quiz:
        raise NotFound("Quiz not found")
    student_id = current_user_id()

    results = (
        QuizResult.query
        .filter_by(quiz_id=quiz.id, student_id=student_id)
        .order_by(QuizResult.submitted_at.desc(), QuizResult.id.desc())
        .all()
    )
    if not results:
        raise NotFound("No attempts found")

    latest = results[0]
    questions = {q.id: q for q in quiz.questions}
    status = AttemptTracker.status(quiz, student_id)

    return jsonify({
        **latest.to_dict(include_answers=False),
        "quiz_title": quiz.title,
        "max_attempts": status["max_attempts"],
        "total_attempts": status["previous_attempts"],
        "can_retry": status["attempts_left"] > 0,
        "best_percentage": best_result(results).percentage,
        "answers": [
            {
                **answer.to_dict(),
                "question": {
                    "text": questions[answer.question_id].text,
                    "type": questions[answer.question_id].type,
                    "points": questions[answer.question_id].points,
                } if answer.question_id in questions else None,
            }
            for answer in latest.answers
        ],
    }), 200


@student_bp.route("/courses/<int:course_id>/quizzes/<int:quiz_id>/results", methods=["GET"])
@login_required
def get_results(course_id, quiz_id):
    course = get_visible_course(course_id)
    results = (
        QuizResult.query
        .join(Quiz, QuizResult.quiz_id == Quiz.id)
        .filter(Quiz.course_id == course.id, QuizResult.quiz_id == quiz_id,
                QuizResult.student_id == current_user_id())
        .order_by(QuizResult.attempt_number.asc())
        .all()
    )
    return jsonify([result.to_dict(include_answers=False) for result in results]), 200


@student_bp.route("/courses/<int:course_id>/quizzes/<int:quiz_id>/navigation", methods=["GET"])
@login_required
def get_quiz_navigation(course_id, quiz_id):
    course = get_visible_course(course_id)
    quiz = get_published_item(Quiz, course, quiz_id, "Quiz")
    return jsonify(content_ordering.navigation(course.id, content_ordering.QUIZ, quiz.id)), 200

#                                                     PROGRESS & GRADES
#_____________________________________________________________________________________________________________

@student_bp.route("/courses/<int:course_id>/progress", methods=["GET"])
@login_required
def get_course_progress(course_id):
    course = get_accessible_course(course_id)
    return jsonify(ProgressManager.course_progress(course.id, current_user_id())), 200


@student_bp.route("/courses/<int:course_id>/grades", methods=["GET"])
@login_required
def get_course_grades(course_id):
    course = get_accessible_course(course_id)
    return jsonify(ProgressManager.course_grades(course.id, current_user_id())), 200


@student_bp.route("/dashboard", methods=["GET"])
@login_required
def get_dashboard():
    """Purchased courses with progress and average of best quiz attempts."""
    student_id = current_user_id()
    purchases = Purchase.query.filter_by(student_id=student_id, status="ACTIVE").all()

    courses = []
    for purchase in purchases:
        course = purchase.course
        grades = ProgressManager.course_grades(course.id, student_id)
        courses.append({
            **course.to_dict(),
            "progress": ProgressManager.course_progress(course.id, student_id),
            "average_percentage": grades["average_percentage"],
        })

    completed = [c for c in courses if c["progress"]["is_completed"]]
    return jsonify({
        "courses": courses,
        "total_courses": len(courses),
        "completed_courses": len(completed),
    }), 200

#                                                     PURCHASES
#_____________________________________________________________________________________________________________

@student_bp.route("/balance", methods=["GET"])
@login_required
def get_balance():
    user = db.session.get(User, current_user_id())
    if not user:
        raise NotFound("User not found")
    return jsonify({"balance": user.balance}), 200


@student_bp.route("/balance/add", methods=["POST"])
@login_required
def add_balance():
    data = get_json_body()
    user, transaction = BalanceManager.deposit(current_user_id(), data.get("amount"))
    return jsonify({
        "message": "Balance added successfully",
        "balance": user.balance,
        "transaction": transaction.to_dict(),
    }), 201


@student_bp.route("/balance/transactions", methods=["GET"])
@login_required
def get_balance_transactions():
    return jsonify([t.to_dict() for t in BalanceManager.history(current_user_id())]), 200


@student_bp.route("/promocodes/validate", methods=["POST"])
@login_required
def validate_promocode():
    data = get_json_body()
    course_id = data.get("course_id")
    if not data.get("code") or not course_id:
        return jsonify({"error": "Promo code and course id are required"}), 400

    course = get_visible_course(parse_positive_int(course_id, "course_id"))
    quote = PurchaseManager.quote(course, data["code"])
    promocode = quote.pop("promocode")

    return jsonify({
        "valid": True,
        "promocode": {
            "id": promocode.id,
            "code": promocode.code,
            "description": promocode.description,
        },
        **quote,
    }), 200


@student_bp.route("/courses/<int:course_id>/purchase", methods=["POST"])
@login_required
def purchase_course(course_id):
    course = db.session.get(Course, course_id)
    if not course or not course.is_published:
        raise NotFound("Course not found or not available for purchase")

    data = get_json_body() if request.get_data() else {}
    purchase, balance = PurchaseManager.purchase(course, current_user_id(), data.get("promocode"))

    return jsonify({
        "message": "Course purchased successfully",
        "purchase": purchase.to_dict(),
        "new_balance": balance,
    }), 201
