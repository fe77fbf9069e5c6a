import logging

from flask import Blueprint, jsonify, g, request
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from utils.utils import roles_required, current_user_id
from utils.helpers import get_json_body, parse_positive_int, sanitize_html
from classes import content_ordering
from classes.analytics_manager import AnalyticsManager
from classes.balance_manager import BalanceManager
from classes.errors import NotFound, AccessDenied, ValidationError, PersistenceFailure
from classes.question_types import normalize_question
from classes.progress_manager import ProgressManager
from classes.purchase_manager import normalize_code, ACTIVE

from models import db
from models.users import User
from models.courses import Course
from models.chapters import Chapter
from models.quizzes import Quiz
from models.questions import Question
from models.quiz_results import QuizResult
from models.promocodes import PromoCode
from models.purchases import Purchase

logger = logging.getLogger(__name__)

# Teachers' blueprint
teacher_bp = Blueprint("teacher", __name__)

STAFF_ROLES = ("teacher", "admin")


def get_owned_course(course_id):
    course = db.session.get(Course, course_id)
    if not course:
        raise NotFound("Course not found")
    if g.user.get("role") != "admin" and course.teacher_id != current_user_id():
        raise AccessDenied("Unauthorized or course not found")
    return course


def get_course_item(model, course, item_id, label):
    item = model.query.filter_by(id=item_id, course_id=course.id).first()
    if not item:
        raise NotFound(f"{label} not found")
    return item


def commit_or_fail(action):
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Failed to %s", action)
        raise PersistenceFailure()


def parse_bool(value, field_name):
    if not isinstance(value, bool):
        raise ValidationError(f"{field_name} must be true or false")
    return value


def serialize_content(course_id):
    return [
        {**obj.to_dict(), "type": content_type}
        for content_type, obj in content_ordering.merged_content(course_id)
    ]

#__________________________________________________________________________________________ * Courses *__________________________________________________

# fetch all courses
@teacher_bp.route("/courses", methods=["GET"])
@roles_required(*STAFF_ROLES)
def get_my_courses():
    query = Course.query
    if g.user.get("role") != "admin":
        query = query.filter_by(teacher_id=current_user_id())
    courses = query.order_by(Course.created_at.desc()).all()

    return jsonify({"courses": [course.to_dict() for course in courses]}), 200


# create a course
@teacher_bp.route("/courses", methods=["POST"])
@roles_required(*STAFF_ROLES)
def create_course():
    data = get_json_body()
    title = data.get("title")

    if not title:
        return jsonify({"error": "Title is required"}), 400

    price = data.get("price", 0)
    if isinstance(price, bool) or not isinstance(price, (int, float)) or price < 0:
        return jsonify({"error": "Price must be a non-negative number"}), 400

    course = Course(
        title=title,
        description=sanitize_html(data.get("description")),
        price=float(price),
        image_url=data.get("image_url"),
        teacher_id=current_user_id(),
    )
    db.session.add(course)
    commit_or_fail("create course")

    logger.info("Teacher %s created course %s", current_user_id(), course.id)
    return jsonify({"message": "Course created successfully", "course": course.to_dict()}), 201


# Fetch course details
@teacher_bp.route("/courses/<int:course_id>", methods=["GET"])
@roles_required(*STAFF_ROLES)
def get_course_details(course_id):
    course = get_owned_course(course_id)
    return jsonify({**course.to_dict(), "content": serialize_content(course.id)}), 200


# Edit course
@teacher_bp.route("/courses/<int:course_id>", methods=["PUT"])
@roles_required(*STAFF_ROLES)
def edit_course(course_id):
    course = get_owned_course(course_id)
    data = get_json_body()

    if "title" in data:
        if not data["title"]:
            return jsonify({"error": "Title is required"}), 400
        course.title = data["title"]
    if "description" in data:
        course.description = sanitize_html(data["description"])
    if "image_url" in data:
        course.image_url = data["image_url"]
    if "price" in data:
        price = data["price"]
        if isinstance(price, bool) or not isinstance(price, (int, float)) or price < 0:
            return jsonify({"error": "Price must be a non-negative number"}), 400
        course.price = float(price)
    if "is_published" in data:
        course.is_published = parse_bool(data["is_published"], "is_published")

    commit_or_fail("update course")
    return jsonify({"message": "Course updated successfully", "course": course.to_dict()}), 200


# Delete course
@teacher_bp.route("/courses/<int:course_id>", methods=["DELETE"])
@roles_required(*STAFF_ROLES)
def delete_course(course_id):
    course = get_owned_course(course_id)
    db.session.delete(course)
    commit_or_fail("delete course")
    return jsonify({"message": "Course deleted successfully"}), 200


# Chapters and quizzes of a course in position order
@teacher_bp.route("/courses/<int:course_id>/content", methods=["GET"])
@roles_required(*STAFF_ROLES)
def get_course_content(course_id):
    course = get_owned_course(course_id)
    return jsonify(serialize_content(course.id)), 200


# Bulk reorder of chapters and quizzes
@teacher_bp.route("/courses/<int:course_id>/reorder", methods=["PUT"])
@roles_required(*STAFF_ROLES)
def reorder_content(course_id):
    course = get_owned_course(course_id)
    data = get_json_body()

    items = content_ordering.apply_reorder(course.id, data.get("list"))

    return jsonify({
        "message": "Content reordered successfully",
        "items": [{"id": i.id, "type": i.type, "position": i.position} for i in items],
    }), 200

#__________________________________________________________________________________________ * Chapters *__________________________________________________

@teacher_bp.route("/courses/<int:course_id>/chapters", methods=["POST"])
@roles_required(*STAFF_ROLES)
def add_chapter(course_id):
    course = get_owned_course(course_id)
    data = get_json_body()
    title = data.get("title")

    if not title:
        return jsonify({"error": "Title is required"}), 400

    is_free = parse_bool(data.get("is_free", False), "is_free")
    is_published = parse_bool(data.get("is_published", False), "is_published")

    position = content_ordering.make_room(course.id, data.get("position"))

    chapter = Chapter(
        course_id=course.id,
        title=title,
        description=sanitize_html(data.get("description")),
        video_url=data.get("video_url"),
        position=position,
        is_free=is_free,
        is_published=is_published,
    )
    db.session.add(chapter)
    commit_or_fail("create chapter")

    return jsonify({"message": "Chapter created successfully", "chapter": chapter.to_dict()}), 201


@teacher_bp.route("/courses/<int:course_id>/chapters/<int:chapter_id>", methods=["GET"])
@roles_required(*STAFF_ROLES)
def get_chapter(course_id, chapter_id):
    course = get_owned_course(course_id)
    chapter = get_course_item(Chapter, course, chapter_id, "Chapter")
    return jsonify(chapter.to_dict()), 200


@teacher_bp.route("/courses/<int:course_id>/chapters/<int:chapter_id>", methods=["PUT"])
@roles_required(*STAFF_ROLES)
def edit_chapter(course_id, chapter_id):
    course = get_owned_course(course_id)
    chapter = get_course_item(Chapter, course, chapter_id, "Chapter")
    data = get_json_body()

    if "title" in data:
        if not data["title"]:
            return jsonify({"error": "Title is required"}), 400
        chapter.title = data["title"]
    if "description" in data:
        chapter.description = sanitize_html(data["description"])
    if "video_url" in data:
        chapter.video_url = data["video_url"]
    if "is_free" in data:
        chapter.is_free = parse_bool(data["is_free"], "is_free")
    if "is_published" in data:
        chapter.is_published = parse_bool(data["is_published"], "is_published")

    commit_or_fail("update chapter")
    return jsonify({"message": "Chapter updated successfully", "chapter": chapter.to_dict()}), 200


@teacher_bp.route("/courses/<int:course_id>/chapters/<int:chapter_id>", methods=["DELETE"])
@roles_required(*STAFF_ROLES)
def delete_chapter(course_id, chapter_id):
    course = get_owned_course(course_id)
    chapter = get_course_item(Chapter, course, chapter_id, "Chapter")

    content_ordering.close_gap(course.id, chapter.position, exclude=(content_ordering.CHAPTER, chapter.id))
    db.session.delete(chapter)
    commit_or_fail("delete chapter")

    return jsonify({"message": "Chapter deleted successfully"}), 200

#__________________________________________________________________________________________ * Quizzes *__________________________________________________

def parse_quiz_settings(data, quiz=None):
    settings = {}
    if "title" in data or quiz is None:
        if not data.get("title"):
            raise ValidationError("Title is required")
        settings["title"] = data["title"]
    if "description" in data:
        settings["description"] = sanitize_html(data["description"])
    if "timer" in data:
        settings["timer"] = parse_positive_int(data["timer"], "timer", allow_none=True)
    if "max_attempts" in data or quiz is None:
        settings["max_attempts"] = parse_positive_int(data.get("max_attempts", 1), "max_attempts")
    if "is_published" in data:
        settings["is_published"] = parse_bool(data["is_published"], "is_published")
    return settings


@teacher_bp.route("/courses/<int:course_id>/quizzes", methods=["POST"])
@roles_required(*STAFF_ROLES)
def create_quiz(course_id):
    course = get_owned_course(course_id)
    data = get_json_body()

    settings = parse_quiz_settings(data)

    questions = data.get("questions", [])
    if not isinstance(questions, list):
        return jsonify({"error": "questions must be a list"}), 400
    # Validate every question before touching positions
    cleaned = [normalize_question(question) for question in questions]

    position = content_ordering.make_room(course.id, data.get("position"))

    quiz = Quiz(course_id=course.id, position=position, **settings)
    quiz.questions = [
        Question(position=index, **fields)
        for index, fields in enumerate(cleaned, start=1)
    ]
    db.session.add(quiz)
    commit_or_fail("create quiz")

    logger.info("Quiz %s created in course %s at position %s", quiz.id, course.id, quiz.position)
    return jsonify({"message": "Quiz created successfully", "quiz": quiz.to_dict()}), 201


@teacher_bp.route("/courses/<int:course_id>/quizzes/<int:quiz_id>", methods=["GET"])
@roles_required(*STAFF_ROLES)
def get_quiz(course_id, quiz_id):
    course = get_owned_course(course_id)
    quiz = get_course_item(Quiz, course, quiz_id, "Quiz")
    return jsonify(quiz.to_dict()), 200


@teacher_bp.route("/courses/<int:course_id>/quizzes/<int:quiz_id>", methods=["PUT"])
@roles_required(*STAFF_ROLES)
def edit_quiz(course_id, quiz_id):
    course = get_owned_course(course_id)
    quiz = get_course_item(Quiz, course, quiz_id, "Quiz")
    data = get_json_body()

    for field, value in parse_quiz_settings(data, quiz).items():
        setattr(quiz, field, value)

    commit_or_fail("update quiz")
    return jsonify({"message": "Quiz updated successfully", "quiz": quiz.to_dict()}), 200


@teacher_bp.route("/courses/<int:course_id>/quizzes/<int:quiz_id>", methods=["DELETE"])
@roles_required(*STAFF_ROLES)
def delete_quiz(course_id, quiz_id):
    course = get_owned_course(course_id)
    quiz = get_course_item(Quiz, course, quiz_id, "Quiz")

    content_ordering.close_gap(course.id, quiz.position, exclude=(content_ordering.QUIZ, quiz.id))
    db.session.delete(quiz)
    commit_or_fail("delete quiz")

    return jsonify({"message": "Quiz deleted successfully"}), 200

#__________________________________________________________________________________________ * Questions *__________________________________________________

@teacher_bp.route("/courses/<int:course_id>/quizzes/<int:quiz_id>/questions", methods=["POST"])
@roles_required(*STAFF_ROLES)
def add_question(course_id, quiz_id):
    course = get_owned_course(course_id)
    quiz = get_course_item(Quiz, course, quiz_id, "Quiz")

    fields = normalize_question(get_json_body())
    position = max((q.position for q in quiz.questions), default=0) + 1

    question = Question(quiz_id=quiz.id, position=position, **fields)
    db.session.add(question)
    commit_or_fail("add question")

    return jsonify({"message": "Question added", "question": question.to_dict()}), 201


@teacher_bp.route("/courses/<int:course_id>/quizzes/<int:quiz_id>/questions/<int:question_id>", methods=["PUT"])
@roles_required(*STAFF_ROLES)
def edit_question(course_id, quiz_id, question_id):
    """Edit a question. Stored results keep the answers they were graded with."""
    course = get_owned_course(course_id)
    quiz = get_course_item(Quiz, course, quiz_id, "Quiz")

    question = Question.query.filter_by(id=question_id, quiz_id=quiz.id).first()
    if not question:
        return jsonify({"error": "Question not found"}), 404

    for field, value in normalize_question(get_json_body(), existing=question).items():
        setattr(question, field, value)

    commit_or_fail("update question")
    return jsonify({"message": "Question updated successfully", "question": question.to_dict()}), 200


@teacher_bp.route("/courses/<int:course_id>/quizzes/<int:quiz_id>/questions/<int:question_id>", methods=["DELETE"])
@roles_required(*STAFF_ROLES)
def delete_question(course_id, quiz_id, question_id):
    course = get_owned_course(course_id)
    quiz = get_course_item(Quiz, course, quiz_id, "Quiz")

    question = Question.query.filter_by(id=question_id, quiz_id=quiz.id).first()
    if not question:
        return jsonify({"error": "Question not found"}), 404

    for other in quiz.questions:
        if other.position > question.position:
            other.position -= 1
    db.session.delete(question)
    commit_or_fail("delete question")

    return jsonify({"message": "Question deleted"}), 200

#__________________________________________________________________________________________ * Quiz results *__________________________________________________

def owned_results_query():
    query = QuizResult.query.join(Quiz, QuizResult.quiz_id == Quiz.id).join(Course, Quiz.course_id == Course.id)
    if g.user.get("role") != "admin":
        query = query.filter(Course.teacher_id == current_user_id())
    return query


@teacher_bp.route("/quiz-results", methods=["GET"])
@roles_required(*STAFF_ROLES)
def get_quiz_results():
    query = owned_results_query()

    course_id = request.args.get("course_id", type=int)
    if course_id:
        query = query.filter(Course.id == course_id)
    quiz_id = request.args.get("quiz_id", type=int)
    if quiz_id:
        query = query.filter(Quiz.id == quiz_id)

    results = query.order_by(QuizResult.submitted_at.desc()).all()

    return jsonify([
        {
            **result.to_dict(include_answers=False),
            "quiz_title": result.quiz.title,
            "course_id": result.quiz.course_id,
            "student_name": result.student.full_name if result.student else None,
        }
        for result in results
    ]), 200


@teacher_bp.route("/quiz-results/<int:result_id>", methods=["GET"])
@roles_required(*STAFF_ROLES)
def get_quiz_result(result_id):
    result = owned_results_query().filter(QuizResult.id == result_id).first()
    if not result:
        return jsonify({"error": "Result not found"}), 404

    questions = {q.id: q for q in result.quiz.questions}
    answers = []
    for answer in result.answers:
        question = questions.get(answer.question_id)
        answers.append({
            **answer.to_dict(),
            "question": {
                "text": question.text,
                "type": question.type,
                "points": question.points,
            } if question else None,
        })

    student = db.session.get(User, result.student_id)
    return jsonify({
        **result.to_dict(include_answers=False),
        "quiz_title": result.quiz.title,
        "student_name": student.full_name if student else None,
        "answers": answers,
    }), 200

#__________________________________________________________________________________________ * Promo codes *__________________________________________________

@teacher_bp.route("/courses/<int:course_id>/promocodes", methods=["GET"])
@roles_required(*STAFF_ROLES)
def get_promocodes(course_id):
    course = get_owned_course(course_id)
    promocodes = PromoCode.query.filter_by(course_id=course.id).order_by(PromoCode.created_at.desc()).all()
    return jsonify([promocode.to_dict() for promocode in promocodes]), 200


@teacher_bp.route("/courses/<int:course_id>/promocodes", methods=["POST"])
@roles_required(*STAFF_ROLES)
def create_promocode(course_id):
    course = get_owned_course(course_id)
    data = get_json_body()

    promocode = PromoCode(
        code=normalize_code(data.get("code")),
        course_id=course.id,
        description=data.get("description"),
        usage_limit=parse_positive_int(data.get("usage_limit", 1), "usage_limit"),
    )
    db.session.add(promocode)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify({"error": "Promo code already exists"}), 409

    return jsonify({"message": "Promo code created", "promocode": promocode.to_dict()}), 201


@teacher_bp.route("/courses/<int:course_id>/promocodes/<int:promocode_id>", methods=["PATCH"])
@roles_required(*STAFF_ROLES)
def toggle_promocode(course_id, promocode_id):
    course = get_owned_course(course_id)
    promocode = get_course_item(PromoCode, course, promocode_id, "Promo code")
    data = get_json_body()

    promocode.is_active = parse_bool(data.get("is_active", not promocode.is_active), "is_active")
    commit_or_fail("update promo code")
    return jsonify({"message": "Promo code updated", "promocode": promocode.to_dict()}), 200


@teacher_bp.route("/courses/<int:course_id>/promocodes/<int:promocode_id>", methods=["DELETE"])
@roles_required(*STAFF_ROLES)
def delete_promocode(course_id, promocode_id):
    course = get_owned_course(course_id)
    promocode = get_course_item(PromoCode, course, promocode_id, "Promo code")

    if promocode.used_count:
        promocode.is_active = False
        commit_or_fail("deactivate promo code")
        return jsonify({"message": "Promo code was used and has been deactivated"}), 200

    db.session.delete(promocode)
    commit_or_fail("delete promo code")
    return jsonify({"message": "Promo code deleted"}), 200

#__________________________________________________________________________________________ * Students *__________________________________________________

def get_student(student_id):
    student = db.session.get(User, student_id)
    if not student or student.role != "student":
        raise NotFound("Student not found")
    return student


@teacher_bp.route("/users", methods=["GET"])
@roles_required(*STAFF_ROLES)
def get_students():
    students = User.query.filter_by(role="student").order_by(User.full_name).all()
    return jsonify([
        {
            **student.to_dict(),
            "purchases": Purchase.query.filter_by(student_id=student.id, status=ACTIVE).count(),
        }
        for student in students
    ]), 200


@teacher_bp.route("/users/<int:student_id>/balance", methods=["PATCH"])
@roles_required(*STAFF_ROLES)
def update_student_balance(student_id):
    data = get_json_body()
    student, transaction = BalanceManager.set_balance(student_id, data.get("new_balance"), current_user_id())
    return jsonify({
        "message": "Balance updated successfully",
        "user": student.to_dict(),
        "transaction": transaction.to_dict(),
    }), 200


@teacher_bp.route("/users/<int:student_id>/progress", methods=["GET"])
@roles_required(*STAFF_ROLES)
def get_student_progress(student_id):
    """Progress and grades of one student in the courses this staff member can see."""
    student = get_student(student_id)

    query = Course.query.filter(Course.id.in_(sorted(ProgressManager.engaged_course_ids(student.id))))
    if g.user.get("role") != "admin":
        query = query.filter_by(teacher_id=current_user_id())
    courses = query.order_by(Course.title).all()

    purchases = {
        purchase.course_id: purchase
        for purchase in Purchase.query.filter_by(student_id=student.id)
    }

    return jsonify({
        "student": student.to_dict(),
        "courses": [
            {
                **course.to_dict(),
                "progress": ProgressManager.course_progress(course.id, student.id),
                "grades": ProgressManager.course_grades(course.id, student.id),
                "purchase": purchases[course.id].to_dict() if course.id in purchases else None,
            }
            for course in courses
        ],
    }), 200

#__________________________________________________________________________________________ * Analytics *__________________________________________________

@teacher_bp.route("/analytics", methods=["GET"])
@roles_required(*STAFF_ROLES)
def get_analytics():
    query = Course.query
    if g.user.get("role") != "admin":
        query = query.filter_by(teacher_id=current_user_id())
    courses = query.order_by(Course.created_at.desc()).all()

    return jsonify(AnalyticsManager.summary(courses)), 200
