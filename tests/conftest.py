"""Shared fixtures: an in-memory app, users, and a course with mixed content."""
import pytest

from app import create_app
from models import db
from models.users import User
from models.courses import Course
from models.chapters import Chapter
from models.quizzes import Quiz
from models.questions import Question
from utils.tokens import get_jwt_token


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


def make_user(username, role="student", balance=0.0):
    user = User(
        username=username,
        email=f"{username}@example.com",
        full_name=username.title(),
        role=role,
        balance=balance,
    )
    # Cheap hash; password checks are covered in test_auth
    user.password_hash = "not-a-real-hash"
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def teacher(app):
    return make_user("teacher", role="teacher")


@pytest.fixture
def student(app):
    return make_user("student", balance=100.0)


@pytest.fixture
def other_teacher(app):
    return make_user("otherteacher", role="teacher")


def client_for(app, user):
    client = app.test_client()
    token = get_jwt_token({"user_id": user.id, "username_or_email": user.username, "role": user.role})
    client.set_cookie("access_token", token)
    return client


@pytest.fixture
def teacher_client(app, teacher):
    return client_for(app, teacher)


@pytest.fixture
def student_client(app, student):
    return client_for(app, student)


@pytest.fixture
def course(teacher):
    """Free published course: chapters at 1, 2, 4 and quizzes at 3, 5."""
    course = Course(title="Geography", description="World capitals", price=0.0,
                    is_published=True, teacher_id=teacher.id)
    db.session.add(course)
    db.session.flush()

    for title, position in (("Intro", 1), ("Europe", 2), ("Asia", 4)):
        db.session.add(Chapter(course_id=course.id, title=title, position=position, is_published=True))

    capitals = Quiz(course_id=course.id, title="Capitals", position=3, timer=1,
                    max_attempts=2, is_published=True)
    capitals.questions = [
        Question(text="Paris is in France", type="TRUE_FALSE", options=[],
                 correct_answer="true", points=2, position=1),
        Question(text="Capital of France?", type="SHORT_ANSWER", options=[],
                 correct_answer="Paris", points=3, position=2),
    ]
    final = Quiz(course_id=course.id, title="Final", position=5, max_attempts=1, is_published=True)
    final.questions = [
        Question(text="Largest ocean", type="MULTIPLE_CHOICE",
                 options=["Atlantic", "Pacific", "Indian"], correct_answer="Pacific", points=1, position=1),
        Question(text="Longest river", type="MULTIPLE_CHOICE",
                 options=["Nile", "Amazon"], correct_answer="Nile", points=1, position=2),
    ]
    db.session.add_all([capitals, final])
    db.session.commit()
    return course


def quiz_named(course, title):
    return Quiz.query.filter_by(course_id=course.id, title=title).one()


def chapter_named(course, title):
    return Chapter.query.filter_by(course_id=course.id, title=title).one()
