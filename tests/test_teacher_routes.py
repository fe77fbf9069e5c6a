from classes import content_ordering
from models.questions import Question
from models.quizzes import Quiz
from conftest import quiz_named, chapter_named, client_for


def test_create_course_sanitizes_description(teacher_client):
    response = teacher_client.post("/api/teacher/courses", json={
        "title": "Algebra",
        "description": "<p>Hello</p><script>alert(1)</script>",
        "price": 25,
    })
    assert response.status_code == 201
    course = response.get_json()["course"]
    assert "<script>" not in course["description"]
    assert course["price"] == 25.0
    assert course["is_published"] is False


def test_students_cannot_use_teacher_routes(student_client, course):
    response = student_client.get(f"/api/teacher/courses/{course.id}")
    assert response.status_code == 403


def test_teachers_only_manage_their_own_courses(app, other_teacher, course):
    client = client_for(app, other_teacher)
    assert client.get(f"/api/teacher/courses/{course.id}").status_code == 403
    assert client.get("/api/teacher/courses").get_json()["courses"] == []


def test_requests_without_cookie_are_unauthorized(app, course):
    response = app.test_client().get(f"/api/teacher/courses/{course.id}")
    assert response.status_code == 401


def test_create_quiz_normalizes_questions_and_appends(teacher_client, course):
    response = teacher_client.post(f"/api/teacher/courses/{course.id}/quizzes", json={
        "title": "Rivers",
        "timer": 10,
        "questions": [
            {"text": "Longest?", "type": "MULTIPLE_CHOICE", "options": ["Nile", "Amazon"], "correct_answer": 1, "points": 2},
            {"text": "Nile is in Africa", "type": "TRUE_FALSE", "correct_answer": True},
        ],
    })
    assert response.status_code == 201
    quiz = response.get_json()["quiz"]
    assert quiz["position"] == 6
    assert quiz["max_attempts"] == 1
    assert quiz["total_points"] == 3
    assert [q["correct_answer"] for q in quiz["questions"]] == ["Amazon", "true"]


def test_create_quiz_at_position_shifts_following_items(teacher_client, course):
    response = teacher_client.post(f"/api/teacher/courses/{course.id}/quizzes", json={
        "title": "Warm-up", "position": 1,
    })
    assert response.status_code == 201

    titles = [obj.title for _, obj in content_ordering.merged_content(course.id)]
    assert titles == ["Warm-up", "Intro", "Europe", "Capitals", "Asia", "Final"]
    assert [i.position for i in content_ordering.content_items(course.id)] == [1, 2, 3, 4, 5, 6]


def test_invalid_question_rejects_whole_quiz(teacher_client, course):
    response = teacher_client.post(f"/api/teacher/courses/{course.id}/quizzes", json={
        "title": "Broken",
        "position": 1,
        "questions": [{"text": "Pick", "type": "MULTIPLE_CHOICE", "options": ["a", "b"], "correct_answer": 4}],
    })
    assert response.status_code == 400
    assert Quiz.query.filter_by(title="Broken").first() is None
    assert chapter_named(course, "Intro").position == 1


def test_create_chapter_at_explicit_position(teacher_client, course):
    response = teacher_client.post(f"/api/teacher/courses/{course.id}/chapters", json={
        "title": "Africa", "position": 5, "is_published": True,
    })
    assert response.status_code == 201
    assert response.get_json()["chapter"]["position"] == 5
    assert quiz_named(course, "Final").position == 6


def test_create_chapter_rejects_position_past_end(teacher_client, course):
    response = teacher_client.post(f"/api/teacher/courses/{course.id}/chapters", json={
        "title": "Africa", "position": 9,
    })
    assert response.status_code == 400


def test_reorder_endpoint(teacher_client, course):
    items = content_ordering.content_items(course.id)
    reversed_list = [
        {"id": item.id, "type": item.type, "position": len(items) - index}
        for index, item in enumerate(items)
    ]

    response = teacher_client.put(f"/api/teacher/courses/{course.id}/reorder", json={"list": reversed_list})
    assert response.status_code == 200

    content = teacher_client.get(f"/api/teacher/courses/{course.id}/content").get_json()
    assert [c["title"] for c in content] == ["Final", "Asia", "Capitals", "Europe", "Intro"]
    assert [c["position"] for c in content] == [1, 2, 3, 4, 5]


def test_reorder_with_duplicate_positions_keeps_order(teacher_client, course):
    items = content_ordering.content_items(course.id)
    positions = [1, 2, 2, 4, 5]
    response = teacher_client.put(f"/api/teacher/courses/{course.id}/reorder", json={
        "list": [{"id": i.id, "type": i.type, "position": p} for i, p in zip(items, positions)],
    })
    assert response.status_code == 400
    assert "error" in response.get_json()

    content = teacher_client.get(f"/api/teacher/courses/{course.id}/content").get_json()
    assert [c["title"] for c in content] == ["Intro", "Europe", "Capitals", "Asia", "Final"]


def test_delete_chapter_closes_gap(teacher_client, course):
    europe = chapter_named(course, "Europe")
    response = teacher_client.delete(f"/api/teacher/courses/{course.id}/chapters/{europe.id}")
    assert response.status_code == 200

    content = teacher_client.get(f"/api/teacher/courses/{course.id}/content").get_json()
    assert [(c["title"], c["position"]) for c in content] == [
        ("Intro", 1), ("Capitals", 2), ("Asia", 3), ("Final", 4),
    ]


def test_edit_question_does_not_regrade_results(teacher_client, student_client, course):
    quiz = quiz_named(course, "Capitals")
    short_answer = quiz.questions[1]
    student_client.get(f"/api/student/courses/{course.id}/quizzes/{quiz.id}")
    student_client.post(f"/api/student/courses/{course.id}/quizzes/{quiz.id}/submit", json={
        "answers": [{"question_id": short_answer.id, "answer": "paris"}],
    })

    response = teacher_client.put(
        f"/api/teacher/courses/{course.id}/quizzes/{quiz.id}/questions/{short_answer.id}",
        json={"correct_answer": "paris"},
    )
    assert response.status_code == 200
    assert response.get_json()["question"]["correct_answer"] == "paris"

    results = teacher_client.get(f"/api/teacher/quiz-results?quiz_id={quiz.id}").get_json()
    assert len(results) == 1
    detail = teacher_client.get(f"/api/teacher/quiz-results/{results[0]['id']}").get_json()
    stored = [a for a in detail["answers"] if a["question_id"] == short_answer.id][0]
    assert stored["correct_answer"] == "Paris"
    assert stored["is_correct"] is False
    assert detail["score"] == 0


def test_add_and_delete_question_keeps_question_order(teacher_client, course):
    quiz = quiz_named(course, "Final")
    response = teacher_client.post(f"/api/teacher/courses/{course.id}/quizzes/{quiz.id}/questions", json={
        "text": "Sahara is a desert", "type": "TRUE_FALSE", "correct_answer": "true", "points": 2,
    })
    assert response.status_code == 201
    assert response.get_json()["question"]["position"] == 3

    first = quiz.questions[0]
    assert teacher_client.delete(
        f"/api/teacher/courses/{course.id}/quizzes/{quiz.id}/questions/{first.id}"
    ).status_code == 200
    positions = [q.position for q in Question.query.filter_by(quiz_id=quiz.id).order_by(Question.position)]
    assert positions == [1, 2]


def test_edit_quiz_validates_settings(teacher_client, course):
    quiz = quiz_named(course, "Final")
    bad = teacher_client.put(f"/api/teacher/courses/{course.id}/quizzes/{quiz.id}", json={"max_attempts": 0})
    assert bad.status_code == 400

    ok = teacher_client.put(f"/api/teacher/courses/{course.id}/quizzes/{quiz.id}", json={"max_attempts": 3, "timer": None})
    assert ok.status_code == 200
    assert ok.get_json()["quiz"]["max_attempts"] == 3
    assert ok.get_json()["quiz"]["timer"] is None


def test_fractional_timer_is_rejected(teacher_client, course):
    quiz = quiz_named(course, "Final")
    response = teacher_client.put(f"/api/teacher/courses/{course.id}/quizzes/{quiz.id}", json={"timer": 1.5})
    assert response.status_code == 400
    assert quiz_named(course, "Final").timer is None
