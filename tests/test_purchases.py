import pytest

from classes.errors import ValidationError, NotFound
from classes.purchase_manager import PurchaseManager
from models import db
from models.courses import Course
from models.promocodes import PromoCode
from models.purchases import Purchase
from models.users import User


@pytest.fixture
def paid_course(teacher):
    course = Course(title="Oceans", price=40.0, is_published=True, teacher_id=teacher.id)
    db.session.add(course)
    db.session.commit()
    return course


@pytest.fixture
def promocode(paid_course):
    promocode = PromoCode(code="WELCOME", course_id=paid_course.id, usage_limit=1)
    db.session.add(promocode)
    db.session.commit()
    return promocode


def test_purchase_deducts_balance(student_client, student, paid_course):
    response = student_client.post(f"/api/student/courses/{paid_course.id}/purchase")
    assert response.status_code == 201
    assert response.get_json()["new_balance"] == 60.0
    assert db.session.get(User, student.id).balance == 60.0

    again = student_client.post(f"/api/student/courses/{paid_course.id}/purchase")
    assert again.status_code == 400
    assert Purchase.query.count() == 1


def test_insufficient_balance(app, student, paid_course):
    paid_course.price = 150.0
    db.session.commit()

    with pytest.raises(ValidationError) as excinfo:
        PurchaseManager.purchase(paid_course, student.id)
    assert excinfo.value.payload == {"required": 150.0, "available": 100.0}
    assert not PurchaseManager.has_access(paid_course, student.id, "student")


def test_validate_promocode_quotes_free_course(student_client, paid_course, promocode):
    response = student_client.post("/api/student/promocodes/validate", json={
        "code": " welcome ", "course_id": paid_course.id,
    })
    assert response.status_code == 200
    data = response.get_json()
    assert data["valid"] is True
    assert data["promocode"]["code"] == "WELCOME"
    assert (data["original_price"], data["discount_amount"], data["final_price"]) == (40.0, 40.0, 0.0)


def test_unknown_promocode(student_client, paid_course):
    response = student_client.post("/api/student/promocodes/validate", json={
        "code": "NOPE", "course_id": paid_course.id,
    })
    assert response.status_code == 404
    assert response.get_json()["error"] == "Invalid promo code"


def test_purchase_with_promocode_uses_it_up(student_client, student, paid_course, promocode):
    response = student_client.post(f"/api/student/courses/{paid_course.id}/purchase",
                                   json={"promocode": "WELCOME"})
    assert response.status_code == 201
    assert response.get_json()["purchase"]["price_paid"] == 0.0
    assert response.get_json()["new_balance"] == 100.0
    assert db.session.get(PromoCode, promocode.id).used_count == 1

    with pytest.raises(ValidationError):
        PurchaseManager.validate_promocode("WELCOME", paid_course)


def test_promocode_for_another_course_is_rejected(teacher, paid_course, promocode):
    other = Course(title="Rivers", price=10.0, is_published=True, teacher_id=teacher.id)
    db.session.add(other)
    db.session.commit()

    with pytest.raises(ValidationError):
        PurchaseManager.validate_promocode("WELCOME", other)

    promocode.is_active = False
    with pytest.raises(ValidationError):
        PurchaseManager.validate_promocode("WELCOME", paid_course)
    with pytest.raises(NotFound):
        PurchaseManager.validate_promocode("MISSING", paid_course)


def test_teacher_manages_promocodes(teacher_client, paid_course):
    created = teacher_client.post(f"/api/teacher/courses/{paid_course.id}/promocodes", json={"code": "spring"})
    assert created.status_code == 201
    assert created.get_json()["promocode"]["code"] == "SPRING"

    duplicate = teacher_client.post(f"/api/teacher/courses/{paid_course.id}/promocodes", json={"code": "SPRING"})
    assert duplicate.status_code == 409

    promocode_id = created.get_json()["promocode"]["id"]
    toggled = teacher_client.patch(f"/api/teacher/courses/{paid_course.id}/promocodes/{promocode_id}", json={})
    assert toggled.get_json()["promocode"]["is_active"] is False

    assert teacher_client.delete(
        f"/api/teacher/courses/{paid_course.id}/promocodes/{promocode_id}"
    ).status_code == 200
    assert PromoCode.query.count() == 0
