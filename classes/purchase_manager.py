import logging

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.promocodes import PromoCode
from models.purchases import Purchase
from models.users import User
from classes.balance_manager import BalanceManager, PURCHASE
from classes.errors import ValidationError, NotFound, PersistenceFailure

logger = logging.getLogger(__name__)

ACTIVE = "ACTIVE"
FAILED = "FAILED"


def normalize_code(code):
    if not isinstance(code, str) or not code.strip():
        raise ValidationError("Promo code is required")
    return code.strip().upper()


class PurchaseManager:
    @staticmethod
    def has_access(course, user_id, role=None):
        """Free courses are open to everyone, paid ones need an active purchase."""
        if role in ("teacher", "admin"):
            return True
        if course.is_free:
            return True
        return Purchase.query.filter_by(
            student_id=user_id, course_id=course.id, status=ACTIVE
        ).first() is not None

    @staticmethod
    def validate_promocode(code, course):
        """Return the usable promo code for ``course`` or raise."""
        promocode = PromoCode.query.filter_by(code=normalize_code(code)).first()
        if not promocode:
            raise NotFound("Invalid promo code")
        if not promocode.is_active:
            raise ValidationError("This promo code is not active")
        if promocode.course_id != course.id:
            raise ValidationError("This promo code is not valid for this course")
        if promocode.is_exhausted:
            raise ValidationError("This promo code has already been used")
        return promocode

    @staticmethod
    def quote(course, code=None):
        price = course.price or 0.0
        promocode = PurchaseManager.validate_promocode(code, course) if code else None
        # Every promo code covers the full course price
        discount = price if promocode else 0.0
        return {
            "original_price": round(price, 2),
            "discount_amount": round(discount, 2),
            "final_price": round(price - discount, 2),
            "promocode": promocode,
        }

    @staticmethod
    def purchase(course, student_id, code=None):
        existing = Purchase.query.filter_by(student_id=student_id, course_id=course.id).first()
        if existing and existing.status == ACTIVE:
            raise ValidationError("You have already purchased this course")

        student = db.session.get(User, student_id)
        if not student:
            raise NotFound("User not found")

        quote = PurchaseManager.quote(course, code)
        final_price = quote["final_price"]
        if student.balance < final_price:
            logger.info("Student %s has insufficient balance for course %s", student_id, course.id)
            raise ValidationError("Insufficient balance", required=final_price, available=student.balance)

        promocode = quote["promocode"]
        try:
            if existing:
                db.session.delete(existing)
                db.session.flush()

            purchase = Purchase(
                student_id=student_id,
                course_id=course.id,
                status=ACTIVE,
                price_paid=final_price,
                promocode_id=promocode.id if promocode else None,
            )
            db.session.add(purchase)
            student.balance = round(student.balance - final_price, 2)
            BalanceManager.record(student, -final_price, PURCHASE, f"Purchased course: {course.title}")
            if promocode:
                promocode.used_count += 1
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Purchase of course %s by student %s failed", course.id, student_id)
            raise PersistenceFailure()

        logger.info("Student %s purchased course %s for %s", student_id, course.id, final_price)
        return purchase, student.balance
