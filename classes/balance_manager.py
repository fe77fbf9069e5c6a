import logging
import math

from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.balance_transactions import BalanceTransaction
from models.users import User
from classes.errors import ValidationError, NotFound, PersistenceFailure

logger = logging.getLogger(__name__)

DEPOSIT = "DEPOSIT"
PURCHASE = "PURCHASE"
ADJUSTMENT = "ADJUSTMENT"


def parse_amount(value, field_name="amount", allow_zero=False):
    """A finite money amount rounded to cents; must be positive unless ``allow_zero``."""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise ValidationError(f"{field_name} must be a number")
    amount = round(float(value), 2)
    if amount < 0:
        raise ValidationError(f"{field_name} cannot be negative")
    if amount == 0 and not allow_zero:
        raise ValidationError(f"{field_name} must be greater than zero")
    return amount


class BalanceManager:
    @staticmethod
    def record(user, amount, transaction_type, description, created_by=None):
        """Stage a transaction for ``user``. Does not commit."""
        transaction = BalanceTransaction(
            user_id=user.id,
            amount=round(amount, 2) or 0.0,
            type=transaction_type,
            description=description,
            created_by=created_by,
        )
        db.session.add(transaction)
        return transaction

    @staticmethod
    def _commit(action, user_id):
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception("Failed to %s for user %s", action, user_id)
            raise PersistenceFailure()

    @staticmethod
    def deposit(user_id, amount):
        amount = parse_amount(amount)
        user = db.session.get(User, user_id)
        if not user:
            raise NotFound("User not found")

        user.balance = round(user.balance + amount, 2)
        transaction = BalanceManager.record(user, amount, DEPOSIT, f"Added {amount:.2f} to balance")
        BalanceManager._commit("add balance", user_id)

        logger.info("User %s added %s to their balance", user_id, amount)
        return user, transaction

    @staticmethod
    def set_balance(student_id, new_balance, staff_id):
        """Staff correction of a student's balance, kept in the history as the difference."""
        new_balance = parse_amount(new_balance, "new_balance", allow_zero=True)
        student = db.session.get(User, student_id)
        if not student or student.role != "student":
            raise NotFound("Student not found")

        difference = round(new_balance - student.balance, 2)
        student.balance = new_balance
        transaction = BalanceManager.record(
            student, difference, ADJUSTMENT,
            f"Balance set to {new_balance:.2f} by staff", created_by=staff_id,
        )
        BalanceManager._commit("update balance", student_id)

        logger.info("Staff %s set balance of student %s to %s", staff_id, student_id, new_balance)
        return student, transaction

    @staticmethod
    def history(user_id):
        return (
            BalanceTransaction.query
            .filter_by(user_id=user_id)
            .order_by(BalanceTransaction.created_at.desc(), BalanceTransaction.id.desc())
            .all()
        )
