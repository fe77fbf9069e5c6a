from models import db
from utils.helpers import utcnow

class Purchase(db.Model):
    __tablename__ = "purchases"

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id"), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="ACTIVE")
    price_paid = db.Column(db.Float, nullable=False, default=0.0)
    promocode_id = db.Column(db.Integer, db.ForeignKey("promocodes.id"), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    course = db.relationship("Course", back_populates="purchases")
    promocode = db.relationship("PromoCode")

    __table_args__ = (
        db.UniqueConstraint("student_id", "course_id", name="unique_student_course_purchase"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "course_id": self.course_id,
            "status": self.status,
            "price_paid": self.price_paid,
            "promocode": self.promocode.code if self.promocode else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
