from models import db
from utils.helpers import utcnow

class PromoCode(db.Model):
    __tablename__ = "promocodes"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(50), nullable=False, unique=True)
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id"), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    usage_limit = db.Column(db.Integer, nullable=False, default=1)
    used_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    course = db.relationship("Course", back_populates="promocodes")

    @property
    def is_exhausted(self):
        return self.used_count >= (self.usage_limit or 1)

    def to_dict(self):
        return {
            "id": self.id,
            "code": self.code,
            "course_id": self.course_id,
            "description": self.description,
            "is_active": self.is_active,
            "usage_limit": self.usage_limit,
            "used_count": self.used_count,
        }
