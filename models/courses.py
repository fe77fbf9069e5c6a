from models import db
from sqlalchemy.orm import relationship

class Course(db.Model):
    __tablename__ = "courses"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    price = db.Column(db.Float, nullable=False, default=0.0)
    image_url = db.Column(db.String(255), nullable=True)
    is_published = db.Column(db.Boolean, nullable=False, default=False)
    teacher_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)

    teacher = relationship("User", back_populates="courses")
    chapters = relationship("Chapter", back_populates="course", cascade="all, delete-orphan")
    quizzes = relationship("Quiz", back_populates="course", cascade="all, delete-orphan")
    purchases = relationship("Purchase", back_populates="course", cascade="all, delete-orphan")
    promocodes = relationship("PromoCode", back_populates="course", cascade="all, delete-orphan")

    @property
    def is_free(self):
        return not self.price

    def __repr__(self):
        return f"<Course {self.title} (Teacher ID {self.teacher_id})>"

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "image_url": self.image_url,
            "is_published": self.is_published,
            "teacher_id": self.teacher_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
