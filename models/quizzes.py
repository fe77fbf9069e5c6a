from models import db
from sqlalchemy.orm import relationship

class Quiz(db.Model):
    __tablename__ = "quizzes"

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id"), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    position = db.Column(db.Integer, nullable=False)
    timer = db.Column(db.Integer, nullable=True)  # minutes
    max_attempts = db.Column(db.Integer, nullable=False, default=1)
    is_published = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)

    course = relationship("Course", back_populates="quizzes")
    questions = relationship(
        "Question",
        back_populates="quiz",
        cascade="all, delete-orphan",
        order_by="Question.position",
    )
    results = relationship("QuizResult", back_populates="quiz", cascade="all, delete-orphan")
    attempts = relationship("QuizAttempt", back_populates="quiz", cascade="all, delete-orphan")

    @property
    def total_points(self):
        """Computed from the current questions, never stored."""
        return sum(q.points for q in self.questions)

    def __repr__(self):
        return f"<Quiz {self.title}>"

    def to_dict(self, include_answers=True):
        return {
            "id": self.id,
            "type": "quiz",
            "course_id": self.course_id,
            "title": self.title,
            "description": self.description,
            "position": self.position,
            "timer": self.timer,
            "max_attempts": self.max_attempts,
            "is_published": self.is_published,
            "total_points": self.total_points,
            "questions": [q.to_dict(include_answer=include_answers) for q in self.questions],
        }
