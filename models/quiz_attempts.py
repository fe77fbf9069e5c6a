from models import db
from utils.helpers import utcnow

class QuizAttempt(db.Model):
    """Marks an opened, not yet submitted quiz attempt."""
    __tablename__ = "quiz_attempts"

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id"), nullable=False)
    started_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    submitted_at = db.Column(db.DateTime, nullable=True)

    quiz = db.relationship("Quiz", back_populates="attempts")
    student = db.relationship("User", backref=db.backref("quiz_attempts", lazy=True))

    @property
    def is_open(self):
        return self.submitted_at is None

    def to_dict(self):
        return {
            "id": self.id,
            "student_id": self.student_id,
            "quiz_id": self.quiz_id,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
        }
