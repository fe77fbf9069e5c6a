from models import db
from utils.helpers import utcnow

class QuizResult(db.Model):
    __tablename__ = "quiz_results"

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id"), nullable=False)
    score = db.Column(db.Integer, nullable=False, default=0)
    total_points = db.Column(db.Integer, nullable=False, default=0)
    percentage = db.Column(db.Integer, nullable=False, default=0)
    attempt_number = db.Column(db.Integer, nullable=False, default=1)
    auto_submitted = db.Column(db.Boolean, nullable=False, default=False)
    submitted_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    quiz = db.relationship("Quiz", back_populates="results")
    student = db.relationship("User", backref=db.backref("quiz_results", lazy=True))
    answers = db.relationship(
        "QuizAnswer",
        back_populates="result",
        cascade="all, delete-orphan",
        order_by="QuizAnswer.id",
    )

    def to_dict(self, include_answers=True):
        data = {
            "id": self.id,
            "student_id": self.student_id,
            "quiz_id": self.quiz_id,
            "score": self.score,
            "total_points": self.total_points,
            "percentage": self.percentage,
            "attempt_number": self.attempt_number,
            "auto_submitted": self.auto_submitted,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
        }
        if include_answers:
            data["answers"] = [answer.to_dict() for answer in self.answers]
        return data
