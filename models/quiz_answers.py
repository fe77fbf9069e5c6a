from models import db

class QuizAnswer(db.Model):
    __tablename__ = "quiz_answers"

    id = db.Column(db.Integer, primary_key=True)
    result_id = db.Column(db.Integer, db.ForeignKey("quiz_results.id"), nullable=False)
    question_id = db.Column(db.Integer, nullable=False)
    student_answer = db.Column(db.Text, nullable=False, default="")
    correct_answer = db.Column(db.Text, nullable=False)
    is_correct = db.Column(db.Boolean, nullable=False, default=False)
    points_earned = db.Column(db.Integer, nullable=False, default=0)

    result = db.relationship("QuizResult", back_populates="answers")

    def to_dict(self):
        return {
            "question_id": self.question_id,
            "student_answer": self.student_answer,
            "correct_answer": self.correct_answer,
            "is_correct": self.is_correct,
            "points_earned": self.points_earned,
        }
