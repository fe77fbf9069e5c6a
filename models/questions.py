from models import db

class Question(db.Model):
    __tablename__ = "questions"

    id = db.Column(db.Integer, primary_key=True)
    quiz_id = db.Column(db.Integer, db.ForeignKey("quizzes.id"), nullable=False)
    text = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(20), nullable=False)
    options = db.Column(db.JSON, nullable=False, default=list)
    correct_answer = db.Column(db.Text, nullable=False)
    points = db.Column(db.Integer, nullable=False, default=1)
    image_url = db.Column(db.String(255), nullable=True)
    position = db.Column(db.Integer, nullable=False, default=1)

    quiz = db.relationship("Quiz", back_populates="questions")

    def to_dict(self, include_answer=True):
        data = {
            "id": self.id,
            "quiz_id": self.quiz_id,
            "text": self.text,
            "type": self.type,
            "options": self.options or [],
            "points": self.points,
            "image_url": self.image_url,
            "position": self.position,
        }
        if include_answer:
            data["correct_answer"] = self.correct_answer
        return data
