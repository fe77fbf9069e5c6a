from models import db
from utils.helpers import utcnow

class ChapterProgress(db.Model):
    __tablename__ = "chapter_progress"

    id = db.Column(db.Integer, primary_key=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    chapter_id = db.Column(db.Integer, db.ForeignKey("chapters.id"), nullable=False)
    is_completed = db.Column(db.Boolean, nullable=False, default=True)
    completed_at = db.Column(db.DateTime, default=utcnow)

    chapter = db.relationship("Chapter", back_populates="progress")

    __table_args__ = (
        db.UniqueConstraint("student_id", "chapter_id", name="unique_student_chapter"),
    )
