from sqlalchemy.orm import relationship
from models import db

class Chapter(db.Model):
    __tablename__ = "chapters"

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id"), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    video_url = db.Column(db.String(255), nullable=True)
    position = db.Column(db.Integer, nullable=False)
    is_published = db.Column(db.Boolean, nullable=False, default=False)
    is_free = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)

    course = relationship("Course", back_populates="chapters")
    progress = relationship("ChapterProgress", back_populates="chapter", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<Chapter {self.title} (Course ID {self.course_id}, position {self.position})>"

    def to_dict(self):
        return {
            "id": self.id,
            "type": "chapter",
            "course_id": self.course_id,
            "title": self.title,
            "description": self.description if self.description is not None else "",
            "video_url": self.video_url,
            "position": self.position,
            "is_published": self.is_published,
            "is_free": self.is_free,
        }
