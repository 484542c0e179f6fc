from enum import Enum

from app.extensions import db
from app.utils.helpers import utcnow, iso


class FeedbackStatus(str, Enum):
    OPEN = "open"
    IN_DEVELOPMENT = "in-development"
    COMPLETED = "completed"
    CLOSED = "closed"


FEEDBACK_STATUS_CHOICES = tuple(s.value for s in FeedbackStatus)


class Feedback(db.Model):
    __tablename__ = "feedback"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=False)
    status = db.Column(
        db.String(20),
        nullable=False,
        default=FeedbackStatus.OPEN.value,
        server_default=FeedbackStatus.OPEN.value,
    )

    # creator is immutable; topic may be re-assigned
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    topic_id = db.Column(db.Integer, db.ForeignKey("topics.id", ondelete="RESTRICT"), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    user = db.relationship("User", lazy="joined")
    topic = db.relationship("Topic", lazy="joined")

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('open','in-development','completed','closed')",
            name="ck_feedback_status_valid",
        ),
        db.Index("ix_feedback_topic_created_at", "topic_id", "created_at"),
    )

    def summary(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "topic": self.topic.to_dict() if self.topic else None,
        }

    def to_dict(self, **extra) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "user_id": self.user_id,
            "topic_id": self.topic_id,
            "user": self.user.summary() if self.user else None,
            "topic": self.topic.to_dict() if self.topic else None,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        data.update(extra)
        return data
