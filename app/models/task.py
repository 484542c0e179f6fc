from enum import Enum

from app.extensions import db
from app.utils.helpers import utcnow, iso


class TaskStatus(str, Enum):
    BACKLOG = "backlog"
    NEXT_UP = "next-up"
    IN_PROGRESS = "in-progress"
    TESTING = "testing"
    COMPLETED = "completed"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


TASK_STATUS_CHOICES = tuple(s.value for s in TaskStatus)
TASK_PRIORITY_CHOICES = tuple(p.value for p in TaskPriority)


class Task(db.Model):
    __tablename__ = "tasks"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=False, default="", server_default="")
    status = db.Column(
        db.String(20),
        nullable=False,
        default=TaskStatus.BACKLOG.value,
        server_default=TaskStatus.BACKLOG.value,
    )
    priority = db.Column(
        db.String(10),
        nullable=False,
        default=TaskPriority.MEDIUM.value,
        server_default=TaskPriority.MEDIUM.value,
    )

    creator_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    assignee_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    # set once at creation
    feedback_id = db.Column(db.Integer, db.ForeignKey("feedback.id", ondelete="RESTRICT"), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    creator = db.relationship("User", foreign_keys=[creator_id], lazy="joined")
    assignee = db.relationship("User", foreign_keys=[assignee_id], lazy="joined")
    feedback = db.relationship("Feedback", lazy="joined")

    __table_args__ = (
        db.CheckConstraint(
            "status IN ('backlog','next-up','in-progress','testing','completed')",
            name="ck_tasks_status_valid",
        ),
        db.CheckConstraint(
            "priority IN ('low','medium','high','urgent')",
            name="ck_tasks_priority_valid",
        ),
        db.Index("ix_tasks_status_updated_at", "status", "updated_at"),
    )

    def summary(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "creator": self.creator.summary() if self.creator else None,
        }

    def to_dict(self, include_changelog: bool = False) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status,
            "priority": self.priority,
            "creator_id": self.creator_id,
            "assignee_id": self.assignee_id,
            "feedback_id": self.feedback_id,
            "creator": self.creator.summary() if self.creator else None,
            "assignee": self.assignee.summary() if self.assignee else None,
            "feedback": self.feedback.summary() if self.feedback else None,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if include_changelog:
            data["changelog"] = self.changelog.to_dict(expand=False) if self.changelog else None
        return data
