from sqlalchemy import UniqueConstraint
from app.extensions import db
from app.utils.helpers import utcnow, iso


class Changelog(db.Model):
    __tablename__ = "changelogs"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=False)
    # one entry per task; the unique index is the final authority
    task_id = db.Column(db.Integer, db.ForeignKey("tasks.id", ondelete="RESTRICT"), nullable=False)
    # copied from the task at creation time
    feedback_id = db.Column(db.Integer, db.ForeignKey("feedback.id", ondelete="RESTRICT"), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    task = db.relationship(
        "Task",
        lazy="joined",
        backref=db.backref("changelog", uselist=False, lazy="select"),
    )
    feedback = db.relationship("Feedback", lazy="joined")

    __table_args__ = (
        UniqueConstraint("task_id", name="uq_changelogs_task_id"),
    )

    def to_dict(self, expand: bool = True) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "task_id": self.task_id,
            "feedback_id": self.feedback_id,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
        if expand:
            data["task"] = self.task.summary() if self.task else None
            data["feedback"] = self.feedback.summary() if self.feedback else None
        return data
