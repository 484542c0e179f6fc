from app.extensions import db
from app.utils.helpers import utcnow, iso

# Placeholder left behind when a comment with replies is deleted
DELETED_COMMENT_MARKER = "_This comment has been deleted_"


class Comment(db.Model):
    __tablename__ = "comments"

    id = db.Column(db.Integer, primary_key=True)
    content = db.Column(db.Text, nullable=False)
    feedback_id = db.Column(db.Integer, db.ForeignKey("feedback.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    # replies point at their parent by id; no nested pointers
    parent_id = db.Column(db.Integer, db.ForeignKey("comments.id"), nullable=True, index=True)
    is_answer = db.Column(db.Boolean, nullable=False, default=False, server_default=db.false())

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    user = db.relationship("User", lazy="joined")

    __table_args__ = (
        db.Index("ix_comments_feedback_created_at", "feedback_id", "created_at"),
        # at most one accepted answer per feedback
        db.Index(
            "uq_comments_feedback_answer",
            "feedback_id",
            unique=True,
            postgresql_where=db.text("is_answer"),
            sqlite_where=db.text("is_answer = 1"),
        ),
    )

    @property
    def is_deleted(self) -> bool:
        return self.content == DELETED_COMMENT_MARKER

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "content": self.content,
            "feedback_id": self.feedback_id,
            "user_id": self.user_id,
            "parent_id": self.parent_id,
            "is_answer": bool(self.is_answer),
            "is_deleted": self.is_deleted,
            "user": self.user.summary() if self.user else None,
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
