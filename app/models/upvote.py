from sqlalchemy import UniqueConstraint
from app.extensions import db
from app.utils.helpers import utcnow


class Upvote(db.Model):
    __tablename__ = "upvotes"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    feedback_id = db.Column(db.Integer, db.ForeignKey("feedback.id"), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "feedback_id", name="uq_upvotes_user_feedback"),
    )
