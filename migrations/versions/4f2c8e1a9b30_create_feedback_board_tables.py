"""create feedback board tables

Revision ID: 4f2c8e1a9b30
Revises:
Create Date: 2026-10-18 09:12:41.204518

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4f2c8e1a9b30'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("image", sa.String(length=512), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="user"),
        sa.Column("banned", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("ban_reason", sa.String(length=255), nullable=True),
        sa.Column("ban_expires_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("email"),
        sa.CheckConstraint("role IN ('admin','developer','user')", name="ck_users_role_valid"),
    )

    op.create_table(
        "topics",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("color", sa.String(length=7), nullable=False, server_default="#0284c7"),
        sa.Column("icon", sa.String(length=64), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "feedback",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="open"),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("topic_id", sa.Integer(), sa.ForeignKey("topics.id", ondelete="RESTRICT"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('open','in-development','completed','closed')",
            name="ck_feedback_status_valid",
        ),
    )
    op.create_index("ix_feedback_user_id", "feedback", ["user_id"])
    op.create_index("ix_feedback_topic_id", "feedback", ["topic_id"])
    op.create_index("ix_feedback_topic_created_at", "feedback", ["topic_id", "created_at"])

    op.create_table(
        "comments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("feedback_id", sa.Integer(), sa.ForeignKey("feedback.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("parent_id", sa.Integer(), sa.ForeignKey("comments.id"), nullable=True),
        sa.Column("is_answer", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index("ix_comments_feedback_id", "comments", ["feedback_id"])
    op.create_index("ix_comments_user_id", "comments", ["user_id"])
    op.create_index("ix_comments_parent_id", "comments", ["parent_id"])
    op.create_index("ix_comments_feedback_created_at", "comments", ["feedback_id", "created_at"])
    # At most one accepted answer per feedback
    op.create_index(
        "uq_comments_feedback_answer",
        "comments",
        ["feedback_id"],
        unique=True,
        postgresql_where=sa.text("is_answer"),
        sqlite_where=sa.text("is_answer = 1"),
    )

    op.create_table(
        "upvotes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("feedback_id", sa.Integer(), sa.ForeignKey("feedback.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "feedback_id", name="uq_upvotes_user_feedback"),
    )
    op.create_index("ix_upvotes_user_id", "upvotes", ["user_id"])
    op.create_index("ix_upvotes_feedback_id", "upvotes", ["feedback_id"])

    op.create_table(
        "tasks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="backlog"),
        sa.Column("priority", sa.String(length=10), nullable=False, server_default="medium"),
        sa.Column("creator_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("assignee_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("feedback_id", sa.Integer(), sa.ForeignKey("feedback.id", ondelete="RESTRICT"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('backlog','next-up','in-progress','testing','completed')",
            name="ck_tasks_status_valid",
        ),
        sa.CheckConstraint(
            "priority IN ('low','medium','high','urgent')",
            name="ck_tasks_priority_valid",
        ),
    )
    op.create_index("ix_tasks_creator_id", "tasks", ["creator_id"])
    op.create_index("ix_tasks_assignee_id", "tasks", ["assignee_id"])
    op.create_index("ix_tasks_feedback_id", "tasks", ["feedback_id"])
    op.create_index("ix_tasks_status_updated_at", "tasks", ["status", "updated_at"])

    op.create_table(
        "changelogs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("task_id", sa.Integer(), sa.ForeignKey("tasks.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("feedback_id", sa.Integer(), sa.ForeignKey("feedback.id", ondelete="RESTRICT"), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("task_id", name="uq_changelogs_task_id"),
    )
    op.create_index("ix_changelogs_feedback_id", "changelogs", ["feedback_id"])


def downgrade():
    op.drop_index("ix_changelogs_feedback_id", table_name="changelogs")
    op.drop_table("changelogs")

    op.drop_index("ix_tasks_status_updated_at", table_name="tasks")
    op.drop_index("ix_tasks_feedback_id", table_name="tasks")
    op.drop_index("ix_tasks_assignee_id", table_name="tasks")
    op.drop_index("ix_tasks_creator_id", table_name="tasks")
    op.drop_table("tasks")

    op.drop_index("ix_upvotes_feedback_id", table_name="upvotes")
    op.drop_index("ix_upvotes_user_id", table_name="upvotes")
    op.drop_table("upvotes")

    op.drop_index("uq_comments_feedback_answer", table_name="comments")
    op.drop_index("ix_comments_feedback_created_at", table_name="comments")
    op.drop_index("ix_comments_parent_id", table_name="comments")
    op.drop_index("ix_comments_user_id", table_name="comments")
    op.drop_index("ix_comments_feedback_id", table_name="comments")
    op.drop_table("comments")

    op.drop_index("ix_feedback_topic_created_at", table_name="feedback")
    op.drop_index("ix_feedback_topic_id", table_name="feedback")
    op.drop_index("ix_feedback_user_id", table_name="feedback")
    op.drop_table("feedback")

    op.drop_table("topics")
    op.drop_table("users")
