"""
Lifecycle rules for topics, feedback, tasks and changelog entries.

Every mutation takes the acting identity (``Actor`` or ``None``) and runs
inside the caller's transaction (see ``persistence.unit_of_work``); nothing
here commits. Cross-entity cascades live here and only here:

* the first task on an ``open`` feedback moves it to ``in-development``;
* a task entering ``completed`` moves its feedback to ``completed``;
* feedback, tasks and topics cannot be deleted while dependents exist.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models import (
    Changelog,
    Comment,
    Feedback,
    FeedbackStatus,
    Task,
    TaskPriority,
    TaskStatus,
    Topic,
    Upvote,
    User,
)
from app.services import policy, workflow
from app.services.errors import Conflict, NotFound, ValidationError
from app.services.persistence import flush_or_conflict

log = logging.getLogger(__name__)

DEFAULT_TOPIC_COLOR = "#0284c7"

FEEDBACK_SORTS = ("newest", "oldest", "most-upvotes", "least-upvotes")

_TOPIC_FIELDS = {"name", "description", "color", "icon"}
_FEEDBACK_FIELDS = {"title", "description", "topic_id", "status"}
_TASK_FIELDS = {"title", "description", "status", "priority", "assignee_id"}
_CHANGELOG_FIELDS = {"title", "description"}


def _check_patch(patch: dict, allowed: set, entity: str) -> dict:
    unknown = sorted(set(patch) - allowed)
    if unknown:
        raise ValidationError(f"Fields cannot be changed on {entity}: {', '.join(unknown)}")
    return patch


def _get_or_404(session: Session, model, obj_id, label: str):
    obj = session.get(model, obj_id) if obj_id is not None else None
    if obj is None:
        raise NotFound(f"{label} not found")
    return obj


def _require_user(session: Session, user_id, label: str = "Assignee") -> User:
    return _get_or_404(session, User, user_id, label)


# ──────────────────────────────────────────────────────────────────────────────
# Topics
# ──────────────────────────────────────────────────────────────────────────────

def list_topics(session: Session) -> list[Topic]:
    return session.query(Topic).order_by(Topic.name.asc()).all()


def get_topic(session: Session, topic_id: int) -> Topic:
    return _get_or_404(session, Topic, topic_id, "Topic")


def create_topic(
    session: Session,
    actor,
    *,
    name: str,
    description: Optional[str] = None,
    color: Optional[str] = None,
    icon: Optional[str] = None,
) -> Topic:
    actor = policy.require_actor(actor)
    policy.ensure(policy.can_manage_topics(actor), "You don't have permission to manage topics")

    if session.query(Topic.id).filter(Topic.name == name).first():
        raise Conflict(f"Topic '{name}' already exists")

    topic = Topic(name=name, description=description, color=color or DEFAULT_TOPIC_COLOR, icon=icon)
    session.add(topic)
    flush_or_conflict(session, f"Topic '{name}' already exists")
    return topic


def update_topic(session: Session, actor, topic_id: int, patch: dict) -> Topic:
    actor = policy.require_actor(actor)
    policy.ensure(policy.can_manage_topics(actor), "You don't have permission to manage topics")
    _check_patch(patch, _TOPIC_FIELDS, "topic")

    topic = get_topic(session, topic_id)
    new_name = patch.get("name")
    if new_name and new_name != topic.name:
        if session.query(Topic.id).filter(Topic.name == new_name, Topic.id != topic.id).first():
            raise Conflict(f"Topic '{new_name}' already exists")

    for key, value in patch.items():
        setattr(topic, key, value)
    flush_or_conflict(session, "Topic name already exists")
    return topic


def delete_topic(session: Session, actor, topic_id: int) -> None:
    actor = policy.require_actor(actor)
    policy.ensure(policy.can_manage_topics(actor), "You don't have permission to delete topics")

    topic = get_topic(session, topic_id)
    in_use = session.query(func.count(Feedback.id)).filter(Feedback.topic_id == topic.id).scalar()
    if in_use:
        raise Conflict("Cannot delete topic with associated feedback")

    session.delete(topic)
    session.flush()
    log.info("Topic %s deleted by user %s", topic_id, actor.user_id)


# ──────────────────────────────────────────────────────────────────────────────
# Feedback
# ──────────────────────────────────────────────────────────────────────────────

def _upvote_count_expr():
    return (
        select(func.count(Upvote.id))
        .where(Upvote.feedback_id == Feedback.id)
        .correlate(Feedback)
        .scalar_subquery()
    )


def _comment_count_expr():
    return (
        select(func.count(Comment.id))
        .where(Comment.feedback_id == Feedback.id)
        .correlate(Feedback)
        .scalar_subquery()
    )


def get_feedback(session: Session, feedback_id: int) -> Feedback:
    return _get_or_404(session, Feedback, feedback_id, "Feedback")


def list_feedback(
    session: Session,
    *,
    topic_id: Optional[int] = None,
    status: Optional[str] = None,
    sort: str = "newest",
) -> list[dict]:
    """Feedback rows with upvote/comment counts, filtered and sorted for the board."""
    if sort not in FEEDBACK_SORTS:
        raise ValidationError(f"Unknown sort: {sort!r}")

    upvotes = _upvote_count_expr()
    comments = _comment_count_expr()
    query = session.query(Feedback, upvotes.label("upvote_count"), comments.label("comment_count"))

    if topic_id is not None:
        query = query.filter(Feedback.topic_id == topic_id)
    if status:
        query = query.filter(Feedback.status == workflow.parse_feedback_status(status).value)

    if sort == "oldest":
        query = query.order_by(Feedback.created_at.asc(), Feedback.id.asc())
    elif sort == "most-upvotes":
        query = query.order_by(upvotes.desc(), Feedback.created_at.desc(), Feedback.id.desc())
    elif sort == "least-upvotes":
        query = query.order_by(upvotes.asc(), Feedback.created_at.desc(), Feedback.id.desc())
    else:
        query = query.order_by(Feedback.created_at.desc(), Feedback.id.desc())

    return [
        fb.to_dict(upvote_count=int(up or 0), comment_count=int(cm or 0))
        for (fb, up, cm) in query.all()
    ]


def get_feedback_detail(session: Session, feedback_id: int, actor=None) -> dict:
    feedback = get_feedback(session, feedback_id)
    comments = (
        session.query(Comment)
        .filter(Comment.feedback_id == feedback.id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .all()
    )
    upvote_count = session.query(func.count(Upvote.id)).filter(Upvote.feedback_id == feedback.id).scalar()
    user_upvoted = False
    if actor is not None:
        user_upvoted = (
            session.query(Upvote.id)
            .filter(Upvote.feedback_id == feedback.id, Upvote.user_id == actor.user_id)
            .first()
            is not None
        )
    return feedback.to_dict(
        upvote_count=int(upvote_count or 0),
        user_upvoted=user_upvoted,
        comments=[c.to_dict() for c in comments],
    )


def create_feedback(
    session: Session,
    actor,
    *,
    title: str,
    description: str,
    topic_id: int,
) -> Feedback:
    actor = policy.require_actor(actor)
    _get_or_404(session, Topic, topic_id, "Topic")

    # creator always comes from the identity, never from the payload
    feedback = Feedback(
        title=title,
        description=description,
        topic_id=topic_id,
        user_id=actor.user_id,
        status=FeedbackStatus.OPEN.value,
    )
    session.add(feedback)
    session.flush()
    return feedback


def update_feedback(session: Session, actor, feedback_id: int, patch: dict) -> Feedback:
    actor = policy.require_actor(actor)
    _check_patch(patch, _FEEDBACK_FIELDS, "feedback")

    feedback = get_feedback(session, feedback_id)
    policy.ensure(
        policy.can_update_feedback(actor, feedback.user_id),
        "You don't have permission to update this feedback",
    )

    if "topic_id" in patch:
        topic = _get_or_404(session, Topic, patch["topic_id"], "Topic")
        feedback.topic = topic
    if "status" in patch:
        # direct edits accept any enumerated status
        feedback.status = workflow.parse_feedback_status(patch["status"]).value
    for key in ("title", "description"):
        if key in patch:
            setattr(feedback, key, patch[key])

    session.flush()
    return feedback


def delete_feedback(session: Session, actor, feedback_id: int) -> None:
    actor = policy.require_actor(actor)
    feedback = get_feedback(session, feedback_id)
    policy.ensure(
        policy.can_delete_feedback(actor, feedback.user_id),
        "You don't have permission to delete this feedback",
    )

    task_count = session.query(func.count(Task.id)).filter(Task.feedback_id == feedback.id).scalar()
    if task_count:
        raise Conflict("Cannot delete feedback with associated tasks")

    # explicit order: comments, then upvotes, then the feedback itself
    removed_comments = session.query(Comment).filter(Comment.feedback_id == feedback.id).delete()
    removed_upvotes = session.query(Upvote).filter(Upvote.feedback_id == feedback.id).delete()
    session.delete(feedback)
    session.flush()
    log.info(
        "Feedback %s deleted by user %s (%s comments, %s upvotes)",
        feedback_id, actor.user_id, removed_comments, removed_upvotes,
    )


def toggle_upvote(session: Session, actor, feedback_id: int) -> bool:
    """Flip the caller's upvote; returns True when an upvote now exists."""
    actor = policy.require_actor(actor)
    feedback = get_feedback(session, feedback_id)

    existing = (
        session.query(Upvote)
        .filter_by(user_id=actor.user_id, feedback_id=feedback.id)
        .one_or_none()
    )
    if existing is not None:
        session.delete(existing)
        session.flush()
        return False

    session.add(Upvote(user_id=actor.user_id, feedback_id=feedback.id))
    flush_or_conflict(session, "Upvote changed concurrently; retry")
    return True


def upvote_status(session: Session, actor, feedback_id: int) -> dict:
    actor = policy.require_actor(actor)
    get_feedback(session, feedback_id)
    count = session.query(func.count(Upvote.id)).filter(Upvote.feedback_id == feedback_id).scalar()
    mine = (
        session.query(Upvote.id)
        .filter_by(user_id=actor.user_id, feedback_id=feedback_id)
        .first()
    )
    return {"count": int(count or 0), "user_upvoted": mine is not None}


# ──────────────────────────────────────────────────────────────────────────────
# Tasks
# ──────────────────────────────────────────────────────────────────────────────

def get_task(session: Session, task_id: int) -> Task:
    return _get_or_404(session, Task, task_id, "Task")


def list_tasks(
    session: Session,
    *,
    status: Optional[str] = None,
    assignee_id: Optional[int] = None,
    feedback_id: Optional[int] = None,
) -> list[Task]:
    query = session.query(Task)
    if status:
        query = query.filter(Task.status == workflow.parse_task_status(status).value)
    if assignee_id is not None:
        query = query.filter(Task.assignee_id == assignee_id)
    if feedback_id is not None:
        query = query.filter(Task.feedback_id == feedback_id)
    return query.order_by(Task.updated_at.desc(), Task.id.desc()).all()


def create_task(
    session: Session,
    actor,
    *,
    title: str,
    feedback_id: int,
    description: Optional[str] = None,
    status: str = TaskStatus.BACKLOG.value,
    priority: str = TaskPriority.MEDIUM.value,
    assignee_id: Optional[int] = None,
) -> Task:
    actor = policy.require_actor(actor)
    policy.ensure(policy.can_manage_tasks(actor), "You don't have permission to create tasks")

    feedback = get_feedback(session, feedback_id)
    assignee = None
    if assignee_id is not None:
        assignee = _require_user(session, assignee_id)

    task = Task(
        title=title,
        description=description or "",
        status=workflow.parse_task_status(status).value,
        priority=workflow.parse_task_priority(priority).value,
        creator_id=actor.user_id,
        assignee=assignee,
        feedback=feedback,
    )
    session.add(task)

    next_status = workflow.feedback_status_after_task_created(feedback.status)
    if next_status.value != feedback.status:
        log.info("Feedback %s: %s -> %s (task created)", feedback.id, feedback.status, next_status.value)
        feedback.status = next_status.value

    session.flush()
    return task


def update_task(session: Session, actor, task_id: int, patch: dict) -> Task:
    actor = policy.require_actor(actor)
    policy.ensure(policy.can_manage_tasks(actor), "You don't have permission to update tasks")
    _check_patch(patch, _TASK_FIELDS, "task")

    task = get_task(session, task_id)

    assignee = None
    if patch.get("assignee_id") is not None:
        assignee = _require_user(session, patch["assignee_id"])

    previous_status = task.status
    if "status" in patch:
        task.status = workflow.parse_task_status(patch["status"]).value
    if "priority" in patch:
        task.priority = workflow.parse_task_priority(patch["priority"]).value
    if "assignee_id" in patch:
        task.assignee = assignee
    for key in ("title", "description"):
        if key in patch:
            setattr(task, key, patch[key] if patch[key] is not None else "")

    # compare against the pre-update status so re-saving a completed task is a no-op
    if workflow.completes_task(previous_status, patch.get("status")):
        feedback = task.feedback
        target = workflow.feedback_status_after_task_completed(feedback.status)
        if feedback.status != target.value:
            log.info("Feedback %s: %s -> %s (task %s completed)", feedback.id, feedback.status, target.value, task.id)
            feedback.status = target.value

    session.flush()
    return task


def move_task_forward(session: Session, actor, task_id: int) -> Task:
    actor = policy.require_actor(actor)
    policy.ensure(policy.can_manage_tasks(actor), "You don't have permission to update tasks")
    task = get_task(session, task_id)
    target = workflow.next_task_status(task.status)
    return update_task(session, actor, task.id, {"status": target.value})


def review_task(session: Session, actor, task_id: int, approved: bool) -> Task:
    actor = policy.require_actor(actor)
    policy.ensure(policy.can_manage_tasks(actor), "You don't have permission to update tasks")
    task = get_task(session, task_id)
    target = workflow.review_task_status(task.status, approved)
    return update_task(session, actor, task.id, {"status": target.value})


def delete_task(session: Session, actor, task_id: int) -> None:
    actor = policy.require_actor(actor)
    policy.ensure(policy.can_delete_tasks(actor), "You don't have permission to delete tasks")

    task = get_task(session, task_id)
    has_changelog = session.query(Changelog.id).filter(Changelog.task_id == task.id).first()
    if has_changelog:
        raise Conflict("Cannot delete a task with an associated changelog")

    session.delete(task)
    session.flush()
    log.info("Task %s deleted by user %s", task_id, actor.user_id)


# ──────────────────────────────────────────────────────────────────────────────
# Changelog
# ──────────────────────────────────────────────────────────────────────────────

def get_changelog(session: Session, changelog_id: int) -> Changelog:
    return _get_or_404(session, Changelog, changelog_id, "Changelog")


def list_changelogs(
    session: Session,
    *,
    feedback_id: Optional[int] = None,
    topic_id: Optional[int] = None,
) -> list[Changelog]:
    query = session.query(Changelog)
    if feedback_id is not None:
        query = query.filter(Changelog.feedback_id == feedback_id)
    if topic_id is not None:
        query = query.join(Feedback, Feedback.id == Changelog.feedback_id).filter(Feedback.topic_id == topic_id)
    return query.order_by(Changelog.created_at.desc(), Changelog.id.desc()).all()


def create_changelog(
    session: Session,
    actor,
    *,
    title: str,
    description: str,
    task_id: int,
) -> Changelog:
    actor = policy.require_actor(actor)
    policy.ensure(policy.can_manage_changelogs(actor), "You don't have permission to create changelogs")

    task = get_task(session, task_id)
    if task.status != TaskStatus.COMPLETED.value:
        raise Conflict("Only completed tasks can have changelog entries")
    if session.query(Changelog.id).filter(Changelog.task_id == task.id).first():
        raise Conflict("This task already has a changelog entry")

    # feedback reference is trusted from the task
    entry = Changelog(title=title, description=description, task=task, feedback_id=task.feedback_id)
    session.add(entry)
    flush_or_conflict(session, "This task already has a changelog entry")
    return entry


def update_changelog(session: Session, actor, changelog_id: int, patch: dict) -> Changelog:
    actor = policy.require_actor(actor)
    policy.ensure(policy.can_manage_changelogs(actor), "You don't have permission to update changelogs")
    _check_patch(patch, _CHANGELOG_FIELDS, "changelog")

    entry = get_changelog(session, changelog_id)
    for key, value in patch.items():
        setattr(entry, key, value)
    session.flush()
    return entry


def delete_changelog(session: Session, actor, changelog_id: int) -> None:
    actor = policy.require_actor(actor)
    policy.ensure(policy.can_delete_changelogs(actor), "You don't have permission to delete changelogs")

    entry = get_changelog(session, changelog_id)
    session.delete(entry)
    session.flush()
    log.info("Changelog %s deleted by user %s", changelog_id, actor.user_id)
