from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.models import Changelog, Feedback, Role, Task, User
from app.models.feedback import FEEDBACK_STATUS_CHOICES
from app.models.task import TASK_STATUS_CHOICES
from app.services import policy
from app.services.errors import Conflict, NotFound, ValidationError

log = logging.getLogger(__name__)


def _require_admin(actor):
    actor = policy.require_actor(actor)
    policy.ensure(policy.can_manage_users(actor), "You don't have permission to manage users")
    return actor


def _get_user(session: Session, user_id: int) -> User:
    user = session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


def list_users(session: Session, actor, *, q: Optional[str] = None, role: Optional[str] = None) -> list[User]:
    _require_admin(actor)
    query = session.query(User)
    if q:
        like = f"%{q.strip().lower()}%"
        query = query.filter(or_(func.lower(User.name).like(like), func.lower(User.email).like(like)))
    if role:
        try:
            query = query.filter(User.role == Role(role).value)
        except ValueError:
            raise ValidationError(f"Invalid role: {role!r}") from None
    return query.order_by(User.created_at.desc(), User.id.desc()).all()


def set_user_role(session: Session, actor, user_id: int, role: str) -> User:
    actor = _require_admin(actor)
    try:
        new_role = Role(role)
    except ValueError:
        raise ValidationError(f"Invalid role: {role!r}") from None

    user = _get_user(session, user_id)
    if user.id == actor.user_id and new_role is not Role.ADMIN:
        raise Conflict("You cannot change your own role")

    log.info("User %s role %s -> %s by admin %s", user.id, user.role, new_role.value, actor.user_id)
    user.role = new_role.value
    session.flush()
    return user


def ban_user(
    session: Session,
    actor,
    user_id: int,
    *,
    reason: Optional[str] = None,
    expires_at: Optional[datetime] = None,
) -> User:
    actor = _require_admin(actor)
    user = _get_user(session, user_id)
    if user.id == actor.user_id:
        raise Conflict("You cannot ban yourself")

    user.banned = True
    user.ban_reason = reason
    user.ban_expires_at = expires_at
    session.flush()
    log.info("User %s banned by admin %s (expires=%s)", user.id, actor.user_id, expires_at)
    return user


def unban_user(session: Session, actor, user_id: int) -> User:
    actor = _require_admin(actor)
    user = _get_user(session, user_id)
    user.banned = False
    user.ban_reason = None
    user.ban_expires_at = None
    session.flush()
    log.info("User %s unbanned by admin %s", user.id, actor.user_id)
    return user


def _status_breakdown(session: Session, column, choices) -> dict:
    counts = dict.fromkeys(choices, 0)
    for status, total in session.query(column, func.count()).group_by(column).all():
        counts[status] = int(total)
    return counts


def dashboard_stats(session: Session, actor) -> dict:
    """Headline counts for the admin dashboard."""
    _require_admin(actor)
    return {
        "users": {
            "total": session.query(func.count(User.id)).scalar() or 0,
            "banned": session.query(func.count(User.id)).filter(User.banned.is_(True)).scalar() or 0,
            "by_role": _status_breakdown(session, User.role, tuple(r.value for r in Role)),
        },
        "feedback": {
            "total": session.query(func.count(Feedback.id)).scalar() or 0,
            "by_status": _status_breakdown(session, Feedback.status, FEEDBACK_STATUS_CHOICES),
        },
        "tasks": {
            "total": session.query(func.count(Task.id)).scalar() or 0,
            "by_status": _status_breakdown(session, Task.status, TASK_STATUS_CHOICES),
        },
        "changelogs": {
            "total": session.query(func.count(Changelog.id)).scalar() or 0,
        },
    }
