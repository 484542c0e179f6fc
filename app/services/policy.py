from dataclasses import dataclass
from flask_login import current_user
from app.models.user import Role
from app.services.errors import Unauthorized, Forbidden

# Roles allowed to work the kanban board and publish changelog entries
STAFF_ROLES = frozenset({Role.ADMIN, Role.DEVELOPER})


@dataclass(frozen=True)
class Actor:
    """Resolved caller identity: who is acting and with which role."""

    user_id: int
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


def current_actor():
    """Actor for the logged-in user, or None when anonymous or banned."""
    if not getattr(current_user, "is_authenticated", False):
        return None
    if not current_user.is_active:
        return None
    try:
        role = Role(current_user.role)
    except ValueError:
        role = Role.USER
    return Actor(user_id=current_user.id, role=role)


def require_actor(actor):
    if actor is None:
        raise Unauthorized("Authentication required")
    return actor


def ensure(allowed: bool, message: str):
    if not allowed:
        raise Forbidden(message)


# --- tasks / changelogs / topics / users ---

def can_manage_tasks(actor: Actor) -> bool:
    return actor.is_staff

def can_delete_tasks(actor: Actor) -> bool:
    return actor.is_admin

def can_manage_changelogs(actor: Actor) -> bool:
    return actor.is_staff

def can_delete_changelogs(actor: Actor) -> bool:
    return actor.is_admin

def can_manage_topics(actor: Actor) -> bool:
    return actor.is_admin

def can_manage_users(actor: Actor) -> bool:
    return actor.is_admin


# --- ownership-based rules ---

def can_update_feedback(actor: Actor, feedback_owner_id: int) -> bool:
    return actor.user_id == feedback_owner_id or actor.is_staff

def can_delete_feedback(actor: Actor, feedback_owner_id: int) -> bool:
    return actor.user_id == feedback_owner_id or actor.is_admin

def can_toggle_answer(actor: Actor, feedback_owner_id: int) -> bool:
    # the feedback's creator, not the comment's author
    return actor.is_admin or actor.user_id == feedback_owner_id

def can_delete_comment(actor: Actor, comment_author_id: int, feedback_owner_id: int) -> bool:
    return (
        actor.is_admin
        or actor.user_id == comment_author_id
        or actor.user_id == feedback_owner_id
    )
