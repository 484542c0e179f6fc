"""
Threaded comments on a feedback item.

Comments form a reply tree stored flat: each row carries an optional
``parent_id``. At most one comment per feedback is the accepted answer at any
time; marking one sweeps every other answer on that feedback first and closes
the feedback, all in the caller's transaction.

Deletion depends on children: a comment with replies is blanked (content
replaced by ``DELETED_COMMENT_MARKER``, answer flag cleared) so the thread
stays intact, a leaf comment is removed outright.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from app.models import Comment, DELETED_COMMENT_MARKER, Feedback
from app.services import policy, workflow
from app.services.errors import NotFound

log = logging.getLogger(__name__)


def _get_feedback(session: Session, feedback_id: int, *, lock: bool = False) -> Feedback:
    feedback = None
    if feedback_id is not None:
        query = session.query(Feedback).filter(Feedback.id == feedback_id)
        if lock:
            # serialises answer changes per feedback (no-op on SQLite)
            query = query.with_for_update(of=Feedback)
        feedback = query.one_or_none()
    if feedback is None:
        raise NotFound("Feedback not found")
    return feedback


def _get_comment(session: Session, feedback_id: int, comment_id: int) -> Comment:
    comment = (
        session.query(Comment)
        .filter(Comment.id == comment_id, Comment.feedback_id == feedback_id)
        .one_or_none()
    )
    if comment is None:
        raise NotFound("Comment not found")
    return comment


def list_comments(session: Session, feedback_id: int) -> list[Comment]:
    """Flat list in creation order; use ``build_comment_tree`` for display."""
    return (
        session.query(Comment)
        .filter(Comment.feedback_id == feedback_id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .all()
    )


def post_comment(
    session: Session,
    actor,
    feedback_id: int,
    *,
    content: str,
    parent_id: Optional[int] = None,
) -> Comment:
    actor = policy.require_actor(actor)
    feedback = _get_feedback(session, feedback_id)

    if parent_id is not None:
        # replies must stay inside the same feedback thread
        parent = (
            session.query(Comment.id)
            .filter(Comment.id == parent_id, Comment.feedback_id == feedback.id)
            .one_or_none()
        )
        if parent is None:
            raise NotFound("Parent comment not found on this feedback")

    comment = Comment(
        content=content,
        feedback_id=feedback.id,
        user_id=actor.user_id,
        parent_id=parent_id,
        is_answer=False,
    )
    session.add(comment)
    session.flush()
    return comment


def toggle_answer(session: Session, actor, feedback_id: int, comment_id: int) -> dict:
    """
    Mark ``comment_id`` as the answer, or unmark it if it already is one.

    Marking clears every other answer on the feedback and closes it.
    Unmarking leaves the feedback status where it is.
    """
    actor = policy.require_actor(actor)
    feedback = _get_feedback(session, feedback_id, lock=True)
    comment = _get_comment(session, feedback.id, comment_id)
    policy.ensure(
        policy.can_toggle_answer(actor, feedback.user_id),
        "You don't have permission to mark this as an answer",
    )

    if comment.is_answer:
        comment.is_answer = False
        session.flush()
        return {"is_answer": False, "feedback_status": feedback.status}

    (
        session.query(Comment)
        .filter(Comment.feedback_id == feedback.id, Comment.is_answer.is_(True))
        .update({Comment.is_answer: False}, synchronize_session="fetch")
    )
    comment.is_answer = True

    closed = workflow.feedback_status_after_answer_marked(feedback.status)
    if feedback.status != closed.value:
        log.info("Feedback %s: %s -> %s (comment %s accepted)", feedback.id, feedback.status, closed.value, comment.id)
        feedback.status = closed.value

    session.flush()
    return {"is_answer": True, "feedback_status": feedback.status}


def unmark_answer(session: Session, actor, feedback_id: int, comment_id: int) -> dict:
    actor = policy.require_actor(actor)
    feedback = _get_feedback(session, feedback_id)
    comment = _get_comment(session, feedback.id, comment_id)
    policy.ensure(
        policy.can_toggle_answer(actor, feedback.user_id),
        "You don't have permission to unmark this answer",
    )

    comment.is_answer = False
    session.flush()
    return {"is_answer": False, "feedback_status": feedback.status}


def delete_comment(session: Session, actor, feedback_id: int, comment_id: int) -> Optional[Comment]:
    """
    Returns the blanked comment when it had replies, or None when the row was removed.
    """
    actor = policy.require_actor(actor)
    comment = _get_comment(session, feedback_id, comment_id)
    feedback = _get_feedback(session, feedback_id)
    policy.ensure(
        policy.can_delete_comment(actor, comment.user_id, feedback.user_id),
        "You don't have permission to delete this comment",
    )

    has_replies = (
        session.query(Comment.id).filter(Comment.parent_id == comment.id).first() is not None
    )
    if has_replies:
        comment.content = DELETED_COMMENT_MARKER
        comment.is_answer = False
        session.flush()
        return comment

    session.delete(comment)
    session.flush()
    return None


# ──────────────────────────────────────────────────────────────────────────────
# Tree reconstruction (display only)
# ──────────────────────────────────────────────────────────────────────────────

@dataclass
class CommentNode:
    comment: Comment
    replies: List["CommentNode"] = field(default_factory=list)

    def to_dict(self) -> dict:
        data = self.comment.to_dict()
        data["replies"] = [r.to_dict() for r in self.replies]
        return data


def _root_sort_key(node: CommentNode):
    # answers first, then newest first
    created = node.comment.created_at
    return (
        0 if node.comment.is_answer else 1,
        -(created.timestamp() if created else 0.0),
        -(node.comment.id or 0),
    )


def build_comment_tree(comments: Iterable[Comment]) -> list[CommentNode]:
    """
    Two passes over a flat, creation-ordered list: index every comment by id,
    then attach each one to its parent (or to the roots when the parent is
    missing). Replies keep creation order; roots are sorted for display.
    """
    flat = list(comments)
    nodes = {c.id: CommentNode(comment=c) for c in flat}

    roots: list[CommentNode] = []
    for c in flat:
        node = nodes[c.id]
        parent = nodes.get(c.parent_id) if c.parent_id is not None else None
        if parent is not None:
            parent.replies.append(node)
        else:
            roots.append(node)

    roots.sort(key=_root_sort_key)
    return roots
