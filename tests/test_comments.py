from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from app.models import Comment, DELETED_COMMENT_MARKER, Feedback
from app.services import comments, lifecycle
from app.services.errors import Forbidden, NotFound
from app.services.persistence import unit_of_work
from app.utils.helpers import utcnow


@pytest.fixture()
def thread(session, make_user, make_topic, as_actor):
    owner = as_actor(make_user())
    commenter = as_actor(make_user())
    admin = as_actor(make_user(role="admin"))
    topic = make_topic()
    with unit_of_work(session):
        fb = lifecycle.create_feedback(
            session, owner, title="Slow search results", description="Search takes ten seconds.", topic_id=topic.id
        )
    with unit_of_work(session):
        c1 = comments.post_comment(session, commenter, fb.id, content="Same here")
    with unit_of_work(session):
        c2 = comments.post_comment(session, owner, fb.id, content="Thanks for confirming", parent_id=c1.id)
    return {"owner": owner, "commenter": commenter, "admin": admin, "feedback": fb, "c1": c1, "c2": c2}


def _answers(session, feedback_id):
    return session.query(Comment).filter(Comment.feedback_id == feedback_id, Comment.is_answer.is_(True)).all()


def test_toggle_answer_closes_and_unmark_keeps_closed(session, thread):
    fb_id, c1 = thread["feedback"].id, thread["c1"]

    with unit_of_work(session):
        result = comments.toggle_answer(session, thread["owner"], fb_id, c1.id)
    assert result == {"is_answer": True, "feedback_status": "closed"}
    assert session.get(Comment, c1.id).is_answer is True

    with unit_of_work(session):
        result = comments.toggle_answer(session, thread["owner"], fb_id, c1.id)
    assert result == {"is_answer": False, "feedback_status": "closed"}
    assert session.get(Comment, c1.id).is_answer is False
    assert session.get(Feedback, fb_id).status == "closed"


def test_marking_a_new_answer_clears_the_previous_one(session, thread):
    fb_id = thread["feedback"].id
    with unit_of_work(session):
        comments.toggle_answer(session, thread["owner"], fb_id, thread["c1"].id)
    with unit_of_work(session):
        comments.toggle_answer(session, thread["admin"], fb_id, thread["c2"].id)

    answers = _answers(session, fb_id)
    assert [c.id for c in answers] == [thread["c2"].id]


def test_only_feedback_owner_or_admin_marks_answers(session, thread):
    with pytest.raises(Forbidden):
        comments.toggle_answer(session, thread["commenter"], thread["feedback"].id, thread["c1"].id)
    assert _answers(session, thread["feedback"].id) == []


def test_comment_must_belong_to_feedback(session, thread, make_topic):
    other_topic = make_topic()
    with unit_of_work(session):
        other = lifecycle.create_feedback(
            session, thread["owner"], title="Another request", description="Unrelated to search.",
            topic_id=other_topic.id,
        )
    with pytest.raises(NotFound):
        comments.toggle_answer(session, thread["owner"], other.id, thread["c1"].id)
    with pytest.raises(NotFound):
        comments.post_comment(session, thread["owner"], other.id, content="Cross-thread", parent_id=thread["c1"].id)


def test_unmark_answer_keeps_feedback_status(session, thread):
    fb_id, c1 = thread["feedback"].id, thread["c1"]
    with unit_of_work(session):
        comments.toggle_answer(session, thread["owner"], fb_id, c1.id)
    with unit_of_work(session):
        result = comments.unmark_answer(session, thread["owner"], fb_id, c1.id)
    assert result["is_answer"] is False
    assert result["feedback_status"] == "closed"


def test_delete_with_replies_blanks_the_comment(session, thread):
    fb_id, c1, c2 = thread["feedback"].id, thread["c1"], thread["c2"]
    with unit_of_work(session):
        comments.toggle_answer(session, thread["owner"], fb_id, c1.id)
    with unit_of_work(session):
        blanked = comments.delete_comment(session, thread["commenter"], fb_id, c1.id)

    assert blanked is not None
    row = session.get(Comment, c1.id)
    assert row.content == DELETED_COMMENT_MARKER
    assert row.is_answer is False
    assert session.get(Comment, c2.id).parent_id == c1.id


def test_delete_leaf_removes_the_row(session, thread):
    fb_id, c2 = thread["feedback"].id, thread["c2"]
    with unit_of_work(session):
        assert comments.delete_comment(session, thread["owner"], fb_id, c2.id) is None
    assert c2.id not in [c.id for c in comments.list_comments(session, fb_id)]
    with pytest.raises(NotFound):
        comments.delete_comment(session, thread["owner"], fb_id, c2.id)


def test_strangers_cannot_delete_comments(session, thread, make_user, as_actor):
    stranger = as_actor(make_user(role="developer"))
    with pytest.raises(Forbidden):
        comments.delete_comment(session, stranger, thread["feedback"].id, thread["c2"].id)


def test_second_answer_row_is_rejected_by_the_database(session, thread):
    thread_c1 = session.get(Comment, thread["c1"].id)
    thread_c2 = session.get(Comment, thread["c2"].id)
    thread_c1.is_answer = True
    session.commit()
    thread_c2.is_answer = True
    with pytest.raises(IntegrityError):
        session.flush()
    session.rollback()


# --- tree ---

def _comment(cid, parent_id=None, is_answer=False, age=0):
    return Comment(
        id=cid, content=f"c{cid}", feedback_id=1, user_id=1,
        parent_id=parent_id, is_answer=is_answer, created_at=utcnow() - timedelta(minutes=age),
    )


def test_build_comment_tree_nests_replies_and_orders_roots():
    flat = [
        _comment(1, age=30),
        _comment(2, parent_id=1, age=20),
        _comment(3, age=10, is_answer=False),
        _comment(4, age=40, is_answer=True),
        _comment(5, parent_id=2, age=5),
        _comment(6, parent_id=999, age=1),
    ]
    roots = comments.build_comment_tree(flat)

    # answer first, then newest first; orphans surface as roots
    assert [n.comment.id for n in roots] == [4, 6, 3, 1]
    first = next(n for n in roots if n.comment.id == 1)
    assert [r.comment.id for r in first.replies] == [2]
    assert [r.comment.id for r in first.replies[0].replies] == [5]

    data = first.to_dict()
    assert data["replies"][0]["replies"][0]["id"] == 5
