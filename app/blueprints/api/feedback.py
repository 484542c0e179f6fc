from flask import jsonify, request

from app.extensions import db
from app.services import lifecycle
from app.services.errors import ValidationError
from app.services.persistence import unit_of_work
from app.services.policy import current_actor
from app.utils.validators import parse_id
from . import authenticated_actor, bp, raise_if_invalid
from .validators import validate_feedback_payload


def query_id(name: str):
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    val = parse_id(raw)
    if val is None:
        raise ValidationError(f"Invalid {name}", details=[f"{name}: must be a positive integer id"])
    return val


@bp.get("/feedback")
def list_feedback():
    """Board listing: ?topic_id=&status=&sort=newest|oldest|most-upvotes|least-upvotes"""
    rows = lifecycle.list_feedback(
        db.session,
        topic_id=query_id("topic_id"),
        status=(request.args.get("status") or "").strip() or None,
        sort=(request.args.get("sort") or "newest").strip(),
    )
    return jsonify(rows), 200


@bp.get("/feedback/<int:feedback_id>")
def get_feedback(feedback_id: int):
    return jsonify(lifecycle.get_feedback_detail(db.session, feedback_id, current_actor())), 200


@bp.post("/feedback")
def create_feedback():
    actor = authenticated_actor()
    data, errors = validate_feedback_payload(request.get_json(silent=True))
    raise_if_invalid(errors)
    with unit_of_work(db.session):
        feedback = lifecycle.create_feedback(db.session, actor, **data)
    return jsonify(feedback.to_dict()), 201


@bp.patch("/feedback/<int:feedback_id>")
def update_feedback(feedback_id: int):
    actor = authenticated_actor()
    data, errors = validate_feedback_payload(request.get_json(silent=True), partial=True)
    raise_if_invalid(errors)
    with unit_of_work(db.session):
        feedback = lifecycle.update_feedback(db.session, actor, feedback_id, data)
    return jsonify(feedback.to_dict()), 200


@bp.delete("/feedback/<int:feedback_id>")
def delete_feedback(feedback_id: int):
    actor = authenticated_actor()
    with unit_of_work(db.session):
        lifecycle.delete_feedback(db.session, actor, feedback_id)
    return jsonify({"success": True}), 200


# --- upvotes ---

@bp.get("/feedback/<int:feedback_id>/upvote")
def upvote_status(feedback_id: int):
    return jsonify(lifecycle.upvote_status(db.session, current_actor(), feedback_id)), 200


@bp.post("/feedback/<int:feedback_id>/upvote")
def toggle_upvote(feedback_id: int):
    actor = authenticated_actor()
    with unit_of_work(db.session):
        upvoted = lifecycle.toggle_upvote(db.session, actor, feedback_id)
    status = lifecycle.upvote_status(db.session, actor, feedback_id)
    return jsonify({"upvoted": upvoted, "count": status["count"]}), 200
