from flask import jsonify, request

from app.extensions import db
from app.services import comments as comment_service
from app.services import lifecycle
from app.services.persistence import unit_of_work
from . import authenticated_actor, bp, raise_if_invalid
from .validators import validate_comment_payload


@bp.get("/feedback/<int:feedback_id>/comments")
def list_comments(feedback_id: int):
    """Flat list by default; ?tree=1 returns nested replies."""
    lifecycle.get_feedback(db.session, feedback_id)
    rows = comment_service.list_comments(db.session, feedback_id)
    if request.args.get("tree") in ("1", "true", "yes"):
        return jsonify([n.to_dict() for n in comment_service.build_comment_tree(rows)]), 200
    return jsonify([c.to_dict() for c in rows]), 200


@bp.post("/feedback/<int:feedback_id>/comments")
def post_comment(feedback_id: int):
    actor = authenticated_actor()
    data, errors = validate_comment_payload(request.get_json(silent=True))
    raise_if_invalid(errors)
    with unit_of_work(db.session):
        comment = comment_service.post_comment(db.session, actor, feedback_id, **data)
    return jsonify(comment.to_dict()), 201


@bp.delete("/feedback/<int:feedback_id>/comments/<int:comment_id>")
def delete_comment(feedback_id: int, comment_id: int):
    actor = authenticated_actor()
    with unit_of_work(db.session):
        blanked = comment_service.delete_comment(db.session, actor, feedback_id, comment_id)
    payload = {"success": True, "soft_deleted": blanked is not None}
    if blanked is not None:
        payload["comment"] = blanked.to_dict()
    return jsonify(payload), 200


@bp.post("/feedback/<int:feedback_id>/comments/<int:comment_id>/answer")
def toggle_answer(feedback_id: int, comment_id: int):
    actor = authenticated_actor()
    with unit_of_work(db.session):
        result = comment_service.toggle_answer(db.session, actor, feedback_id, comment_id)
    return jsonify(result), 200


@bp.delete("/feedback/<int:feedback_id>/comments/<int:comment_id>/answer")
def unmark_answer(feedback_id: int, comment_id: int):
    actor = authenticated_actor()
    with unit_of_work(db.session):
        result = comment_service.unmark_answer(db.session, actor, feedback_id, comment_id)
    return jsonify(result), 200
