from flask import jsonify, request

from app.extensions import db
from app.services import lifecycle
from app.services.persistence import unit_of_work
from . import authenticated_actor, bp, raise_if_invalid
from .feedback import query_id
from .validators import validate_changelog_payload


@bp.get("/changelog")
def list_changelogs():
    entries = lifecycle.list_changelogs(
        db.session,
        feedback_id=query_id("feedback_id"),
        topic_id=query_id("topic_id"),
    )
    return jsonify([c.to_dict() for c in entries]), 200


@bp.get("/changelog/<int:changelog_id>")
def get_changelog(changelog_id: int):
    return jsonify(lifecycle.get_changelog(db.session, changelog_id).to_dict()), 200


@bp.post("/changelog")
def create_changelog():
    actor = authenticated_actor()
    data, errors = validate_changelog_payload(request.get_json(silent=True))
    raise_if_invalid(errors)
    with unit_of_work(db.session):
        entry = lifecycle.create_changelog(db.session, actor, **data)
    return jsonify(entry.to_dict()), 201


@bp.patch("/changelog/<int:changelog_id>")
def update_changelog(changelog_id: int):
    actor = authenticated_actor()
    data, errors = validate_changelog_payload(request.get_json(silent=True), partial=True)
    raise_if_invalid(errors)
    with unit_of_work(db.session):
        entry = lifecycle.update_changelog(db.session, actor, changelog_id, data)
    return jsonify(entry.to_dict()), 200


@bp.delete("/changelog/<int:changelog_id>")
def delete_changelog(changelog_id: int):
    actor = authenticated_actor()
    with unit_of_work(db.session):
        lifecycle.delete_changelog(db.session, actor, changelog_id)
    return jsonify({"success": True}), 200
