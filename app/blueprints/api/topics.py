from flask import jsonify, request

from app.extensions import db
from app.services import lifecycle
from app.services.persistence import unit_of_work
from . import authenticated_actor, bp, raise_if_invalid
from .validators import validate_topic_payload


@bp.get("/topics")
def list_topics():
    topics = lifecycle.list_topics(db.session)
    return jsonify([t.to_dict() for t in topics]), 200


@bp.get("/topics/<int:topic_id>")
def get_topic(topic_id: int):
    return jsonify(lifecycle.get_topic(db.session, topic_id).to_dict()), 200


@bp.post("/topics")
def create_topic():
    actor = authenticated_actor()
    data, errors = validate_topic_payload(request.get_json(silent=True))
    raise_if_invalid(errors)
    with unit_of_work(db.session):
        topic = lifecycle.create_topic(db.session, actor, **data)
    return jsonify(topic.to_dict()), 201


@bp.patch("/topics/<int:topic_id>")
def update_topic(topic_id: int):
    actor = authenticated_actor()
    data, errors = validate_topic_payload(request.get_json(silent=True), partial=True)
    raise_if_invalid(errors)
    with unit_of_work(db.session):
        topic = lifecycle.update_topic(db.session, actor, topic_id, data)
    return jsonify(topic.to_dict()), 200


@bp.delete("/topics/<int:topic_id>")
def delete_topic(topic_id: int):
    actor = authenticated_actor()
    with unit_of_work(db.session):
        lifecycle.delete_topic(db.session, actor, topic_id)
    return jsonify({"success": True}), 200
