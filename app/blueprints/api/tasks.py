from flask import jsonify, request

from app.extensions import db
from app.services import lifecycle
from app.services.persistence import unit_of_work
from . import authenticated_actor, bp, raise_if_invalid
from .feedback import query_id
from .validators import validate_task_payload, validate_review_payload


@bp.get("/tasks")
def list_tasks():
    tasks = lifecycle.list_tasks(
        db.session,
        status=(request.args.get("status") or "").strip() or None,
        assignee_id=query_id("assignee_id"),
        feedback_id=query_id("feedback_id"),
    )
    return jsonify([t.to_dict() for t in tasks]), 200


@bp.get("/tasks/<int:task_id>")
def get_task(task_id: int):
    task = lifecycle.get_task(db.session, task_id)
    return jsonify(task.to_dict(include_changelog=True)), 200


@bp.post("/tasks")
def create_task():
    actor = authenticated_actor()
    data, errors = validate_task_payload(request.get_json(silent=True))
    raise_if_invalid(errors)
    with unit_of_work(db.session):
        task = lifecycle.create_task(db.session, actor, **data)
    return jsonify(task.to_dict()), 201


@bp.patch("/tasks/<int:task_id>")
def update_task(task_id: int):
    actor = authenticated_actor()
    data, errors = validate_task_payload(request.get_json(silent=True), partial=True)
    raise_if_invalid(errors)
    with unit_of_work(db.session):
        task = lifecycle.update_task(db.session, actor, task_id, data)
    return jsonify(task.to_dict()), 200


@bp.post("/tasks/<int:task_id>/advance")
def advance_task(task_id: int):
    actor = authenticated_actor()
    with unit_of_work(db.session):
        task = lifecycle.move_task_forward(db.session, actor, task_id)
    return jsonify(task.to_dict()), 200


@bp.post("/tasks/<int:task_id>/review")
def review_task(task_id: int):
    actor = authenticated_actor()
    data, errors = validate_review_payload(request.get_json(silent=True))
    raise_if_invalid(errors)
    with unit_of_work(db.session):
        task = lifecycle.review_task(db.session, actor, task_id, data["approved"])
    return jsonify(task.to_dict()), 200


@bp.delete("/tasks/<int:task_id>")
def delete_task(task_id: int):
    actor = authenticated_actor()
    with unit_of_work(db.session):
        lifecycle.delete_task(db.session, actor, task_id)
    return jsonify({"success": True}), 200
