from datetime import datetime

from flask import jsonify, request

from app.extensions import db
from app.services import admin as admin_service
from app.services.errors import ValidationError
from app.services.persistence import unit_of_work
from app.services.policy import current_actor
from app.utils.helpers import as_aware
from app.utils.validators import clean_str
from . import authenticated_actor, bp


@bp.get("/admin/users")
def admin_list_users():
    users = admin_service.list_users(
        db.session,
        current_actor(),
        q=clean_str(request.args.get("q")),
        role=clean_str(request.args.get("role")),
    )
    return jsonify([u.to_dict() for u in users]), 200


@bp.get("/admin/stats")
def admin_stats():
    return jsonify(admin_service.dashboard_stats(db.session, current_actor())), 200


@bp.patch("/admin/users/<int:user_id>/role")
def admin_set_role(user_id: int):
    actor = authenticated_actor()
    data = request.get_json(silent=True) or {}
    role = clean_str(data.get("role"))
    if role is None:
        raise ValidationError("Invalid request", details=["role: required"])
    with unit_of_work(db.session):
        user = admin_service.set_user_role(db.session, actor, user_id, role)
    return jsonify(user.to_dict()), 200


def _parse_expiry(raw):
    if raw in (None, ""):
        return None
    if not isinstance(raw, str):
        raise ValidationError("Invalid request", details=["expires_at: must be an ISO-8601 timestamp"])
    try:
        # accept a trailing Z as UTC
        return as_aware(datetime.fromisoformat(raw.replace("Z", "+00:00")))
    except ValueError:
        raise ValidationError("Invalid request", details=["expires_at: must be an ISO-8601 timestamp"]) from None


@bp.post("/admin/users/<int:user_id>/ban")
def admin_ban_user(user_id: int):
    actor = authenticated_actor()
    data = request.get_json(silent=True) or {}
    reason = clean_str(data.get("reason"), max_len=255)
    expires_at = _parse_expiry(data.get("expires_at"))
    with unit_of_work(db.session):
        user = admin_service.ban_user(db.session, actor, user_id, reason=reason, expires_at=expires_at)
    return jsonify(user.to_dict()), 200


@bp.delete("/admin/users/<int:user_id>/ban")
def admin_unban_user(user_id: int):
    actor = authenticated_actor()
    with unit_of_work(db.session):
        user = admin_service.unban_user(db.session, actor, user_id)
    return jsonify(user.to_dict()), 200
