from flask import jsonify, request, current_app
from flask_login import login_user, logout_user, current_user
from sqlalchemy import func

from app.extensions import db, limiter
from app.models.user import User
from . import bp


def _login_email_scope():
    data_json = request.get_json(silent=True) or {}
    email = (data_json.get("email") or "").strip().lower() if isinstance(data_json, dict) else ""
    # Keep a stable scope even if email is blank
    return f"login-email:{email or 'missing'}"


def _error(kind: str, status: int, message: str):
    return jsonify({"error": kind, "code": status, "message": message}), status


@bp.post("/login")
@limiter.limit("10 per minute; 100 per hour")              # per-IP (anon → IP via _rate_limit_key)
@limiter.limit("5 per minute; 20 per hour", key_func=_login_email_scope)  # per-account
def login_post():
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        data = {}
    email = (data.get("email") or "").strip() if isinstance(data.get("email"), str) else ""
    password = data.get("password") if isinstance(data.get("password"), str) else ""

    if not email or not password:
        return _error("validation_error", 400, "Email and password are required")

    user = db.session.execute(
        db.select(User).where(func.lower(User.email) == func.lower(email))
    ).scalar_one_or_none()

    if not user or not user.check_password(password):
        return _error("unauthorized", 401, "Invalid credentials")
    if user.is_banned():
        current_app.logger.info("Login refused for banned user %s", user.id)
        return _error("forbidden", 403, "This account has been banned")

    login_user(user)
    return jsonify(user.to_dict()), 200


@bp.post("/logout")
def logout_post():
    if current_user.is_authenticated:
        logout_user()
    return jsonify({"success": True}), 200


@bp.get("/me")
def me():
    if not current_user.is_authenticated or not current_user.is_active:
        return _error("unauthorized", 401, "Authentication required")
    return jsonify(current_user.to_dict()), 200
