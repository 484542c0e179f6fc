from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from app.extensions import db
from app.services.errors import ServiceError, ValidationError
from app.services.policy import Actor, current_actor, require_actor

bp = Blueprint("api", __name__)


def raise_if_invalid(errors: list) -> None:
    if errors:
        raise ValidationError("Invalid request", details=errors)


def authenticated_actor() -> Actor:
    return require_actor(current_actor())


@bp.errorhandler(ServiceError)
def handle_service_error(e: ServiceError):
    return jsonify(e.to_dict()), e.status_code


@bp.errorhandler(SQLAlchemyError)
def handle_db_error(e: SQLAlchemyError):
    db.session.rollback()
    current_app.logger.exception("API database failure")
    return jsonify({"error": "server_error", "code": 500, "message": "Internal server error"}), 500


from . import topics, feedback, comments, tasks, changelog, admin  # noqa: E402,F401
