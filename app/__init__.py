import os
from flask import Flask, request, jsonify

# Load .env only for local/dev. In prod, env vars come from the platform.
if os.getenv("APP_ENV", "development") != "production":
    from dotenv import load_dotenv
    load_dotenv(".env", override=False)


from .config import get_config
from .extensions import db, migrate, login_manager, limiter
from .security import init_security
from .observability import init_logging, init_sentry


def _json_error(kind: str, status: int, message: str, headers=None):
    payload = {"error": kind, "code": status, "message": message}
    return (jsonify(payload), status, headers or {})


def create_app():
    app = Flask(__name__)

    # ---- Rate limiting storage ----
    app_env = (os.getenv("APP_ENV", "development") or "development").lower()
    use_redis = app_env in ("staging", "production")
    storage_uri = os.environ.get("REDIS_URL") if use_redis else "memory://"
    if use_redis and not storage_uri:
        # Hard fail in stage/prod so we never silently run without RL storage
        raise RuntimeError("REDIS_URL is required in staging/production for rate limiting")
    app.config["RATELIMIT_STORAGE_URI"] = storage_uri

    # Config: clean, explicit, class-based
    app.config.from_object(get_config())
    app.config["APP_ENV"] = app_env

    # --- Required env validation for prod-like envs (staging/production) ---
    def _require(name: str):
        val = os.getenv(name) or app.config.get(name)
        if not val:
            raise RuntimeError(f"Missing required environment variable: {name}")
        return val

    if app_env in ("staging", "production"):
        _require("SECRET_KEY")
        _require("DATABASE_URL")

    # --- Observability & Security ---
    init_logging(app)
    init_sentry(app)

    # Apply HTTPS, HSTS & CSP only in staging/production
    if app_env in ("staging", "production"):
        init_security(app)

    # Init extensions
    db.init_app(app)
    migrate.init_app(app, db, directory="migrations")
    login_manager.init_app(app)
    limiter.init_app(app)

    # Models must be imported before migrations/metadata are used
    from . import models  # noqa: F401

    # Blueprints
    from .blueprints.auth import bp as auth_bp
    from .blueprints.api import bp as api_bp

    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(api_bp, url_prefix="/api")

    @app.get("/healthz")
    @limiter.exempt
    def healthz():
        return {"status": "ok"}, 200

    # Error handlers: the service only speaks JSON
    @app.errorhandler(400)
    def bad_request(e):
        return _json_error("validation_error", 400, "Malformed request")

    @app.errorhandler(404)
    def not_found(e):
        return _json_error("not_found", 404, "Not found")

    @app.errorhandler(405)
    def method_not_allowed(e):
        return _json_error("method_not_allowed", 405, "Method not allowed")

    # 429 Too Many Requests with Retry-After
    @app.errorhandler(429)
    def too_many_requests(e):
        retry_after = getattr(e, "retry_after", None)
        headers = {}
        if retry_after is not None:
            headers["Retry-After"] = str(int(retry_after))
        payload = {"error": "rate_limited", "code": 429, "message": "Too many requests"}
        if retry_after is not None:
            payload["retry_after"] = int(retry_after)
        return (jsonify(payload), 429, headers)

    @app.errorhandler(500)
    def server_error(e):
        original = getattr(e, "original_exception", None)
        if original is not None:
            app.logger.error("Unhandled error on %s %s", request.method, request.path, exc_info=original)
        db.session.rollback()
        return _json_error("server_error", 500, "Internal server error")

    # CLI commands (ops-grade utilities)
    from .cli import register_cli
    register_cli(app)

    return app
