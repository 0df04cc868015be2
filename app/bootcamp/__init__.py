import logging
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, g, jsonify, render_template, request, session
from sqlalchemy import inspect as sa_inspect

from app.bootcamp.auth import bp as auth_bp, load_current_user
from app.bootcamp.config import PRODUCTION_ENVS, load_config
from app.bootcamp.db import init_db, teardown_db_session
from app.bootcamp.modules.products.routes import bp as products_bp
from app.bootcamp.modules.talks.routes import bp as talks_bp
from app.bootcamp.modules.users.admin import bp as users_admin_bp
from app.bootcamp.modules.users.routes import bp as users_bp
from app.bootcamp.routes import bp as routes_bp
from app.bootcamp.security import csrf_required, ensure_csrf_token, validate_csrf

logger = logging.getLogger(__name__)

REQUIRED_TABLES = ("users", "companies", "products", "comments", "talks", "followings", "audit_events")
REQUIRED_S3_KEYS = ("S3_ENDPOINT", "S3_BUCKET", "S3_ACCESS_KEY_ID", "S3_SECRET_ACCESS_KEY")

_SESSIONLESS_PREFIXES = ("/static/", "/health", "/healthz")


def _is_api() -> bool:
    return request.path.startswith("/api/")


def _check_production_config(app: Flask) -> None:
    """Refuse to boot a production app on sqlite or with the placeholder secret."""
    if (app.config.get("ENV") or "").strip().lower() not in PRODUCTION_ENVS:
        return
    db_url = str(app.config.get("DATABASE_URL") or "").strip()
    if not db_url:
        raise RuntimeError("DATABASE_URL is required in production.")
    if db_url.startswith("sqlite"):
        raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
    if str(app.config.get("SECRET_KEY") or "") in ("", "change-me"):
        raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")


def _check_storage_config(app: Flask) -> None:
    if app.config.get("STORAGE_BACKEND") != "s3":
        return
    missing = [key for key in REQUIRED_S3_KEYS if not app.config.get(key)]
    if missing:
        app.logger.error("Avatar storage is s3 but these env vars are missing: %s", ", ".join(missing))


def _warn_on_missing_tables(app: Flask) -> None:
    insp = sa_inspect(app.extensions["sqlalchemy_engine"])
    missing = [name for name in REQUIRED_TABLES if not insp.has_table(name)]
    app.config["_schema_health_missing"] = missing
    if missing:
        app.logger.warning("DB schema out of date; run `alembic upgrade head`. Missing tables: %s", ", ".join(missing))


def _install_request_hooks(app: Flask) -> None:
    from app.bootcamp.rbac import current_viewer

    @app.context_processor
    def _inject_globals() -> dict:
        return {
            "csrf_token": ensure_csrf_token(),
            "viewer": current_viewer(),
            "current_user": getattr(g, "current_user", None),
        }

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d") -> str:
        if value is None:
            return "-"
        return value.strftime(format) if hasattr(value, "strftime") else str(value)

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(_SESSIONLESS_PREFIXES):
            return None
        ensure_csrf_token()
        session.permanent = True
        if csrf_required(request) and not validate_csrf(request):
            app.logger.warning("CSRF check failed: path=%s", request.path)
            if _is_api():
                return jsonify({"error": "CSRF token missing or invalid."}), 400
            return render_template("errors/400.html", message="CSRF token missing or invalid."), 400
        return None

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)


def _install_error_handlers(app: Flask) -> None:
    @app.errorhandler(404)
    def _not_found(e):
        if _is_api():
            return jsonify({"error": "not found"}), 404
        return render_template("errors/404.html"), 404

    @app.errorhandler(500)
    def _server_error(e):
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        if _is_api():
            return jsonify({"error": "internal server error"}), 500
        return render_template("errors/500.html"), 500


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(days=14)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    _check_production_config(app)
    init_db(app)
    _check_storage_config(app)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(users_bp)
    app.register_blueprint(users_admin_bp, url_prefix="/admin")
    app.register_blueprint(talks_bp)
    app.register_blueprint(products_bp)

    _install_request_hooks(app)
    _install_error_handlers(app)
    _warn_on_missing_tables(app)

    logger.info("create_app() complete; app ready to serve")
    return app
