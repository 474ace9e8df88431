# src/bsm/web/__init__.py
import logging
import sqlite3

from flask import Flask, jsonify

from bsm.config import Settings
from bsm.domain.errors import (
    AuthorizationError,
    ImageHostError,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
)
from .context import enforce_auth_gate, load_request_context

log = logging.getLogger(__name__)


def _error(message: str, status: int):
    return jsonify({"error": message}), status


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ValidationError)
    @app.errorhandler(InsufficientStockError)
    def handle_validation(e):
        return _error(str(e), 400)

    @app.errorhandler(AuthorizationError)
    def handle_auth(e):
        return _error(str(e), 401)

    @app.errorhandler(NotFoundError)
    def handle_not_found(e):
        return _error(str(e), 404)

    @app.errorhandler(ImageHostError)
    def handle_image_host(e):
        log.warning("image_host_error error=%s", e)
        return _error("Image service failed. Please try again.", 502)

    @app.errorhandler(sqlite3.Error)
    def handle_db(e):
        log.exception("database_error")
        return _error("Database operation failed. Please try again.", 500)


def create_app(container, settings: Settings | None = None) -> Flask:
    settings = settings or Settings.from_env()

    app = Flask(__name__)
    app.config.update(
        SECRET_KEY=settings.secret_key,
        SESSION_COOKIE_SECURE=settings.secure_cookies,
        MAX_CONTENT_LENGTH=10 * 1024 * 1024,
    )
    app.extensions["bsm"] = container

    app.before_request(load_request_context)
    app.before_request(enforce_auth_gate)

    from .routes.auth import auth_bp
    from .routes.dashboard import dashboard_bp
    from .routes.sweep import sweep_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(sweep_bp)

    register_error_handlers(app)
    return app
