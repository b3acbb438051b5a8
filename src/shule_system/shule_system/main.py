from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, g, jsonify, session
from werkzeug.exceptions import HTTPException

from config import get_settings_module

from .academic.controller import register as register_academic
from .container import Container, build_container
from .content.controller import register as register_content
from .core.exceptions import DomainError
from .database.bootstrap import apply_schema, apply_seed_sql, ensure_demo_users, list_tables
from .examinations.controller import register as register_examinations
from .finance.controller import register as register_finance
from .hostel.controller import register as register_hostel
from .necta.controller import register as register_necta
from .students.controller import register as register_students
from .teachers.controller import register as register_teachers
from .transport.controller import register as register_transport
from .users.controller import register as register_users

logger = logging.getLogger(__name__)

DATABASE_DIR = Path(__file__).resolve().parents[3] / "database"


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        body = {"success": False, "error": exc.message}
        if exc.details:
            body["details"] = exc.details
        return jsonify(body), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return jsonify({"success": False, "error": exc.description or exc.name}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        logger.exception("Unhandled error")
        body = {"success": False, "error": "Internal server error"}
        if app.config.get("DEBUG"):
            body["details"] = [str(exc)]
        return jsonify(body), 500


def _register_session_loader(app: Flask, container: Container) -> None:
    @app.before_request
    def load_current_user():
        g.current_user = container.auth_service.get_session_user(session.get("user_id"))


def register_routes(app: Flask, container: Container) -> None:
    _register_error_handlers(app)
    _register_session_loader(app, container)

    register_users(app, container)
    register_academic(app, container)
    register_necta(app, container)
    register_examinations(app, container)
    register_finance(app, container)
    register_hostel(app, container)
    register_content(app, container)
    register_teachers(app, container)
    register_transport(app, container)
    register_students(app, container)


def create_app(container: Optional[Container] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    db_config = getattr(settings, "DB_CONFIG")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    app.config["MAX_CONTENT_LENGTH"] = int(getattr(settings, "MAX_CONTENT_UPLOAD_MB", 100)) * 1024 * 1024

    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logger.info(
        "settings=%s db=%s@%s:%s/%s",
        settings_module,
        db_config.get("user"),
        db_config.get("host"),
        db_config.get("port", 3306),
        db_config.get("database"),
    )

    if container is None:
        if getattr(settings, "AUTO_INIT_DB", False):
            apply_schema(db_config, schema_path=DATABASE_DIR / "schema.sql")
            logger.info("schema ready (tables=%d)", len(list_tables(db_config)))
        if getattr(settings, "AUTO_SEED_DB", False):
            apply_seed_sql(db_config, seed_path=DATABASE_DIR / "seed.sql")
            ensure_demo_users(db_config)
            logger.info("demo seed ready")
        container = build_container(db_config=db_config, settings=settings)

    register_routes(app, container)
    return app
