from __future__ import annotations

import importlib
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .aadhaar.controller import register as register_aadhaar
from .api.errors import register_error_handlers
from .api.guards import EXTENSION_KEY
from .api.responses import ok
from .attendance.controller import register as register_attendance
from .container import Container, build_container
from .database.bootstrap import apply_schema, list_tables
from .organizations.controller import register as register_organizations
from .users.controller import register as register_users
from .users.service import ensure_super_admin

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parents[3] / "database" / "schema.sql"


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def create_app(settings_module: Optional[str] = None, *, container: Optional[Container] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = settings_module or get_settings_module()
    settings = importlib.import_module(settings_module)
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    if container is None:
        container = build_container(settings)

    if container.conn is not None:
        db = container.conn.config
        logger.info("settings=%s db=%s@%s:%s/%s", settings_module, db.user, db.host, db.port, db.database)
        if getattr(settings, "AUTO_INIT_DB", False):
            apply_schema(container.conn, schema_path=SCHEMA_PATH)
            logger.info("Schema ready (tables=%d)", len(list_tables(container.conn)))
    else:
        logger.info("settings=%s storage=memory", settings_module)

    email = getattr(settings, "SUPER_ADMIN_EMAIL", "")
    password = getattr(settings, "SUPER_ADMIN_PASSWORD", "")
    if email and password:
        ensure_super_admin(container.users_repo, email=email, password=password)

    app.extensions[EXTENSION_KEY] = container
    register_error_handlers(app)

    @app.route("/api/health", methods=["GET"], endpoint="health")
    def health():
        return ok({"status": "OK", "storage": "memory" if container.store is not None else "mysql"})

    register_users(app, container)
    register_organizations(app, container)
    register_attendance(app, container)
    register_aadhaar(app, container)

    return app
