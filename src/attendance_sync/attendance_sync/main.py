from __future__ import annotations

import atexit
import importlib
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .common.logging import configure_logging, get_logger
from .container import Container, build_container
from .database.bootstrap import apply_schema, list_tables
from .database.connection import DBConfig, DatabaseConnection
from .recorder.controller import register as register_recorder

logger = get_logger(__name__)


def create_app(container: Optional[Container] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))

    configure_logging(
        getattr(settings, "LOG_LEVEL", "INFO"),
        structured=not app.config["DEBUG"] and not app.config["TESTING"],
    )
    logger.info("[attendance-sync] settings=%s backend=%s", settings_module, getattr(settings, "STORAGE_BACKEND", "file"))

    if container is None:
        if str(getattr(settings, "STORAGE_BACKEND", "file")).lower() == "mysql" and getattr(settings, "AUTO_INIT_DB", False):
            conn = DatabaseConnection(DBConfig.from_mapping(getattr(settings, "DB_CONFIG")))
            apply_schema(conn, schema_path=Path(__file__).resolve().parents[3] / "database" / "schema.sql")
            logger.info("[attendance-sync] schema ready (tables=%d)", len(list_tables(conn)))

        container = build_container(settings=settings)
        atexit.register(container.shutdown)

    container.recorder.on_notification(
        lambda n: logger.info("[attendance-sync] %s: %s", n.title, n.message)
    )
    app.extensions["attendance_sync"] = container

    register_recorder(app, container)

    return app
