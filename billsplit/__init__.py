# billsplit/__init__.py
from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import Any, Optional

from flask import Flask, jsonify
from werkzeug.middleware.proxy_fix import ProxyFix

from .errors import register_error_handlers
from .extensions import cors, db, jwt, migrate


def _configure_logging(app: Flask) -> None:
    """JSON logs to the console."""
    level = app.config.get("LOG_LEVEL", "INFO")
    app.logger.setLevel(level)
    root = logging.getLogger()
    root.setLevel(level)

    # avoid duplicate handlers in reloaders
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            fmt='{"ts":"%(asctime)s","level":"%(levelname)s","msg":"%(message)s","name":"%(name)s"}',
            datefmt="%Y-%m-%dT%H:%M:%S%z",
        )
        handler.setFormatter(formatter)
        root.addHandler(handler)


def _configure_cors(app: Flask) -> None:
    cors.init_app(
        app,
        resources={r"/api/*": {"origins": app.config["CORS_ALLOWED_ORIGINS"]}},
        supports_credentials=True,
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Auth-Bridge-Key"],
        expose_headers=["Content-Type"],
        max_age=86400,
    )


def _configure_proxy(app: Flask) -> None:
    """Respect X-Forwarded-* from the hosting proxy."""
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)  # type: ignore


def _init_extensions(app: Flask) -> None:
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)

    from . import models  # noqa: F401  (register tables on the metadata)


def _register_blueprints(app: Flask) -> None:
    """Register all API blueprints under /api."""
    from .routes import ALL_BLUEPRINTS

    for bp in ALL_BLUEPRINTS:
        app.register_blueprint(bp, url_prefix=app.config["API_PREFIX"])
        app.logger.debug("Registered blueprint %s at %s", bp.name, app.config["API_PREFIX"])


def _register_cli(app: Flask) -> None:
    from .cli import register_commands

    register_commands(app)


def _load_config(app: Flask, config_object: Optional[str | Any]) -> None:
    if config_object is None:
        config_object = os.getenv("CONFIG_CLASS", "billsplit.config.Config")

    if isinstance(config_object, str):
        # load "package.ClassName"
        module, _, cls = config_object.rpartition(".")
        config_object = getattr(__import__(module, fromlist=[cls]), cls)

    validate = getattr(config_object, "validate", None)
    if callable(validate):
        validate()
    app.config.from_object(config_object)
    app.config.setdefault("API_PREFIX", "/api")


# --- Application Factory ------------------------------------------------------
def create_app(config_object: Optional[str | Any] = None) -> Flask:
    """
    Standard Flask application factory.

    `config_object` may be:
      - a config class
      - dotted path to a config class (e.g., "billsplit.config.ProductionConfig")
      - None (then we'll try CONFIG_CLASS env or default to billsplit.config.Config)
    """
    app = Flask(__name__)
    _load_config(app, config_object)

    # Core middleware/logging/CORS
    _configure_logging(app)
    _configure_proxy(app)
    _configure_cors(app)

    # Init extensions, blueprints & commands
    _init_extensions(app)
    _register_blueprints(app)
    _register_cli(app)
    register_error_handlers(app)

    @app.get("/")
    def root():
        return jsonify({"service": "billsplit-backend", "message": "See /api/health"}), 200

    @app.get(app.config["API_PREFIX"] + "/health")
    def health():
        return jsonify(
            {
                "status": "ok",
                "time": datetime.utcnow().isoformat() + "Z",
                "service": "billsplit-backend",
            }
        ), 200

    return app
