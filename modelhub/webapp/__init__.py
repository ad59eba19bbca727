"""Flask application factory for the ModelHub HTTP API."""

from __future__ import annotations

import logging
from typing import Any, Dict

from flask import Flask, current_app, request

from modelhub.config import Settings
from modelhub.logging_config import configure_logging
from modelhub.services.registry import ModelRegistry
from modelhub.utils.request_logging import log_request

_LOGGER = logging.getLogger(__name__)


def create_app(config: Dict[str, Any] | None = None) -> Flask:
    """Create and configure the Flask application.

    ``config["REGISTRY"]`` may supply a ready :class:`ModelRegistry`;
    otherwise one is wired from the environment.
    """

    configure_logging()
    app = Flask(__name__)
    app.config.setdefault("JSON_SORT_KEYS", False)

    if config:
        app.config.update(config)
    if not isinstance(app.config.get("REGISTRY"), ModelRegistry):
        app.config["REGISTRY"] = ModelRegistry.from_settings(
            Settings.from_env()
        )

    from .api import api_bp

    app.register_blueprint(api_bp, url_prefix="/api")

    @app.before_request
    def _log_incoming_request() -> None:
        log_request(_LOGGER, request)

    return app


def get_registry(app: Flask | None = None) -> ModelRegistry:
    """Retrieve the shared registry facade. Accepts an optional app override."""
    ctx_app = app or current_app
    registry = ctx_app.config.get("REGISTRY")
    if not isinstance(registry, ModelRegistry):
        raise RuntimeError("REGISTRY config must be a ModelRegistry instance")
    return registry
