"""Provides an app factory for the data gateway."""

import logging
from typing import Any, Mapping, Optional

from flask import Flask, Response, jsonify
from werkzeug.exceptions import HTTPException

from . import authorization, routes
from .app_logging import setup_logger
from .services import node_table, storage

logger = logging.getLogger(__name__)

_ENTITY_HEADERS = {'content-type', 'content-length'}


def jsonify_exception(error: HTTPException) -> Response:
    """Render an HTTP error as ``{"error": "..."}``."""
    exc_resp = error.get_response()
    if error.description:
        logger.info('Reply to client: %s', error.description)
        response: Response = jsonify(error=error.description)
    else:
        response = jsonify({})
    response.status_code = exc_resp.status_code
    for key, value in exc_resp.headers.items():
        if key.lower() not in _ENTITY_HEADERS:
            response.headers[key] = value
    return response


def create_app(config: Optional[Mapping[str, Any]] = None) -> Flask:
    """
    Initialize an instance of the data gateway.

    Configuration is read from the environment (see :mod:`.config`); values
    in ``config`` take precedence.
    """
    app = Flask('datagateway')
    app.config.from_pyfile('config.py')
    if config:
        app.config.update(config)

    setup_logger(_log_level(app.config.get('LOGLEVEL', 'INFO')))

    authorization.init_app(app)
    storage.init_app(app)
    node_table.init_app(app)

    # Empty path segments must reach the parser rather than be redirected.
    app.url_map.merge_slashes = False
    app.url_map.converters['filepath'] = routes.FilePathConverter
    app.register_blueprint(routes.blueprint)
    app.errorhandler(HTTPException)(jsonify_exception)
    return app


def _log_level(value: Any) -> Any:
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return value.upper() if isinstance(value, str) else value
