"""Web Server Gateway Interface entry-point."""

import os

from datagateway.factory import create_app

__flask_app__ = None


def application(environ, start_response):    # type: ignore
    """WSGI application."""
    global __flask_app__
    if __flask_app__ is None:
        for key, value in environ.items():
            # uWSGI passes the container hostname as SERVER_NAME; keep ours.
            if key == 'SERVER_NAME' or not isinstance(value, str):
                continue
            os.environ[key] = value
        __flask_app__ = create_app()
    return __flask_app__(environ, start_response)
