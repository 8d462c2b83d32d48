"""Web Server Gateway Interface entry-point."""

import os
from typing import Optional

from flask import Flask

from .factory import create_web_app

__flask_app__: Optional[Flask] = None


def application(environ: dict, start_response: object) -> object:
    """WSGI application."""
    global __flask_app__
    for key, value in environ.items():
        # Server settings (e.g. SetEnv) arrive in the WSGI environ; config
        # reads os.environ when the app is first created. SERVER_NAME is left
        # alone, since the server may report a container id there.
        if key == 'SERVER_NAME' or not isinstance(value, str):
            continue
        os.environ[key] = value
    if __flask_app__ is None:
        __flask_app__ = create_web_app()
    return __flask_app__(environ, start_response)
