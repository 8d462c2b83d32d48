"""Application factory for the website session service."""

from typing import Any, Mapping, Optional
import logging

from flask import Flask

from . import errors
from .app_logging import setup_logger
from .auth import Auth
from .routes import ui
from .services import identities, sessions

logger = logging.getLogger(__name__)


def create_web_app(config: Optional[Mapping[str, Any]] = None) -> Flask:
    """Initialize and configure the session application."""
    app = Flask('identity_web')
    app.config.from_object('identity_web.config')
    if config:
        app.config.update(config)

    setup_logger(int(app.config['LOGLEVEL']), json=app.config['LOG_JSON'])

    identities.init_app(app)
    sessions.init_app(app)
    Auth(app)   # Loads sessions and provides authn.

    app.register_blueprint(ui.blueprint)
    if app.config['ENABLE_CREATE_IDENTITY']:
        app.register_blueprint(ui.join_blueprint)
    errors.init_app(app)

    if app.config['CREATE_DB']:
        with app.app_context():
            identities.create_all()

    logger.debug('Created %s', app.name)
    return app
