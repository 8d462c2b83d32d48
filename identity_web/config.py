"""Flask configuration."""
import secrets
import os

#################### General config for app ####################
BASE_SERVER = os.environ.get('BASE_SERVER', 'localhost:5000')
"""Host (and port) of the website.

Used to build identity ids and the default cookie domain. They can be
independently configured if needed.
"""

BASE_URL = os.environ.get('BASE_URL', f'https://{BASE_SERVER}')
"""Absolute URL of the website, without a trailing slash."""

SECRET_KEY = os.environ.get('SECRET_KEY', secrets.token_urlsafe(16))
"""Sets the `Flask` secret key."""

DEFAULT_LOGOUT_REDIRECT_URL = os.environ.get('DEFAULT_LOGOUT_REDIRECT_URL',
                                             '/')
"""Where the user is sent after logging out."""


#################### Sessions ####################
REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = os.environ.get('REDIS_PORT', '6379')
REDIS_DATABASE = os.environ.get('REDIS_DATABASE', '0')

REDIS_FAKE = bool(int(os.environ.get('REDIS_FAKE', '0')))
"""Use the FakeRedis library instead of a redis service.

Useful for testing, dev, beta. Needs the ``dev`` extra (``pip install
identity-web[dev]``), which provides fakeredis."""

JWT_SECRET = os.environ.get('JWT_SECRET', secrets.token_urlsafe(16))
"""Secret used to sign session data and session cookies."""

SESSION_DURATION = os.environ.get('SESSION_DURATION', '36000')
"""Lifetime of a login session, in seconds."""

AUTH_SESSION_COOKIE_NAME = os.environ.get('AUTH_SESSION_COOKIE_NAME',
                                          'website_session')
AUTH_SESSION_COOKIE_DOMAIN = os.environ.get('AUTH_SESSION_COOKIE_DOMAIN',
                                            None)
AUTH_SESSION_COOKIE_SECURE = bool(int(
    os.environ.get('AUTH_SESSION_COOKIE_SECURE', '1')
))


#################### Authentication ####################
HTTP_SIGNATURE_ENABLED = bool(int(
    os.environ.get('HTTP_SIGNATURE_ENABLED', '1')
))
"""Accept requests authenticated with an HTTP signature."""

HTTP_SIGNATURE_CLOCK_SKEW = int(
    os.environ.get('HTTP_SIGNATURE_CLOCK_SKEW', '300')
)
"""Maximum difference, in seconds, between a signed `Date` and now."""


#################### Identities ####################
SQLALCHEMY_DATABASE_URI = os.environ.get('SQLALCHEMY_DATABASE_URI',
                                         'sqlite:///identities.db')
SQLALCHEMY_TRACK_MODIFICATIONS = False

CREATE_DB = bool(int(os.environ.get('CREATE_DB', '0')))

ENABLE_CREATE_IDENTITY = bool(int(
    os.environ.get('ENABLE_CREATE_IDENTITY', '1')
))
"""When set, anyone may create an identity via ``/join``."""

IDENTITY_BASE_PATH = os.environ.get('IDENTITY_BASE_PATH', '/i')
"""Path under :const:`BASE_URL` where identities live."""

IDENTITY_CONTEXT_URL = os.environ.get('IDENTITY_CONTEXT_URL',
                                      'https://w3id.org/identity/v1')
"""JSON-LD context attached to identity documents."""

PASSCODE_LENGTH = int(os.environ.get('PASSCODE_LENGTH', '8'))
PASSCODE_DURATION = int(os.environ.get('PASSCODE_DURATION', '86400'))
"""Seconds a passcode remains usable."""


#################### Mail ####################
MAIL_SERVER = os.environ.get('MAIL_SERVER', 'localhost')
MAIL_PORT = int(os.environ.get('MAIL_PORT', '25'))
MAIL_SENDER = os.environ.get('MAIL_SENDER',
                             f"no-reply@{BASE_SERVER.split(':')[0]}")
"""From address of outgoing mail; defaults to the host part of BASE_SERVER."""
MAIL_SUPPRESS_SEND = bool(int(os.environ.get('MAIL_SUPPRESS_SEND', '0')))
"""Log outgoing mail instead of sending it."""


#################### Logging ####################
LOGLEVEL = int(os.environ.get('LOGLEVEL', 20))
LOG_JSON = bool(int(os.environ.get('LOG_JSON', '0')))
"""Emit log records as JSON documents."""

SITE_NAME = os.environ.get('SITE_NAME', 'Website')
VERSION = '0.1.0'
