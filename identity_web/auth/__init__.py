"""
Provides tools for authenticating requests.

Two methods of authentication are currently supported:

- a website session, established by logging in with a password, and
  identified by a session cookie;
- an HTTP signature, made with a key registered to an identity.

If both methods are present on the same request, their identities must match.

Intended for use in a Flask application factory, for example:

.. code-block:: python

   from flask import Flask
   from identity_web.auth import Auth

   def create_web_app() -> Flask:
       app = Flask('someapp')
       Auth(app)
       return app

Routes are then protected with :func:`ensure_authenticated` or
:func:`optionally_authenticated`. Either one sets ``request.user`` to a
:class:`.domain.User` when the request is authenticated.
"""

from typing import Any, Callable, Optional, Tuple
from functools import wraps
import logging

from flask import Flask, current_app, request
from retry import retry

from .. import domain
from ..errors import InvalidLogin, PermissionDenied
from ..services import identities, sessions
from ..services.exceptions import InvalidToken, UnknownSession, \
    SessionDeletionFailed, SessionUnavailable
from .strategies import PasswordStrategy, HttpSignatureStrategy, \
    SignatureError

logger = logging.getLogger(__name__)

INVALID_LOGIN = ('The email address and password combination you entered is'
                 ' incorrect.')


class Auth(object):
    """Attaches session information to the request."""

    def __init__(self, app: Optional[Flask] = None) -> None:
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        """Register strategies and attach :meth:`load_session` to ``app``."""
        app.config.setdefault('HTTP_SIGNATURE_ENABLED', True)
        app.config.setdefault('HTTP_SIGNATURE_CLOCK_SKEW', 300)
        app.config.setdefault('AUTH_SESSION_COOKIE_NAME', 'website_session')
        self.password = PasswordStrategy()
        self.http_signature = HttpSignatureStrategy(
            clock_skew=int(app.config['HTTP_SIGNATURE_CLOCK_SKEW'])
        )
        app.extensions['auth'] = self
        app.before_request(self.load_session)

    def load_session(self) -> None:
        """Look for a logged-in session, and attach its user to the request."""
        request.user = None
        request.session_user = None
        cookie_name = current_app.config['AUTH_SESSION_COOKIE_NAME']
        cookie = request.cookies.get(cookie_name)
        if not cookie:
            return
        try:
            session = sessions.current_session().load(cookie)
        except (InvalidToken, UnknownSession) as e:
            logger.debug('No valid session: %s', e)
            return
        request.session_user = deserialize_user(session)


def current_auth() -> Auth:
    """Get the :class:`Auth` extension of the current application."""
    auth: Auth = current_app.extensions['auth']
    return auth


def deserialize_user(session: domain.Session) -> Optional[domain.User]:
    """Look up the identity stored in a session."""
    if session.identity_id is None:
        return domain.User(identity=None)
    try:
        return domain.User(identity=identities.get_identity(
            session.identity_id
        ))
    except identities.NoSuchIdentity:
        logger.warning('Session %s refers to missing identity %s',
                       session.session_id, session.identity_id)
        return None


def check_authentication() -> Optional[domain.User]:
    """
    Check authentication of the current request.

    Returns
    -------
    :class:`.domain.User` or None
        The authenticated user, or None if the request is not authenticated.

    Raises
    ------
    :class:`.PermissionDenied`
        If a signature is present but invalid, or if the session and the
        signature belong to different identities. The underlying problem is
        attached as the cause.

    """
    try:
        session_user = _check_session()
        signature_user = _check_http_signature()
        if session_user and signature_user \
                and session_user.identity_id != signature_user.identity_id:
            raise PermissionDenied('Request authentication mismatch.')
    except Exception as e:
        raise PermissionDenied('Request authentication error.',
                               cause=e) from e
    return session_user or signature_user or None


def _check_session() -> Optional[domain.User]:
    user: Optional[domain.User] = getattr(request, 'session_user', None)
    return user


def _check_http_signature() -> Optional[domain.User]:
    if not current_app.config['HTTP_SIGNATURE_ENABLED']:
        return None
    try:
        return current_auth().http_signature.authenticate(request)
    except SignatureError as e:
        logger.debug('HTTP signature rejected: %s', e)
        raise


def optionally_authenticated(func: Callable) -> Callable:
    """
    Authenticate the request if it can be; proceed regardless.

    The route can check whether the request is authenticated by testing
    ``request.user``.
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        user = check_authentication()
        if user:
            request.user = user
        return func(*args, **kwargs)
    return wrapper


def ensure_authenticated(func: Callable) -> Callable:
    """Require the request to be authenticated."""
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        user = check_authentication()
        if not user:
            logger.debug('Request is not authenticated; aborting')
            raise PermissionDenied('Not authenticated.')
        request.user = user
        return func(*args, **kwargs)
    return wrapper


def login(identifier: str, password: str) \
        -> Tuple[Optional[domain.User], Optional[domain.LoginChoice]]:
    """
    Authenticate with a password.

    Returns
    -------
    :class:`.domain.User` or None
        The authenticated user, if exactly one identity matched.
    :class:`.domain.LoginChoice` or None
        If several identities matched, the identities to choose from.

    Raises
    ------
    :class:`.InvalidLogin`
        If no identity matched.

    """
    match = current_auth().password.authenticate(identifier, password)
    if not match.identity_ids:
        raise InvalidLogin(INVALID_LOGIN)
    if len(match.identity_ids) > 1:
        choice = domain.LoginChoice(
            email=match.email,
            identities={identity.id: identity for identity
                        in identities.get_identities(match.identity_ids)}
        )
        return None, choice
    identity = identities.get_identity(match.identity_ids[0])
    return domain.User(identity=identity), None


@retry(SessionUnavailable, tries=3, delay=0.5, backoff=2)
def log_in(user: domain.User) -> Tuple[domain.Session, str]:
    """Create a session for ``user``; return it with its cookie value."""
    store = sessions.current_session()
    session = store.create(user.identity_id)
    cookie = store.generate_cookie(session)
    logger.debug('Created session %s for %s', session.session_id,
                 user.identity_id)
    return session, cookie


def log_out(cookie: Optional[str]) -> None:
    """Destroy the session identified by a session cookie, if any."""
    if not cookie:
        return
    try:
        sessions.current_session().delete(cookie)
    except SessionDeletionFailed as e:
        logger.debug('Logout failed: %s', e)
