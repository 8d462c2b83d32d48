"""
Internal service API for the distributed session store.

Sessions are kept in Redis, keyed by session id, as signed JSON web tokens.
When a session is created, a cookie value is generated (another JWT) that
holds enough information to retrieve and verify the session: the session id,
the identity id, a nonce shared with the stored session, and the expiry.
"""

from typing import Any, Optional
from datetime import datetime, timedelta
import logging
import random
import uuid

import dateutil.parser
import jwt
import redis
from flask import Flask, current_app
from pytz import UTC

from .. import domain
from .exceptions import SessionCreationFailed, SessionDeletionFailed, \
    SessionUnavailable, UnknownSession, InvalidToken

logger = logging.getLogger(__name__)


def _generate_nonce(length: int = 8) -> str:
    return ''.join([str(random.randint(0, 9)) for i in range(length)])


class SessionStore(object):
    """
    Manages a connection to Redis.

    In fact, the StrictRedis instance is thread safe and connections are
    attached at the time a command is executed. This class simply provides a
    container for configuration.
    """

    def __init__(self, connection: Any, secret: str,
                 duration: int = 7200) -> None:
        self.r = connection
        self._secret = secret
        self._duration = duration

    @classmethod
    def connect(cls, host: str, port: int, db: int, secret: str,
                duration: int = 7200) -> 'SessionStore':
        """Open a connection to a Redis server."""
        logger.debug('New Redis connection at %s, port %s', host, port)
        return cls(redis.StrictRedis(host=host, port=port, db=db), secret,
                   duration)

    def create(self, identity_id: Optional[str],
               session_id: Optional[str] = None) -> domain.Session:
        """
        Create a new session.

        Parameters
        ----------
        identity_id : str
            The identity that is logged in by this session.
        session_id : str
            Generated if not provided.

        Returns
        -------
        :class:`.domain.Session`

        """
        if session_id is None:
            session_id = str(uuid.uuid4())
        start_time = datetime.now(tz=UTC)
        end_time = start_time + timedelta(seconds=self._duration)
        session = domain.Session(
            session_id=session_id,
            identity_id=identity_id,
            start_time=start_time,
            end_time=end_time,
            nonce=_generate_nonce()
        )
        try:
            self.r.set(session_id, self._encode(session.to_dict()),
                       ex=self._duration)
        except redis.exceptions.ConnectionError as e:
            raise SessionUnavailable(f'Connection failed: {e}') from e
        except Exception as e:
            raise SessionCreationFailed(f'Failed to create: {e}') from e
        return session

    def generate_cookie(self, session: domain.Session) -> str:
        """Generate a cookie from a :class:`.domain.Session`."""
        return self._pack_cookie({
            'identity_id': session.identity_id,
            'session_id': session.session_id,
            'nonce': session.nonce,
            'expires': session.end_time.isoformat()
        })

    def delete(self, cookie: str) -> None:
        """Delete the session that a cookie refers to."""
        try:
            cookie_data = self._unpack_cookie(cookie)
        except InvalidToken as e:
            raise SessionDeletionFailed('Bad session cookie') from e
        self.delete_by_id(cookie_data['session_id'])

    def delete_by_id(self, session_id: str) -> None:
        """Delete a session in the key-value store by ID."""
        try:
            self.r.delete(session_id)
        except redis.exceptions.ConnectionError as e:
            raise SessionDeletionFailed(f'Connection failed: {e}') from e
        except Exception as e:
            raise SessionDeletionFailed(f'Failed to delete: {e}') from e

    def load(self, cookie: str) -> domain.Session:
        """
        Load a session using a session cookie.

        Raises
        ------
        :class:`InvalidToken`
            If the cookie is malformed, expired, or does not match the stored
            session.
        :class:`UnknownSession`
            If the session no longer exists.

        """
        cookie_data = self._unpack_cookie(cookie)
        try:
            expires = dateutil.parser.parse(cookie_data['expires'])
            session_id = cookie_data['session_id']
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidToken('Token payload malformed') from e

        if expires <= datetime.now(tz=UTC):
            raise InvalidToken('Session has expired')

        session = self.load_by_id(session_id)
        if session.expired:
            raise InvalidToken('Session has expired')
        if cookie_data.get('nonce') != session.nonce \
                or cookie_data.get('identity_id') != session.identity_id:
            raise InvalidToken('Invalid token; likely a forgery')
        return session

    def load_by_id(self, session_id: str) -> domain.Session:
        """Get session data by session ID."""
        session_jwt = self.r.get(session_id)
        if not session_jwt:
            logger.debug('No such session: %s', session_id)
            raise UnknownSession(f'Failed to find session {session_id}')
        if isinstance(session_jwt, bytes):
            session_jwt = session_jwt.decode('ascii')
        return self._decode(session_jwt)

    def _encode(self, session_data: dict) -> str:
        return jwt.encode(session_data, self._secret, algorithm='HS256')

    def _decode(self, session_jwt: str) -> domain.Session:
        try:
            data = jwt.decode(session_jwt, self._secret, algorithms=['HS256'])
        except jwt.exceptions.InvalidTokenError as e:
            raise InvalidToken('Invalid or corrupted session token') from e
        return domain.Session.from_dict(data)

    def _unpack_cookie(self, cookie: str) -> dict:
        try:
            data = dict(jwt.decode(cookie, self._secret,
                                   algorithms=['HS256']))
        except jwt.exceptions.InvalidTokenError as e:
            raise InvalidToken('Session cookie is malformed') from e
        return data

    def _pack_cookie(self, cookie_data: dict) -> str:
        return jwt.encode(cookie_data, self._secret, algorithm='HS256')


def init_app(app: Flask) -> None:
    """Set configuration defaults and attach a store to the application."""
    config = app.config
    config.setdefault('REDIS_HOST', 'localhost')
    config.setdefault('REDIS_PORT', '6379')
    config.setdefault('REDIS_DATABASE', '0')
    config.setdefault('REDIS_FAKE', False)
    config.setdefault('JWT_SECRET', 'foosecret')
    config.setdefault('SESSION_DURATION', '7200')
    app.extensions['session_store'] = get_redis_session(app)


def get_redis_session(app: Flask) -> SessionStore:
    """Get a new session store, as configured on ``app``."""
    config = app.config
    secret = config['JWT_SECRET']
    duration = int(config['SESSION_DURATION'])
    if config['REDIS_FAKE']:
        import fakeredis
        logger.warning('Using FakeRedis; sessions are kept in memory')
        return SessionStore(fakeredis.FakeStrictRedis(), secret, duration)
    return SessionStore.connect(config['REDIS_HOST'],
                                int(config['REDIS_PORT']),
                                int(config['REDIS_DATABASE']),
                                secret, duration)


def current_session() -> SessionStore:
    """Get the :class:`SessionStore` of the current application."""
    store: SessionStore = current_app.extensions['session_store']
    return store
