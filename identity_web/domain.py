"""Defines the core data structures for the website session service."""

from typing import Any, Dict, List, NamedTuple, Optional
from datetime import datetime

import dateutil.parser
from pytz import UTC


class Identity(NamedTuple):
    """A person (or agent) that can log in to the website."""

    id: str
    """Absolute URL identifying the identity."""

    sys_slug: str
    """Short, URL-safe name; the last path segment of :attr:`id`."""

    label: str
    """Human-readable name."""

    email: str

    email_verified: bool = False
    """Set once the owner has proven control of :attr:`email`."""

    created: Optional[datetime] = None

    context: Optional[str] = None
    """JSON-LD context of the identity document."""

    def to_json(self) -> Dict[str, Any]:
        """Public JSON representation of the identity."""
        doc: Dict[str, Any] = {}
        if self.context:
            doc['@context'] = self.context
        doc.update({
            'id': self.id,
            'type': 'Identity',
            'sysSlug': self.sys_slug,
            'label': self.label,
            'email': self.email,
            'sysStatus': 'active',
            'sysEmailVerified': self.email_verified
        })
        return doc


class PublicKey(NamedTuple):
    """A public key registered to an identity, used for HTTP signatures."""

    id: str
    owner: str
    """Id of the :class:`Identity` that holds the private key."""

    public_key_pem: str


class User(NamedTuple):
    """An authenticated principal on a request."""

    identity: Optional[Identity]

    @property
    def identity_id(self) -> Optional[str]:
        """Id of the authenticated identity, if any."""
        return self.identity.id if self.identity is not None else None


class LoginChoice(NamedTuple):
    """Several identities matched the same credentials."""

    email: Optional[str]
    identities: Dict[str, Identity]

    def to_json(self) -> Dict[str, Any]:
        return {
            'email': self.email,
            'identities': {identity_id: identity.to_json()
                           for identity_id, identity
                           in self.identities.items()}
        }


class PasswordMatch(NamedTuple):
    """Outcome of checking a password against an identifier."""

    identity_ids: List[str]
    """Identities whose password matched."""

    email: Optional[str] = None
    """The email address used as identifier, if it was one."""


class Session(NamedTuple):
    """A login session in the distributed session store."""

    session_id: str
    identity_id: Optional[str]
    start_time: datetime
    end_time: datetime
    nonce: str

    @property
    def expired(self) -> bool:
        """Expired if the current time is later than :attr:`end_time`."""
        return bool(self.end_time <= datetime.now(tz=UTC))

    @property
    def expires(self) -> int:
        """Seconds until the session ends."""
        remaining = (self.end_time - datetime.now(tz=UTC)).total_seconds()
        return max(int(remaining), 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'session_id': self.session_id,
            'identity_id': self.identity_id,
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat(),
            'nonce': self.nonce
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Session':
        return cls(
            session_id=data['session_id'],
            identity_id=data.get('identity_id'),
            start_time=dateutil.parser.parse(data['start_time']),
            end_time=dateutil.parser.parse(data['end_time']),
            nonce=data['nonce']
        )
