"""
Identity store.

Identities are persisted in a relational database via Flask-SQLAlchemy. An
identity is addressed by an absolute URL (its id), and can also be found by
its slug or by its email address. Several identities may share one email
address, which is why :func:`resolve_identity_identifier` returns a list.

Password resets are authorized with one-time passcodes that are mailed to the
address on file. Only hashes of passwords and passcodes are stored.
"""

from typing import List, Optional
from datetime import timedelta
import logging
import uuid

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from ... import domain
from .. import mail, passwords
from . import util
from .exceptions import NoSuchIdentity, DuplicateIdentityError, \
    PasscodeInvalid, NoSuchPublicKey
from .models import DBIdentity, DBPasscode, DBPublicKey

logger = logging.getLogger(__name__)

init_app = util.init_app
create_all = util.create_all
drop_all = util.drop_all
transaction = util.transaction

PASSCODE_USAGES = ('reset', 'verify')


def _context() -> Optional[str]:
    context: Optional[str] = current_app.config.get('IDENTITY_CONTEXT_URL')
    return context


def create_identity_id(slug: str) -> str:
    """Build the id of the identity with the given slug."""
    base_url = current_app.config['BASE_URL'].rstrip('/')
    base_path = current_app.config['IDENTITY_BASE_PATH'].strip('/')
    return f'{base_url}/{base_path}/{slug}'


def create_identity(identity: domain.Identity,
                    password: str) -> domain.Identity:
    """
    Create a new identity.

    Parameters
    ----------
    identity : :class:`.domain.Identity`
        Data for the new identity. If :attr:`.domain.Identity.id` is empty,
        it is derived from the slug.
    password : str
        Plain-text password; only its hash is stored.

    Returns
    -------
    :class:`.domain.Identity`

    Raises
    ------
    :class:`DuplicateIdentityError`
        If the id or the slug is already taken.

    """
    identity_id = identity.id or create_identity_id(identity.sys_slug)
    db_identity = DBIdentity(
        identity_id=identity_id,
        slug=identity.sys_slug,
        label=identity.label,
        email=identity.email,
        email_verified=identity.email_verified,
        password_hash=passwords.hash_password(password),
        created=util.now()
    )
    try:
        with transaction() as session:
            session.add(db_identity)
            session.commit()
    except IntegrityError as e:
        raise DuplicateIdentityError(
            f'Identity {identity_id} already exists'
        ) from e
    logger.info('Created identity %s', identity_id)
    return db_identity.to_domain(_context())


def _load(session, identity_id: str) -> DBIdentity:  # type: ignore
    db_identity: Optional[DBIdentity] = session.get(DBIdentity, identity_id)
    if db_identity is None:
        raise NoSuchIdentity(f'No identity {identity_id}')
    return db_identity


def get_identity(identity_id: str) -> domain.Identity:
    """Load an identity by id."""
    with transaction() as session:
        return _load(session, identity_id).to_domain(_context())


def get_identities(identity_ids: List[str]) -> List[domain.Identity]:
    """Load several identities; ids that do not exist are skipped."""
    if not identity_ids:
        return []
    with transaction() as session:
        records = (
            session.query(DBIdentity)
            .filter(DBIdentity.identity_id.in_(identity_ids))
            .all()
        )
        by_id = {r.identity_id: r.to_domain(_context()) for r in records}
    return [by_id[i] for i in identity_ids if i in by_id]


def resolve_identity_identifier(identifier: str) -> List[str]:
    """
    Find the ids of identities that an identifier refers to.

    Parameters
    ----------
    identifier : str
        An identity id, a slug, or an email address.

    Returns
    -------
    list
        Matching identity ids, oldest first. Empty if nothing matches.

    """
    if not identifier:
        return []
    with transaction() as session:
        if '@' in identifier:
            criterion = func.lower(DBIdentity.email) == identifier.lower()
        else:
            criterion = or_(DBIdentity.identity_id == identifier,
                            DBIdentity.slug == identifier)
        rows = (
            session.query(DBIdentity.identity_id)
            .filter(criterion)
            .order_by(DBIdentity.created, DBIdentity.identity_id)
            .all()
        )
    return [row[0] for row in rows]


def check_identity_password(identity_id: str, password: str) -> bool:
    """Determine whether ``password`` is the password of an identity."""
    with transaction() as session:
        try:
            db_identity = _load(session, identity_id)
        except NoSuchIdentity:
            return False
        return passwords.check_password(password, db_identity.password_hash)


def set_identity_password(identity_id: str, passcode: str,
                          new_password: str) -> None:
    """
    Replace the password of an identity, authorized by a mailed passcode.

    The passcode is consumed. Since the passcode was delivered by email, its
    successful use also verifies the identity's email address.

    Raises
    ------
    :class:`NoSuchIdentity`
    :class:`PasscodeInvalid`
        If no unused, unexpired passcode of this identity matches.

    """
    with transaction() as session:
        db_identity = _load(session, identity_id)
        candidates = (
            session.query(DBPasscode)
            .filter(DBPasscode.identity_id == identity_id)
            .filter(DBPasscode.used.is_(False))
            .filter(DBPasscode.expires > util.now())
            .all()
        )
        match = next((c for c in candidates
                      if passwords.check_password(passcode, c.passcode_hash)),
                     None)
        if match is None:
            raise PasscodeInvalid(f'Invalid passcode for {identity_id}')
        match.used = True
        db_identity.password_hash = passwords.hash_password(new_password)
        db_identity.email_verified = True
        session.add(match)
        session.add(db_identity)
    logger.info('Password changed for %s', identity_id)


def send_identity_passcodes(identities: List[domain.Identity],
                            usage: str = 'reset') -> None:
    """
    Generate a passcode for each identity and mail it to the owner.

    Parameters
    ----------
    identities : list
        Items are :class:`.domain.Identity` instances.
    usage : str
        One of :const:`PASSCODE_USAGES`; selects the wording of the message.

    """
    if usage not in PASSCODE_USAGES:
        raise ValueError(f'Unknown passcode usage: {usage}')
    length = int(current_app.config['PASSCODE_LENGTH'])
    duration = timedelta(seconds=int(current_app.config['PASSCODE_DURATION']))
    issued = []
    with transaction() as session:
        for identity in identities:
            passcode = passwords.generate_passcode(length)
            created = util.now()
            session.add(DBPasscode(
                identity_id=identity.id,
                passcode_hash=passwords.hash_password(passcode),
                usage=usage,
                created=created,
                expires=created + duration,
                used=False
            ))
            issued.append((identity, passcode))
    for identity, passcode in issued:
        mail.send_passcode(identity, passcode, usage)
        logger.debug('Sent %s passcode for %s', usage, identity.id)


def add_public_key(owner_id: str, public_key_pem: str,
                   key_id: Optional[str] = None) -> domain.PublicKey:
    """Register a public key for an identity."""
    if key_id is None:
        key_id = f'{owner_id}/keys/{uuid.uuid4().hex}'
    with transaction() as session:
        _load(session, owner_id)
        db_key = DBPublicKey(key_id=key_id, owner_id=owner_id,
                             public_key_pem=public_key_pem,
                             created=util.now())
        session.add(db_key)
        session.commit()
        return db_key.to_domain()


def get_public_key(key_id: str) -> domain.PublicKey:
    """Load a public key by id."""
    with transaction() as session:
        db_key: Optional[DBPublicKey] = session.get(DBPublicKey, key_id)
        if db_key is None:
            raise NoSuchPublicKey(f'No public key {key_id}')
        return db_key.to_domain()
