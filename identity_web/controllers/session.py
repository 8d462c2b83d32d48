"""
Controllers for joining, logging in and out, and resetting passwords.

When an identity logs in, a session is created in the distributed session
store and its key is handed back as a cookie. Controllers never touch the
response: they return ``(data, status code, headers)``, and the routes set
any cookies listed under ``data['cookies']``.

Passwords are reset with a passcode that is mailed to the address on file for
the identity. An email address may be shared by several identities, so both
the passcode request and the reset itself work on every identity that the
given identifier resolves to.
"""

from typing import Any, Dict, Optional, Tuple
from http import HTTPStatus as status
import logging

from flask import current_app

from .. import auth, domain, signals
from ..errors import AutoLoginFailed, DuplicateIdentity, IdentityNotFound, \
    InvalidLogin, PasswordResetFailed
from ..services import identities
from ..services.exceptions import SessionCreationFailed
from .forms import JoinForm, LoginForm, PasswordResetForm, PasscodeForm

logger = logging.getLogger(__name__)

ResponseData = Tuple[Dict[str, Any], int, Dict[str, str]]


def join(form: JoinForm, ip: Optional[str] = None) -> ResponseData:
    """
    Create an identity and log it in.

    Parameters
    ----------
    form : :class:`.JoinForm`
        A validated form.
    ip : str
        Address of the client, for the record.

    Returns
    -------
    dict
        The public JSON of the identity, plus ``cookies``.
    int
        201 (Created).
    dict
        ``Location`` of the new identity.

    """
    password = form.sysPassword.data
    identity_id = identities.create_identity_id(form.sysSlug.data)
    identity = domain.Identity(
        id=identity_id,
        sys_slug=form.sysSlug.data,
        label=form.label.data,
        email=form.email.data
    )
    try:
        identity = identities.create_identity(identity, password)
    except identities.DuplicateIdentityError as e:
        raise DuplicateIdentity(
            'Could not create identity, it is a duplicate.',
            details={'identity': identity_id}
        ) from e
    logger.info('Identity %s created from %s', identity.id, ip)
    signals.identity_created.send(current_app._get_current_object(),
                                  details={'identity': identity, 'ip': ip})

    message = 'Could not create a session for the newly created identity.'
    try:
        user, _ = auth.login(identity.id, password)
        if user is None:    # The id names exactly one identity.
            raise AutoLoginFailed(message)
        session, cookie = auth.log_in(user)
    except (InvalidLogin, SessionCreationFailed) as e:
        raise AutoLoginFailed(message, cause=e) from e

    data = identity.to_json()
    data['cookies'] = {'session': (cookie, session.expires)}
    return data, status.CREATED, {'Location': identity.id}


def login(form: LoginForm) -> ResponseData:
    """
    Log in with an identifier and a password.

    If the credentials match several identities, nobody is logged in; the
    response lists the identities so that the user can log in with the id of
    the one they mean.
    """
    user, choice = auth.login(form.sysIdentifier.data, form.password.data)
    if user is None:
        logger.debug('Login for %s matched %i identities',
                     form.sysIdentifier.data, len(choice.identities))
        return choice.to_json(), status.OK, {}

    try:
        session, cookie = auth.log_in(user)
    except SessionCreationFailed as e:
        logger.error('Could not create session: %s', e)
        raise
    data = {
        'identity': user.identity.to_json(),
        'cookies': {'session': (cookie, session.expires)}
    }
    return data, status.OK, {}


def logout(session_cookie: str) -> ResponseData:
    """Destroy the session, and send the user to the logout page."""
    logger.debug('Request to log out')
    auth.log_out(session_cookie)
    data = {'cookies': {'session': ('', 0)}}
    next_page = current_app.config['DEFAULT_LOGOUT_REDIRECT_URL']
    return data, status.FOUND, {'Location': next_page}


def reset_password(form: PasswordResetForm) -> ResponseData:
    """Set a new password on the first identity the passcode unlocks."""
    identifier = form.sysIdentifier.data
    for identity_id in identities.resolve_identity_identifier(identifier):
        try:
            identities.set_identity_password(identity_id,
                                             form.sysPasscode.data,
                                             form.sysPasswordNew.data)
        except (identities.PasscodeInvalid, identities.NoSuchIdentity) as e:
            logger.debug('Password not reset for %s: %s', identity_id, e)
            continue
        return {}, status.NO_CONTENT, {}
    raise PasswordResetFailed(
        'The password reset failed for the given identity.',
        details={'sysIdentifier': identifier}
    )


def send_passcode(form: PasscodeForm, usage: str = 'reset') -> ResponseData:
    """Mail a passcode to every identity the identifier refers to."""
    identifier = form.sysIdentifier.data
    identity_ids = identities.resolve_identity_identifier(identifier)
    if not identity_ids:
        raise IdentityNotFound(
            'The given email address is not registered.',
            details={'sysIdentifier': identifier}
        )
    found = identities.get_identities(identity_ids)
    usage = 'verify' if usage == 'verify' else 'reset'
    identities.send_identity_passcodes(found, usage)
    return {}, status.NO_CONTENT, {}
