"""
Authentication strategies.

Two ways of proving who is making a request are supported:

- :class:`PasswordStrategy` checks an identifier (identity id, slug, or email
  address) and a password. It is used when logging in.
- :class:`HttpSignatureStrategy` checks a signature over request headers made
  with a private key whose public half is registered to an identity. See
  https://tools.ietf.org/html/draft-cavage-http-signatures.
"""

from typing import Dict, List, Optional
from base64 import b64decode
from datetime import datetime
import binascii
import logging
import re

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding
from cryptography.hazmat.primitives.asymmetric.ed25519 import \
    Ed25519PublicKey
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPublicKey
from flask import Request
from pytz import UTC
from werkzeug.http import parse_date
from werkzeug.urls import iri_to_uri

from .. import domain
from ..services import identities

logger = logging.getLogger(__name__)

SIGNATURE_SCHEME = 'Signature'
REQUEST_TARGET = '(request-target)'
DEFAULT_HEADERS = ['date']
ALGORITHMS = ('rsa-sha256', 'rsa-sha512', 'ed25519')

_PARAM = re.compile(r'(\w+)="([^"]*)"')


class SignatureError(ValueError):
    """An HTTP signature is present but cannot be accepted."""


class PasswordStrategy(object):
    """Authenticate with an identifier and password."""

    def authenticate(self, identifier: str,
                     password: str) -> domain.PasswordMatch:
        """
        Check a password against every identity the identifier refers to.

        An email address may refer to several identities, and more than one of
        them may have the same password; in that case all of the matches are
        returned and the caller has to let the user choose.

        Returns
        -------
        :class:`.domain.PasswordMatch`
            ``identity_ids`` is empty if the credentials are not valid.

        """
        candidates = identities.resolve_identity_identifier(identifier)
        matches = [identity_id for identity_id in candidates
                   if identities.check_identity_password(identity_id,
                                                         password)]
        email = identifier if '@' in identifier else None
        logger.debug('%i of %i identities matched password for %s',
                     len(matches), len(candidates), identifier)
        return domain.PasswordMatch(identity_ids=matches, email=email)


class HttpSignatureStrategy(object):
    """Authenticate with a signature in the ``Authorization`` header."""

    def __init__(self, clock_skew: int = 300) -> None:
        self.clock_skew = clock_skew

    def authenticate(self, request: Request) -> Optional[domain.User]:
        """
        Verify the HTTP signature on a request.

        Returns
        -------
        :class:`.domain.User` or None
            None if the request carries no HTTP signature at all.

        Raises
        ------
        :class:`SignatureError`
            If a signature is present but is malformed, stale, made with an
            unknown key, or does not verify.

        """
        authorization = request.headers.get('Authorization')
        if not authorization:
            return None
        scheme, _, params = authorization.partition(' ')
        if scheme != SIGNATURE_SCHEME:
            return None

        parsed = parse_signature_params(params)
        key_id = parsed.get('keyId')
        signature = parsed.get('signature')
        algorithm = parsed.get('algorithm', 'rsa-sha256').lower()
        if not key_id or not signature:
            raise SignatureError('keyId and signature are required')
        if algorithm not in ALGORITHMS:
            raise SignatureError(f'Unsupported algorithm: {algorithm}')
        headers = parsed.get('headers', '').lower().split() or DEFAULT_HEADERS

        self._check_date(request, headers)
        signing_string = build_signing_string(request, headers)

        try:
            public_key = identities.get_public_key(key_id)
        except identities.NoSuchPublicKey as e:
            raise SignatureError(f'Unknown key: {key_id}') from e

        try:
            decoded = b64decode(signature, validate=True)
        except (binascii.Error, ValueError) as e:
            raise SignatureError('Signature is not valid base64') from e

        verify(public_key.public_key_pem, algorithm, decoded,
               signing_string.encode('utf-8'))
        try:
            identity = identities.get_identity(public_key.owner)
        except identities.NoSuchIdentity as e:
            raise SignatureError('Key owner does not exist') from e
        logger.debug('HTTP signature by %s verified', key_id)
        return domain.User(identity=identity)

    def _check_date(self, request: Request, headers: List[str]) -> None:
        for name in ('date', 'x-date'):
            if name not in headers:
                continue
            value = request.headers.get(name)
            date = parse_date(value) if value else None
            if date is None:
                raise SignatureError(f'Invalid {name} header')
            if date.tzinfo is None:
                date = date.replace(tzinfo=UTC)
            skew = abs((datetime.now(tz=UTC) - date).total_seconds())
            if skew > self.clock_skew:
                raise SignatureError('Request date is outside clock skew')


def parse_signature_params(params: str) -> Dict[str, str]:
    """Parse the ``key="value"`` pairs of a ``Signature`` header."""
    return {key: value for key, value in _PARAM.findall(params)}


def request_target(request: Request) -> str:
    """
    The request target as the client sent it, still percent-encoded.

    Werkzeug decodes ``request.path``, so the target is taken from the raw
    URI that the server puts in the environ. Servers that do not provide one
    get the path re-encoded.
    """
    raw = request.environ.get('RAW_URI') or request.environ.get('REQUEST_URI')
    if raw and raw.startswith('/'):
        return str(raw)
    target = iri_to_uri(request.script_root + request.path)
    if request.query_string:
        target += '?' + request.query_string.decode('latin-1')
    return target


def build_signing_string(request: Request, headers: List[str]) -> str:
    """Reconstruct the string that the client signed."""
    lines = []
    for name in headers:
        if name == REQUEST_TARGET:
            lines.append(f'{REQUEST_TARGET}: {request.method.lower()} '
                         f'{request_target(request)}')
            continue
        value = request.headers.get(name)
        if value is None:
            raise SignatureError(f'Signed header is missing: {name}')
        lines.append(f'{name}: {value.strip()}')
    return '\n'.join(lines)


def verify(public_key_pem: str, algorithm: str, signature: bytes,
           data: bytes) -> None:
    """Verify ``signature`` over ``data``, or raise :class:`SignatureError`."""
    try:
        key = serialization.load_pem_public_key(public_key_pem.encode('ascii'))
    except ValueError as e:
        raise SignatureError('Registered key cannot be loaded') from e
    try:
        if algorithm.startswith('rsa-'):
            if not isinstance(key, RSAPublicKey):
                raise SignatureError(f'{algorithm} requires an RSA key')
            digest = hashes.SHA256() if algorithm == 'rsa-sha256' \
                else hashes.SHA512()
            key.verify(signature, data, padding.PKCS1v15(), digest)
        else:
            if not isinstance(key, Ed25519PublicKey):
                raise SignatureError(f'{algorithm} requires an Ed25519 key')
            key.verify(signature, data)
    except InvalidSignature as e:
        raise SignatureError('Signature verification failed') from e
