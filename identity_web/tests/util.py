"""Helpers for testing the session service."""

from typing import Any, Dict, List, Optional
from base64 import b64encode
from datetime import datetime

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ed25519, padding, rsa
from flask import Flask
from pytz import UTC
from werkzeug.http import http_date

from ..factory import create_web_app


def make_config(**overrides: Any) -> Dict[str, Any]:
    """Configuration for an isolated application instance."""
    config = {
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite://',
        'CREATE_DB': True,
        'REDIS_FAKE': True,
        'JWT_SECRET': 'foosecret',
        'SESSION_DURATION': '500',
        'AUTH_SESSION_COOKIE_NAME': 'baz_session',
        'AUTH_SESSION_COOKIE_SECURE': False,
        'AUTH_SESSION_COOKIE_DOMAIN': None,
        'BASE_URL': 'https://example.com',
        'IDENTITY_BASE_PATH': '/i',
        'MAIL_SUPPRESS_SEND': True,
        'ENABLE_CREATE_IDENTITY': True,
        'HTTP_SIGNATURE_ENABLED': True,
        'LOGLEVEL': 40,
    }
    config.update(overrides)
    return config


def create_test_app(**overrides: Any) -> Flask:
    """Create an application backed by in-memory stores."""
    return create_web_app(make_config(**overrides))


def generate_rsa_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def generate_ed25519_key() -> ed25519.Ed25519PrivateKey:
    return ed25519.Ed25519PrivateKey.generate()


def public_pem(private_key: Any) -> str:
    """PEM encoding of the public half of ``private_key``."""
    return private_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode('ascii')


def signed_headers(private_key: Any, key_id: str, method: str, path: str,
                   algorithm: str = 'rsa-sha256',
                   headers: Optional[List[str]] = None,
                   date: Optional[datetime] = None,
                   extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    """Build request headers carrying an HTTP signature."""
    if headers is None:
        headers = ['(request-target)', 'host', 'date']
    if date is None:
        date = datetime.now(tz=UTC)
    values = {'host': 'localhost', 'date': http_date(date)}
    values.update({k.lower(): v for k, v in (extra or {}).items()})
    lines = []
    for name in headers:
        if name == '(request-target)':
            lines.append(f'(request-target): {method.lower()} {path}')
        else:
            lines.append(f'{name}: {values[name]}')
    data = '\n'.join(lines).encode('utf-8')
    if algorithm == 'ed25519':
        signature = private_key.sign(data)
    else:
        digest = hashes.SHA256() if algorithm == 'rsa-sha256' \
            else hashes.SHA512()
        signature = private_key.sign(data, padding.PKCS1v15(), digest)
    authorization = (
        f'Signature keyId="{key_id}",algorithm="{algorithm}",'
        f'headers="{" ".join(headers)}",'
        f'signature="{b64encode(signature).decode("ascii")}"'
    )
    result = {'Date': values['date'], 'Authorization': authorization}
    result.update(extra or {})
    return result


def parse_set_cookies(cookie_data: List[str]) -> Dict[str, Dict[str, str]]:
    """Parse ``Set-Cookie`` header values into a dict keyed by name."""
    cookies = {}
    for cdata in cookie_data:
        parts = cdata.split('; ')
        data = parts[0]
        key, value = data[:data.index('=')], data[data.index('=') + 1:]
        extra = {
            part[:part.index('=')]: part[part.index('=') + 1:]
            for part in parts[1:] if '=' in part
        }
        cookies[key] = dict(value=value, **extra)
    return cookies
