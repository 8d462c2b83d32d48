"""
Request schemas for the session routes.

Each route that accepts input is guarded with :func:`validate`, which loads
the input into one of these forms. Field names are the names used on the
wire, so that JSON bodies and HTML forms are handled the same way.
"""

from typing import Any, Callable, Mapping
from functools import wraps
import logging

from flask import request
from werkzeug.datastructures import MultiDict
from wtforms import Form, PasswordField, StringField
from wtforms.validators import DataRequired, Email, Length, Optional, \
    AnyOf, Regexp

from ..errors import ValidationError

logger = logging.getLogger(__name__)

SLUG_PATTERN = r'^[a-z0-9][a-z0-9-]*$'


class JoinForm(Form):
    """Create a new identity."""

    sysSlug = StringField(
        'Short name',
        validators=[DataRequired(), Length(min=3, max=32),
                    Regexp(SLUG_PATTERN,
                           message='Use lowercase letters, digits, and'
                                   ' dashes only.')]
    )
    label = StringField('Name', validators=[DataRequired(),
                                            Length(min=1, max=200)])
    email = StringField('Email address', validators=[DataRequired(), Email(),
                                                     Length(max=255)])
    sysPassword = PasswordField('Password',
                                validators=[DataRequired(),
                                            Length(min=6, max=32)])


class LoginForm(Form):
    """Log in form."""

    sysIdentifier = StringField('Email address or short name',
                                validators=[DataRequired(), Length(max=255)])
    password = PasswordField('Password', validators=[DataRequired()])


class PasswordResetForm(Form):
    """Set a new password with a passcode."""

    sysIdentifier = StringField('Email address or short name',
                                validators=[DataRequired(), Length(max=255)])
    sysPasscode = StringField('Passcode', validators=[DataRequired(),
                                                      Length(max=64)])
    sysPasswordNew = PasswordField('New password',
                                   validators=[DataRequired(),
                                               Length(min=6, max=32)])


class PasscodeForm(Form):
    """Request a passcode by email."""

    sysIdentifier = StringField('Email address or short name',
                                validators=[DataRequired(), Length(max=255)])


class PasscodeQueryForm(Form):
    """Query parameters of the passcode page."""

    passcode = StringField('Passcode', validators=[Optional(),
                                                   Length(max=64)])
    usage = StringField('Usage', validators=[Optional(),
                                             AnyOf(['reset', 'verify'])])


def _json_formdata(data: Any) -> MultiDict:
    """Flatten a JSON object into form data; nested values are dropped."""
    if not isinstance(data, Mapping):
        return MultiDict()
    flat = {}
    for key, value in data.items():
        if isinstance(value, (dict, list)) or value is None:
            continue
        flat[key] = value if isinstance(value, str) else str(value)
    return MultiDict(flat)


def _formdata(source: str) -> MultiDict:
    if source == 'query':
        return request.args
    if request.is_json:
        return _json_formdata(request.get_json(silent=True))
    return request.form


def validate(form_cls: type, source: str = 'body') -> Callable:
    """
    Generate a decorator that validates request input against a form.

    Parameters
    ----------
    form_cls : type
        A :class:`wtforms.Form` subclass.
    source : str
        ``body`` (JSON or form-encoded) or ``query``.

    The validated form is available to the route as ``request.validated``.
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            form = form_cls(_formdata(source))
            if not form.validate():
                logger.debug('%s failed validation: %s', form_cls.__name__,
                             form.errors)
                raise ValidationError(
                    'A validation error occurred.',
                    details={'schema': form_cls.__name__,
                             'errors': form.errors}
                )
            request.validated = form
            return func(*args, **kwargs)
        return wrapper
    return decorator
