"""
Service errors and their HTTP handling.

Every failure that a client should learn about is raised as a
:class:`ServiceError`. Each error has a dotted type name, a status code, and
optional details. It also has a ``public`` flag, which controls whether the
message (and details) may be shown to the client. An error may wrap the
exception that caused it; public causes are reported along with the error.
"""

from typing import Any, Dict, Optional
from urllib.parse import urlparse

from flask import Flask, Response, jsonify, render_template, request
from werkzeug.exceptions import HTTPException

import logging

logger = logging.getLogger(__name__)

WEBSITE_NS = 'website'
SERVICES_NS = 'services'


class ServiceError(HTTPException):
    """An error that is reported to the client as a structured document."""

    code = 500
    error_type = f'{SERVICES_NS}.Error'
    public = False

    def __init__(self, message: str, error_type: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None,
                 cause: Optional[BaseException] = None,
                 code: Optional[int] = None,
                 public: Optional[bool] = None) -> None:
        super(ServiceError, self).__init__(message)
        self.message = message
        if error_type is not None:
            self.error_type = error_type
        if code is not None:
            self.code = code
        if public is not None:
            self.public = public
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for a response body, hiding anything not public."""
        if not self.public:
            return {
                'message': 'An internal server error occurred.',
                'type': f'{WEBSITE_NS}.InternalServerError',
                'details': {'httpStatusCode': 500},
                'cause': None
            }
        details = dict(self.details)
        details['httpStatusCode'] = self.code
        cause = None
        if isinstance(self.cause, ServiceError) and self.cause.public:
            cause = self.cause.to_dict()
        return {
            'message': self.message,
            'type': self.error_type,
            'details': details,
            'cause': cause
        }


class PermissionDenied(ServiceError):
    """The request is not (or not consistently) authenticated."""

    code = 400
    error_type = f'{WEBSITE_NS}.PermissionDenied'
    public = True


class ValidationError(ServiceError):
    """Request data did not satisfy its schema."""

    code = 400
    error_type = 'validation.ValidationError'
    public = True


class InvalidLogin(ServiceError):
    """Credentials did not check out."""

    code = 400
    error_type = f'{SERVICES_NS}.InvalidLogin'
    public = True


class DuplicateIdentity(ServiceError):
    """An identity with the same id or slug already exists."""

    code = 400
    error_type = f'{SERVICES_NS}.DuplicateIdentity'
    public = True


class AutoLoginFailed(ServiceError):
    """A freshly created identity could not be logged in."""

    error_type = f'{SERVICES_NS}.AutoLoginFailed'


class PasswordResetFailed(ServiceError):
    code = 403
    error_type = f'{SERVICES_NS}.PasswordResetFailed'
    public = True


class IdentityNotFound(ServiceError):
    code = 404
    error_type = f'{SERVICES_NS}.IdentityNotFound'
    public = True


def _wants_login_page() -> bool:
    """Determine whether a denied request came from a browser navigation."""
    # No Accept header means anything is acceptable.
    accepts_html = not request.accept_mimetypes \
        or request.accept_mimetypes.accept_html
    is_xhr = request.headers.get('X-Requested-With') == 'XMLHttpRequest'
    if not accepts_html or is_xhr:
        return False
    if request.method == 'GET':
        return True
    return request.method == 'POST' \
        and request.mimetype == 'application/x-www-form-urlencoded'


def handle_permission_denied(error: PermissionDenied) -> Response:
    """Send the login page to browsers, a JSON error to everything else."""
    if not _wants_login_page():
        return handle_service_error(error)

    from .routes.ui import get_default_view_vars
    view_vars = get_default_view_vars()
    if urlparse(request.url).path != '/session/login':
        view_vars['clientData']['queuedRequest'] = {
            'method': request.method,
            'url': request.url,
            'body': request.form.to_dict() if request.form else {}
        }
    return Response(render_template('main.html', **view_vars))


def handle_service_error(error: ServiceError) -> Response:
    """Render a :class:`ServiceError` as JSON."""
    if error.code >= 500:
        logger.error('%s: %s', error.error_type, error.message,
                     exc_info=error.cause)
    else:
        logger.debug('%s: %s', error.error_type, error.message)
    response = jsonify(error.to_dict())
    response.status_code = error.code
    return response


def handle_error(error: Exception) -> Response:
    """
    Dispatch any error raised while handling a request.

    Flask looks handlers up by status code before class, so a single handler
    registered for :class:`Exception` sees every :class:`ServiceError`
    regardless of its code.
    """
    if isinstance(error, PermissionDenied):
        return handle_permission_denied(error)
    if isinstance(error, ServiceError):
        return handle_service_error(error)
    if isinstance(error, HTTPException):
        return error    # type: ignore
    logger.exception('Unhandled error: %s', error)
    return handle_service_error(ServiceError(str(error), cause=error))


def init_app(app: Flask) -> None:
    """Register error handlers on ``app``."""
    app.register_error_handler(Exception, handle_error)
