"""Provides Flask integration for the session routes."""

from typing import Any, Dict
from datetime import timedelta
from http import HTTPStatus as status
import logging

from flask import Blueprint, Response, current_app, jsonify, make_response, \
    redirect, render_template, request

from ..auth import ensure_authenticated, optionally_authenticated
from ..controllers import session
from ..controllers.forms import validate, JoinForm, LoginForm, \
    PasswordResetForm, PasscodeForm, PasscodeQueryForm

logger = logging.getLogger(__name__)

blueprint = Blueprint('ui', __name__, url_prefix='')
join_blueprint = Blueprint('join', __name__, url_prefix='')
"""Routes for creating identities; registered only if enabled."""


def get_default_view_vars() -> Dict[str, Any]:
    """Build the template context shared by all pages."""
    config = current_app.config
    user = getattr(request, 'user', None) \
        or getattr(request, 'session_user', None)
    identity = None
    if user is not None and user.identity is not None:
        identity = user.identity.to_json()
    return {
        'siteName': config['SITE_NAME'],
        'session': {'identity': identity},
        'clientData': {
            'siteUrl': config['BASE_URL'],
            'flags': {
                'enableCreateIdentity': bool(config['ENABLE_CREATE_IDENTITY'])
            },
            'session': {'identity': identity}
        }
    }


def set_cookies(response: Response, data: dict) -> None:
    """
    Update a :class:`.Response` with cookies in controller data.

    Controllers seeking to update cookies must include a 'cookies' key
    in their response data. An empty value with an expiry of zero unsets the
    cookie.
    """
    cookies = data.pop('cookies', None)
    if cookies is None:
        return None
    config = current_app.config
    for cookie_key, (cookie_value, expires) in cookies.items():
        cookie_name = config[f'AUTH_{cookie_key.upper()}_COOKIE_NAME']
        params = dict(httponly=True,
                      domain=config.get('AUTH_SESSION_COOKIE_DOMAIN'))
        if config.get('AUTH_SESSION_COOKIE_SECURE'):
            # Lax, to allow reasonable links to authenticated views using GET.
            params.update({'secure': True, 'samesite': 'Lax'})
        if not cookie_value:
            logger.debug('Unset cookie %s', cookie_name)
            response.delete_cookie(cookie_name, **params)
            continue
        max_age = timedelta(seconds=expires)
        logger.debug('Set cookie %s, max_age %s', cookie_name, max_age)
        response.set_cookie(cookie_name, cookie_value, max_age=max_age,
                            **params)
    return None


def _json_response(data: dict, code: int, headers: dict) -> Response:
    cookies = {'cookies': data.pop('cookies', None)}
    if code == status.NO_CONTENT:
        response = make_response('', code, headers)
    else:
        response = make_response(jsonify(data), code, headers)
    set_cookies(response, cookies)
    return response


@blueprint.after_app_request
def apply_response_headers(response: Response) -> Response:
    """Prevent UI redress attacks."""
    response.headers['Content-Security-Policy'] = "frame-ancestors 'none'"
    response.headers['X-Frame-Options'] = 'DENY'
    return response


@join_blueprint.route('/join', methods=['GET'])
@optionally_authenticated
def join_page() -> Response:
    """Page with the form for creating an identity."""
    view_vars = get_default_view_vars()
    view_vars['redirect'] = False
    return make_response(render_template('create.html', **view_vars))


@join_blueprint.route('/join', methods=['POST'])
@validate(JoinForm)
def join() -> Response:
    """Create an identity and log it in."""
    data, code, headers = session.join(request.validated,
                                       request.remote_addr)
    return _json_response(data, code, headers)


@blueprint.route('/session', methods=['GET'])
@ensure_authenticated
def current_identity() -> Response:
    """The identity that the request is authenticated as."""
    return jsonify({'identity': request.user.identity.to_json()
                    if request.user.identity else None})


@blueprint.route('/session/login', methods=['GET'])
@optionally_authenticated
def login_page() -> Response:
    """The login page."""
    return make_response(render_template('main.html',
                                         **get_default_view_vars()))


@blueprint.route('/session/login', methods=['POST'])
@validate(LoginForm)
def login() -> Response:
    """
    Perform a login by posting an identifier and a password.

    200 with the identity if the login was successful, or with the matching
    identities if there were several; 400 if the login was unsuccessful.
    """
    data, code, headers = session.login(request.validated)
    return _json_response(data, code, headers)


@blueprint.route('/session/logout', methods=['GET'])
def logout() -> Response:
    """Perform a logout, which destroys the session cookie."""
    cookie_name = current_app.config['AUTH_SESSION_COOKIE_NAME']
    data, code, headers = session.logout(request.cookies.get(cookie_name))
    response = make_response(redirect(headers['Location'], code=code))
    set_cookies(response, data)
    return response


@blueprint.route('/session/password/reset', methods=['POST'])
@validate(PasswordResetForm)
def reset_password() -> Response:
    """
    Reset a password given an identifier and passcode.

    204 if the reset was successful, 403 if it failed.
    """
    data, code, headers = session.reset_password(request.validated)
    return _json_response(data, code, headers)


@blueprint.route('/session/passcode', methods=['GET'])
@validate(PasscodeQueryForm, source='query')
@optionally_authenticated
def passcode_page() -> Response:
    """Page where a passcode from an email is entered."""
    view_vars = get_default_view_vars()
    view_vars['redirect'] = False
    if 'passcode' in request.args:
        view_vars['clientData']['sysPasscode'] = request.args['passcode']
    return make_response(render_template('passcode.html', **view_vars))


@blueprint.route('/session/passcode', methods=['POST'])
@validate(PasscodeForm)
def send_passcode() -> Response:
    """
    Send a passcode to the email associated with the given identifier.

    ``?usage=verify`` sends a verification message instead of a password
    reset message. 204 if the passcode was sent, 404 if the identifier does
    not exist.
    """
    usage = request.args.get('usage', 'reset')
    data, code, headers = session.send_passcode(request.validated, usage)
    return _json_response(data, code, headers)
