"""
Carpool Auth - Single Function Router

Routes (via ?action= query parameter, POST only):
  POST /api/auth?action=login            - Login and get tokens
  POST /api/auth?action=register         - Register new user
  POST /api/auth?action=refresh          - Rotate refresh token, get new access token
  POST /api/auth?action=logout           - Logout
  POST /api/auth?action=forgot-password  - Email a password reset link
  POST /api/auth?action=reset-password   - Set new password with reset token
  POST /api/auth?action=change-password  - Change password (Bearer token required)
  POST /api/auth?action=entra-login      - Exchange Microsoft Entra ID token
"""
import base64
import binascii
import json
import logging
from typing import Optional

from handlers import (
    login, register, refresh, logout, forgot_password, reset_password,
    change_password, entra_login,
)
from services.entra import EntraTokenValidator, AdminAllowList
from services.users import UserService
from utils.http import options_response, response, error, is_development
from utils.log import setup_logging


logger = logging.getLogger(__name__)

ROUTES = {
    'login': login.handle,
    'register': register.handle,
    'refresh': refresh.handle,
    'logout': logout.handle,
    'forgot-password': forgot_password.handle,
    'reset-password': reset_password.handle,
    'change-password': change_password.handle,
    'entra-login': entra_login.handle,
}

SUPPORTED_ACTIONS = tuple(ROUTES)

SUCCESS_STATUS = {'register': 201}


class InvalidBody(Exception):
    """Request body is not a JSON object."""


class Collaborators:
    """Services the action handlers delegate to."""

    def __init__(self, users=None, entra=None, is_admin=None):
        self.users = users if users is not None else UserService()
        self.is_admin = is_admin if is_admin is not None else AdminAllowList.from_env()
        self._entra = entra

    @property
    def entra(self):
        # Only entra-login needs tenant configuration
        if self._entra is None:
            self._entra = EntraTokenValidator.from_env()
        return self._entra


_collaborators: Optional[Collaborators] = None


def get_collaborators() -> Collaborators:
    global _collaborators
    if _collaborators is None:
        _collaborators = Collaborators()
    return _collaborators


def parse_body(event: dict) -> dict:
    """Return the request body as a dict; absent body is {}."""
    body = event.get('body')
    if body is None or body == '':
        return {}

    if isinstance(body, (str, bytes)):
        try:
            if event.get('isBase64Encoded'):
                body = base64.b64decode(body, validate=True)
            if isinstance(body, bytes):
                body = body.decode('utf-8')
            body = json.loads(body) if body.strip() else {}
        except (binascii.Error, UnicodeDecodeError, ValueError) as e:
            raise ValueError('Invalid JSON in request body') from e

    if not isinstance(body, dict):
        raise InvalidBody('Request body must be a JSON object')
    return body


def dispatch(event: dict, deps: Optional[Collaborators] = None, request_id: Optional[str] = None) -> dict:
    """Run one request through preflight, method gate, action lookup, body parsing and the handler."""
    try:
        method = str(event.get('httpMethod') or 'GET').upper()

        if method == 'OPTIONS':
            return options_response()

        if method != 'POST':
            return error(405, 'Method not allowed. Use POST.')

        params = event.get('queryStringParameters') or {}
        raw_action = params.get('action') or ''
        if not raw_action:
            return error(400, 'Action parameter is required. Use ?action=login, ?action=register, etc.',
                         supportedActions=list(SUPPORTED_ACTIONS))

        action = raw_action.lower()
        if action not in ROUTES:
            return error(400, f'Unknown action: {raw_action}', supportedActions=list(SUPPORTED_ACTIONS))

        log_extra = {'action': action, 'request_id': request_id}

        try:
            payload = parse_body(event)
        except InvalidBody as e:
            return error(400, str(e))
        except ValueError:
            logger.info('Rejected malformed JSON body', extra=log_extra)
            return error(400, 'Invalid JSON in request body')

        result = ROUTES[action](payload, event, deps or get_collaborators())
        status = result.status_code(SUCCESS_STATUS.get(action, 200))
        logger.info('Auth action completed', extra={**log_extra, 'status': status})
        return response(status, result.to_body())

    except Exception as e:
        logger.exception('Unified auth error', extra={'request_id': request_id})
        body = {'success': False, 'message': 'Internal server error'}
        if is_development():
            body['error'] = str(e)
        return response(500, body)


def handler(event: dict, context) -> dict:
    """Main router for auth endpoints."""
    setup_logging()
    request_id = getattr(context, 'request_id', None) or getattr(context, 'aws_request_id', None)
    return dispatch(event, request_id=request_id)
