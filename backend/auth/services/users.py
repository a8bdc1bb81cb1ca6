"""
User domain service backed by PostgreSQL.

Credential checks, token issuance and password lifecycle for the auth
endpoint. Every public method returns an ActionResult; exceptions escape
only for infrastructure failures (database, missing JWT_SECRET).
"""
import os
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import psycopg2.errors

from utils.db import query_one, execute, execute_returning, get_schema
from utils.email import is_email_enabled, send_password_reset_link
from utils.http import is_development
from utils.jwt_utils import (
    create_access_token, create_refresh_token, decode_access_token,
    decode_refresh_token, hash_token, permissions_for, ACCESS_TOKEN_EXPIRE_MINUTES,
)
from utils.password import (
    hash_password, verify_password, validate_password, validate_email, normalize_email,
)
from utils.result import ActionResult, UNAUTHORIZED, CONFLICT


logger = logging.getLogger(__name__)

MAX_LOGIN_ATTEMPTS = int(os.environ.get('MAX_LOGIN_ATTEMPTS', '5'))
LOCKOUT_MINUTES = int(os.environ.get('LOCKOUT_MINUTES', '15'))
RESET_TOKEN_LIFETIME_MINUTES = 60

SELF_REGISTER_ROLES = ('parent', 'student')
ADMIN_ROLE = 'super_admin'
DEFAULT_ROLE = 'parent'
FEDERATED_PROVIDER = 'entra'

USER_COLUMNS = 'id, email, first_name, last_name, role, auth_provider, is_active, password_hash'

AUTH_ERROR_MSG = 'Invalid email or password'
RESET_REQUESTED_MSG = 'If the email exists, a reset link has been sent'
LOCAL_ACCOUNT_MSG = 'This email belongs to a password account. Sign in with email and password'


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _user_dict(row) -> dict:
    user_id, email, first_name, last_name, role, auth_provider, is_active, _ = row
    return {
        'id': user_id,
        'email': email,
        'firstName': first_name,
        'lastName': last_name,
        'role': role,
        'authProvider': auth_provider,
        'isActive': is_active,
        'permissions': permissions_for(role),
    }


class UserService:
    """Implements the user-domain collaborator consumed by the dispatcher."""

    def _find_by_email(self, email: str):
        S = get_schema()
        return query_one(f"SELECT {USER_COLUMNS} FROM {S}users WHERE email = %s", (email,))

    def _find_by_id(self, user_id: int):
        S = get_schema()
        return query_one(f"SELECT {USER_COLUMNS} FROM {S}users WHERE id = %s", (user_id,))

    def _issue_tokens(self, row, message: str) -> ActionResult:
        """Create an access/refresh pair and store the refresh hash for revocation."""
        user = _user_dict(row)
        access_token = create_access_token(user['id'], user['email'], user['role'])
        refresh_token, refresh_expires = create_refresh_token(user['id'])

        S = get_schema()
        execute(f"""
            INSERT INTO {S}refresh_tokens (user_id, token_hash, expires_at, created_at)
            VALUES (%s, %s, %s, %s)
        """, (user['id'], hash_token(refresh_token), refresh_expires, _utcnow()))

        return ActionResult.ok(message, {
            'token': access_token,
            'refreshToken': refresh_token,
            'tokenType': 'Bearer',
            'expiresIn': ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            'user': user,
        })

    def _locked_out_for(self, email: str) -> Optional[int]:
        """Seconds left in the lockout window, or None when login is allowed."""
        S = get_schema()
        row = query_one(f"""
            SELECT failed_login_attempts, last_failed_login_at
            FROM {S}users WHERE email = %s
        """, (email,))
        if not row:
            return None

        attempts, last_failed = row
        if attempts and attempts >= MAX_LOGIN_ATTEMPTS and last_failed:
            lockout_until = _as_utc(last_failed) + timedelta(minutes=LOCKOUT_MINUTES)
            now = _utcnow()
            if now < lockout_until:
                return int((lockout_until - now).total_seconds())
        return None

    def authenticate_user(self, email: str, password: str) -> ActionResult:
        email = normalize_email(email)
        password = str(password)

        remaining = self._locked_out_for(email)
        if remaining is not None:
            logger.info('Login blocked by lockout')
            return ActionResult.fail(
                f'Too many failed attempts. Try again in {remaining // 60 + 1} min.', UNAUTHORIZED)

        row = self._find_by_email(email)
        if not row:
            return ActionResult.fail(AUTH_ERROR_MSG, UNAUTHORIZED)

        user_id, is_active, stored_hash = row[0], row[6], row[7]
        if not is_active or not stored_hash:
            return ActionResult.fail(AUTH_ERROR_MSG, UNAUTHORIZED)

        S = get_schema()
        if not verify_password(password, stored_hash):
            execute(f"""
                UPDATE {S}users
                SET failed_login_attempts = COALESCE(failed_login_attempts, 0) + 1,
                    last_failed_login_at = %s
                WHERE id = %s
            """, (_utcnow(), user_id))
            return ActionResult.fail(AUTH_ERROR_MSG, UNAUTHORIZED)

        execute(f"""
            UPDATE {S}users
            SET failed_login_attempts = 0,
                last_failed_login_at = NULL,
                last_login_at = %s
            WHERE id = %s
        """, (_utcnow(), user_id))

        logger.info('User authenticated', extra={'user_id': user_id})
        return self._issue_tokens(row, 'Authentication successful')

    def register_user(self, *, email: str, first_name: str, last_name: str,
                      role: str, password: str) -> ActionResult:
        email = normalize_email(email)
        first_name = str(first_name).strip()[:255]
        last_name = str(last_name).strip()[:255]
        role = str(role).strip().lower()
        password = str(password)

        if not validate_email(email):
            return ActionResult.fail('Invalid email address')

        if role not in SELF_REGISTER_ROLES:
            return ActionResult.fail(f"Invalid role. Allowed roles: {', '.join(SELF_REGISTER_ROLES)}")

        is_valid, error_msg = validate_password(password)
        if not is_valid:
            return ActionResult.fail(error_msg)

        if self._find_by_email(email):
            return ActionResult.fail('A user with this email already exists', CONFLICT)

        S = get_schema()
        now = _utcnow()
        try:
            row = execute_returning(f"""
                INSERT INTO {S}users (email, password_hash, first_name, last_name, role,
                                      auth_provider, is_active, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s, 'legacy', TRUE, %s, %s)
                RETURNING {USER_COLUMNS}
            """, (email, hash_password(password), first_name, last_name, role, now, now))
        except psycopg2.errors.UniqueViolation:
            return ActionResult.fail('A user with this email already exists', CONFLICT)

        logger.info('User registered', extra={'user_id': row[0]})
        return ActionResult.ok('User registered successfully', {'user': _user_dict(row)})

    def refresh_token(self, token: str) -> ActionResult:
        decoded = decode_refresh_token(str(token))
        if not decoded:
            return ActionResult.fail('Invalid or expired refresh token', UNAUTHORIZED)

        user_id = int(decoded['sub'])
        token_hash = hash_token(str(token))
        S = get_schema()

        # Single-use: only the request whose DELETE removes the row may rotate
        consumed = execute_returning(f"""
            DELETE FROM {S}refresh_tokens
            WHERE token_hash = %s AND user_id = %s AND expires_at > %s
            RETURNING id
        """, (token_hash, user_id, _utcnow()))
        if not consumed:
            return ActionResult.fail('Refresh token revoked or expired', UNAUTHORIZED)

        row = self._find_by_id(user_id)
        if not row or not row[6]:
            return ActionResult.fail('User not found or account deactivated', UNAUTHORIZED)

        return self._issue_tokens(row, 'Token refreshed successfully')

    def request_password_reset(self, email: str) -> ActionResult:
        email = normalize_email(email)
        row = self._find_by_email(email)

        # Same answer whether or not the account exists
        if not row or not row[6]:
            return ActionResult.ok(RESET_REQUESTED_MSG)

        user_id = row[0]
        reset_token = secrets.token_urlsafe(32)
        now = _utcnow()
        S = get_schema()

        execute(f"DELETE FROM {S}password_reset_tokens WHERE user_id = %s", (user_id,))
        execute(f"""
            INSERT INTO {S}password_reset_tokens (user_id, token_hash, expires_at, created_at)
            VALUES (%s, %s, %s, %s)
        """, (user_id, hash_token(reset_token),
              now + timedelta(minutes=RESET_TOKEN_LIFETIME_MINUTES), now))

        if is_email_enabled():
            if not send_password_reset_link(email, reset_token, RESET_TOKEN_LIFETIME_MINUTES):
                logger.error('Password reset email was not delivered', extra={'user_id': user_id})
            return ActionResult.ok(RESET_REQUESTED_MSG)

        if is_development():
            return ActionResult.ok(RESET_REQUESTED_MSG, {
                'resetToken': reset_token,
                'expiresInMinutes': RESET_TOKEN_LIFETIME_MINUTES,
            })

        logger.warning('Password reset requested but SMTP is not configured', extra={'user_id': user_id})
        return ActionResult.ok(RESET_REQUESTED_MSG)

    def reset_password(self, token: str, new_password: str) -> ActionResult:
        new_password = str(new_password)
        is_valid, error_msg = validate_password(new_password)
        if not is_valid:
            return ActionResult.fail(error_msg)

        token_hash = hash_token(str(token))
        S = get_schema()

        # Consume the token in the same statement that checks it
        record = execute_returning(f"""
            DELETE FROM {S}password_reset_tokens
            WHERE token_hash = %s AND expires_at > %s
            RETURNING user_id
        """, (token_hash, _utcnow()))
        if not record:
            return ActionResult.fail('Invalid or expired reset token')

        user_id = record[0]
        execute(f"""
            UPDATE {S}users SET password_hash = %s, failed_login_attempts = 0, updated_at = %s
            WHERE id = %s
        """, (hash_password(new_password), _utcnow(), user_id))
        execute(f"DELETE FROM {S}refresh_tokens WHERE user_id = %s", (user_id,))

        logger.info('Password reset', extra={'user_id': user_id})
        return ActionResult.ok('Password reset successfully')

    def change_password(self, token: str, current_password: str, new_password: str) -> ActionResult:
        decoded = decode_access_token(str(token))
        if not decoded:
            return ActionResult.fail('Invalid authorization token', UNAUTHORIZED)

        row = self._find_by_id(int(decoded['sub']))
        if not row or not row[6]:
            return ActionResult.fail('User not found or account deactivated', UNAUTHORIZED)

        user_id, stored_hash = row[0], row[7]
        if not verify_password(str(current_password), stored_hash):
            return ActionResult.fail('Invalid current password', UNAUTHORIZED)

        new_password = str(new_password)
        is_valid, error_msg = validate_password(new_password)
        if not is_valid:
            return ActionResult.fail(error_msg)

        S = get_schema()
        execute(f"UPDATE {S}users SET password_hash = %s, updated_at = %s WHERE id = %s",
                (hash_password(new_password), _utcnow(), user_id))
        execute(f"DELETE FROM {S}refresh_tokens WHERE user_id = %s", (user_id,))

        logger.info('Password changed', extra={'user_id': user_id})
        return ActionResult.ok('Password changed successfully')

    def authenticate_federated(self, identity: dict, is_admin: bool) -> ActionResult:
        """Map a validated Entra ID identity onto a local user and issue tokens."""
        email = normalize_email(identity.get('email') or '')
        if not validate_email(email):
            return ActionResult.fail('Entra account has no usable email address')

        S = get_schema()
        now = _utcnow()
        row = self._find_by_email(email)

        if not row:
            role = ADMIN_ROLE if is_admin else DEFAULT_ROLE
            # A concurrent local registration keeps its row; only Entra rows are linked
            row = execute_returning(f"""
                INSERT INTO {S}users AS u (email, password_hash, first_name, last_name, role,
                                           auth_provider, is_active, last_login_at, created_at, updated_at)
                VALUES (%s, NULL, %s, %s, %s, '{FEDERATED_PROVIDER}', TRUE, %s, %s, %s)
                ON CONFLICT (email) DO UPDATE SET updated_at = EXCLUDED.updated_at
                WHERE u.auth_provider = '{FEDERATED_PROVIDER}'
                RETURNING {USER_COLUMNS}
            """, (email, identity.get('firstName') or '', identity.get('lastName') or '',
                  role, now, now, now))
            if not row:
                return ActionResult.fail(LOCAL_ACCOUNT_MSG, CONFLICT)
            if not row[6]:
                return ActionResult.fail('Account is deactivated', UNAUTHORIZED)
            logger.info('Federated user provisioned', extra={'user_id': row[0]})
        else:
            if row[5] != FEDERATED_PROVIDER:
                logger.warning('Entra login refused for local account', extra={'user_id': row[0]})
                return ActionResult.fail(LOCAL_ACCOUNT_MSG, CONFLICT)
            if not row[6]:
                return ActionResult.fail('Account is deactivated', UNAUTHORIZED)
            # The admin policy is authoritative in both directions
            if is_admin:
                role = ADMIN_ROLE
            elif row[4] == ADMIN_ROLE:
                role = DEFAULT_ROLE
            else:
                role = row[4]
            row = execute_returning(f"""
                UPDATE {S}users SET role = %s, last_login_at = %s, updated_at = %s
                WHERE id = %s
                RETURNING {USER_COLUMNS}
            """, (role, now, now, row[0]))

        return self._issue_tokens(row, 'Entra authentication successful')
