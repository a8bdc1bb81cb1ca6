"""JWT token utilities."""
import os
import jwt
import hashlib
from datetime import datetime, timedelta, timezone
from typing import Optional


JWT_ALGORITHM = 'HS256'
JWT_ISSUER = 'carpool-auth'
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.environ.get('ACCESS_TOKEN_EXPIRE_MINUTES', '15'))
REFRESH_TOKEN_EXPIRE_DAYS = int(os.environ.get('REFRESH_TOKEN_EXPIRE_DAYS', '30'))

ROLE_PERMISSIONS = {
    'super_admin': [
        'admin:read', 'admin:write', 'admin:delete', 'groups:manage',
        'users:manage', 'system:manage', 'trips:manage', 'notifications:manage',
    ],
    'group_admin': [
        'groups:read', 'groups:write', 'groups:manage_own', 'trips:read',
        'trips:write', 'users:read_group', 'notifications:send_group',
    ],
    'parent': [
        'profile:read', 'profile:write', 'groups:read', 'groups:join',
        'trips:read', 'trips:participate', 'preferences:manage', 'children:manage',
    ],
    'student': ['profile:read', 'trips:read', 'trips:participate'],
}


def get_jwt_secret() -> str:
    secret = os.environ.get('JWT_SECRET')
    if not secret:
        raise RuntimeError('JWT_SECRET not configured')
    return secret


def permissions_for(role: str) -> list:
    return ROLE_PERMISSIONS.get(role, ROLE_PERMISSIONS['parent'])


def create_access_token(user_id: int, email: str, role: str) -> str:
    """Create short-lived JWT access token."""
    now = datetime.now(timezone.utc)
    payload = {
        'sub': str(user_id),
        'email': email,
        'role': role,
        'permissions': permissions_for(role),
        'type': 'access',
        'iss': JWT_ISSUER,
        'exp': now + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
        'iat': now
    }
    return jwt.encode(payload, get_jwt_secret(), algorithm=JWT_ALGORITHM)


def create_refresh_token(user_id: int) -> tuple[str, datetime]:
    """Create long-lived JWT refresh token."""
    now = datetime.now(timezone.utc)
    expire = now + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
    payload = {
        'sub': str(user_id),
        'type': 'refresh',
        'iss': JWT_ISSUER,
        'exp': expire,
        'iat': now
    }
    token = jwt.encode(payload, get_jwt_secret(), algorithm=JWT_ALGORITHM)
    return token, expire


def _decode(token: str, token_type: str) -> Optional[dict]:
    secret = get_jwt_secret()
    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM], issuer=JWT_ISSUER)
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None
    if payload.get('type') != token_type:
        return None
    return payload


def decode_access_token(token: str) -> Optional[dict]:
    """Decode and validate access token. Returns payload or None."""
    return _decode(token, 'access')


def decode_refresh_token(token: str) -> Optional[dict]:
    """Decode and validate refresh token. Returns payload or None."""
    return _decode(token, 'refresh')


def hash_token(token: str) -> str:
    """Hash token for storage."""
    return hashlib.sha256(token.encode()).hexdigest()
