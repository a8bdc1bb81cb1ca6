"""Microsoft Entra ID token validation and admin policy."""
import os
import logging
from typing import Iterable, Optional

import jwt


logger = logging.getLogger(__name__)

AUTHORITY = 'https://login.microsoftonline.com'


class InvalidFederatedToken(Exception):
    """Raised when an Entra ID access token cannot be trusted."""


class EntraTokenValidator:
    """
    Validates RS256 Entra ID tokens against the tenant signing keys.

    The JWKS is fetched lazily and cached by PyJWKClient for the lifetime of
    the container.
    """

    def __init__(self, tenant_id: str, client_id: str, jwks_client: Optional[jwt.PyJWKClient] = None):
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.issuer = f'{AUTHORITY}/{tenant_id}/v2.0'
        self.jwks_client = jwks_client or jwt.PyJWKClient(
            f'{AUTHORITY}/{tenant_id}/discovery/v2.0/keys', cache_keys=True)

    @classmethod
    def from_env(cls) -> 'EntraTokenValidator':
        tenant_id = os.environ.get('ENTRA_TENANT_ID')
        client_id = os.environ.get('ENTRA_CLIENT_ID')
        if not tenant_id or not client_id:
            raise RuntimeError('ENTRA_TENANT_ID and ENTRA_CLIENT_ID must be configured')
        return cls(tenant_id, client_id)

    def validate(self, access_token: str) -> dict:
        """Return the caller identity or raise InvalidFederatedToken."""
        try:
            signing_key = self.jwks_client.get_signing_key_from_jwt(access_token)
            claims = jwt.decode(
                access_token,
                signing_key.key,
                algorithms=['RS256'],
                audience=self.client_id,
                issuer=self.issuer,
                options={'require': ['exp', 'iat', 'sub']},
            )
        except (jwt.PyJWKClientError, jwt.InvalidTokenError) as e:
            raise InvalidFederatedToken(str(e)) from e

        # preferred_username and upn are user-editable, so they never identify an account
        email = claims.get('email')
        if not email:
            raise InvalidFederatedToken('Token has no email claim')

        return {
            'id': claims.get('oid') or claims['sub'],
            'email': email,
            'firstName': claims.get('given_name', ''),
            'lastName': claims.get('family_name', ''),
            'name': claims.get('name', ''),
        }


class AdminAllowList:
    """is_admin(email) policy built from configuration, never from code."""

    def __init__(self, emails: Iterable[str] = ()):
        self._emails = frozenset(e.strip().lower() for e in emails if e and e.strip())

    @classmethod
    def from_env(cls) -> 'AdminAllowList':
        return cls(os.environ.get('ADMIN_EMAILS', '').split(','))

    def __call__(self, email: str) -> bool:
        return self.is_admin(email)

    def is_admin(self, email: str) -> bool:
        return bool(email) and email.strip().lower() in self._emails
