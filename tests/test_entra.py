"""Entra ID token validation and admin allow-list tests."""
import time
from types import SimpleNamespace
from unittest.mock import Mock

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from services.entra import EntraTokenValidator, AdminAllowList, InvalidFederatedToken


TENANT = 'tenant-123'
CLIENT = 'client-abc'
ISSUER = f'https://login.microsoftonline.com/{TENANT}/v2.0'


@pytest.fixture(scope='module')
def signing_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def validator(signing_key):
    jwks = Mock()
    jwks.get_signing_key_from_jwt.return_value = SimpleNamespace(key=signing_key.public_key())
    return EntraTokenValidator(TENANT, CLIENT, jwks_client=jwks)


def entra_token(key, **overrides):
    now = int(time.time())
    claims = {
        'sub': 'subject-1',
        'oid': 'object-1',
        'aud': CLIENT,
        'iss': ISSUER,
        'iat': now,
        'exp': now + 3600,
        'email': 'ann@school.org',
        'preferred_username': 'ann.lee@contoso.onmicrosoft.com',
        'given_name': 'Ann',
        'family_name': 'Lee',
        'name': 'Ann Lee',
    }
    claims.update(overrides)
    claims = {k: v for k, v in claims.items() if v is not None}
    return jwt.encode(claims, key, algorithm='RS256')


def test_valid_token_yields_identity(validator, signing_key):
    identity = validator.validate(entra_token(signing_key))

    assert identity == {
        'id': 'object-1', 'email': 'ann@school.org', 'firstName': 'Ann', 'lastName': 'Lee', 'name': 'Ann Lee',
    }


@pytest.mark.parametrize('claim', ['preferred_username', 'upn'])
def test_mutable_claims_never_supply_the_email(claim, validator, signing_key):
    token = entra_token(signing_key, email=None, **{claim: 'ann@school.org'})

    with pytest.raises(InvalidFederatedToken):
        validator.validate(token)


@pytest.mark.parametrize('overrides', [
    {'aud': 'someone-else'},
    {'iss': 'https://login.microsoftonline.com/other/v2.0'},
    {'exp': int(time.time()) - 60},
    {'email': None},
])
def test_rejected_claims(overrides, validator, signing_key):
    with pytest.raises(InvalidFederatedToken):
        validator.validate(entra_token(signing_key, **overrides))


def test_wrong_signing_key(validator):
    other = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    with pytest.raises(InvalidFederatedToken):
        validator.validate(entra_token(other))


def test_jwks_failure_is_rejection(validator, signing_key):
    validator.jwks_client.get_signing_key_from_jwt.side_effect = jwt.PyJWKClientError('no key')
    with pytest.raises(InvalidFederatedToken):
        validator.validate(entra_token(signing_key))


def test_from_env_requires_configuration(monkeypatch):
    monkeypatch.delenv('ENTRA_TENANT_ID', raising=False)
    monkeypatch.delenv('ENTRA_CLIENT_ID', raising=False)

    with pytest.raises(RuntimeError):
        EntraTokenValidator.from_env()


def test_from_env_builds_tenant_urls(monkeypatch):
    monkeypatch.setenv('ENTRA_TENANT_ID', TENANT)
    monkeypatch.setenv('ENTRA_CLIENT_ID', CLIENT)

    validator = EntraTokenValidator.from_env()

    assert validator.issuer == ISSUER
    assert validator.jwks_client.uri.endswith(f'/{TENANT}/discovery/v2.0/keys')


class TestAdminAllowList:

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv('ADMIN_EMAILS', ' Admin@School.org, ,ops@school.org')
        policy = AdminAllowList.from_env()

        assert policy('admin@school.org')
        assert policy.is_admin('OPS@school.org ')
        assert not policy('parent@school.org')

    def test_empty_policy_denies(self, monkeypatch):
        monkeypatch.delenv('ADMIN_EMAILS', raising=False)
        policy = AdminAllowList.from_env()

        assert not policy('admin@school.org')
        assert not policy('')
