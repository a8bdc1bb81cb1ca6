"""Shared fixtures for the auth function tests."""
import json
from unittest.mock import Mock

import pytest

from index import Collaborators
from utils.result import ActionResult


def make_event(method='POST', action=None, body=None, headers=None, raw_body=False):
    """Build a serverless HTTP event. Dict bodies are JSON-encoded unless raw_body."""
    params = {'action': action} if action is not None else None
    if isinstance(body, dict) and not raw_body:
        body = json.dumps(body)
    return {
        'httpMethod': method,
        'queryStringParameters': params,
        'headers': headers or {},
        'body': body,
        'isBase64Encoded': False,
    }


def body_of(resp: dict) -> dict:
    return json.loads(resp['body'])


@pytest.fixture
def users():
    service = Mock(name='UserService')
    ok = ActionResult.ok('ok', {'token': 't'})
    for name in ('authenticate_user', 'register_user', 'refresh_token', 'request_password_reset',
                 'reset_password', 'change_password', 'authenticate_federated'):
        getattr(service, name).return_value = ok
    return service


@pytest.fixture
def entra():
    validator = Mock(name='EntraTokenValidator')
    validator.validate.return_value = {
        'id': 'oid-1', 'email': 'Admin@School.org', 'firstName': 'Ada', 'lastName': 'Admin', 'name': 'Ada Admin',
    }
    return validator


@pytest.fixture
def is_admin():
    return Mock(name='is_admin', return_value=False)


@pytest.fixture
def deps(users, entra, is_admin):
    return Collaborators(users=users, entra=entra, is_admin=is_admin)


@pytest.fixture(autouse=True)
def _production_env(monkeypatch):
    monkeypatch.setenv('ENVIRONMENT', 'production')
    monkeypatch.delenv('CORS_ORIGIN', raising=False)
