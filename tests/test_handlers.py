"""Per-action validation and delegation tests."""
import pytest

from handlers import (
    login, register, refresh, logout, forgot_password, reset_password,
    change_password, entra_login,
)
from services.entra import InvalidFederatedToken
from utils.result import ActionResult


REGISTER_PAYLOAD = {
    'email': 'a@b.com', 'firstName': 'Ann', 'lastName': 'Lee', 'role': 'parent', 'password': 'secret123',
}


def test_login_delegates_credentials(deps):
    result = login.handle({'email': 'a@b.com', 'password': 'pw'}, {}, deps)

    assert result.success
    deps.users.authenticate_user.assert_called_once_with('a@b.com', 'pw')


@pytest.mark.parametrize('payload', [{}, {'email': 'a@b.com'}, {'password': 'pw'}, {'email': '', 'password': 'pw'}])
def test_login_requires_email_and_password(payload, deps):
    result = login.handle(payload, {}, deps)

    assert result == ActionResult.fail('Email and password are required')
    deps.users.authenticate_user.assert_not_called()


def test_register_maps_camel_case_fields(deps):
    register.handle(REGISTER_PAYLOAD, {}, deps)

    deps.users.register_user.assert_called_once_with(
        email='a@b.com', first_name='Ann', last_name='Lee', role='parent', password='secret123')


@pytest.mark.parametrize('field', register.REQUIRED_FIELDS)
def test_register_names_first_missing_field(field, deps):
    payload = dict(REGISTER_PAYLOAD, **{field: None})

    result = register.handle(payload, {}, deps)

    assert result.message == f'Missing required field: {field}'
    deps.users.register_user.assert_not_called()


def test_register_reports_fields_in_order(deps):
    result = register.handle({'email': 'a@b.com', 'password': 'x'}, {}, deps)
    assert result.message == 'Missing required field: firstName'


def test_refresh(deps):
    assert refresh.handle({}, {}, deps).message == 'Refresh token is required'
    refresh.handle({'refreshToken': 'r'}, {}, deps)
    deps.users.refresh_token.assert_called_once_with('r')


def test_logout_is_local(deps):
    assert logout.handle({}, {}, deps).message == 'Token is required for logout'

    result = logout.handle({'token': 't'}, {}, deps)

    assert result == ActionResult.ok('Logout successful')
    assert result.to_body() == {'success': True, 'message': 'Logout successful'}


def test_forgot_password(deps):
    assert forgot_password.handle({'email': ''}, {}, deps).message == 'Email is required'
    forgot_password.handle({'email': 'a@b.com'}, {}, deps)
    deps.users.request_password_reset.assert_called_once_with('a@b.com')


def test_reset_password(deps):
    result = reset_password.handle({'token': 't'}, {}, deps)
    assert result.message == 'Reset token and new password are required'

    reset_password.handle({'token': 't', 'newPassword': 'n'}, {}, deps)
    deps.users.reset_password.assert_called_once_with('t', 'n')


class TestChangePassword:

    payload = {'currentPassword': 'old', 'newPassword': 'new'}

    def test_fields_checked_before_header(self, deps):
        result = change_password.handle({'newPassword': 'new'}, {'headers': {}}, deps)
        assert result.message == 'Current password and new password are required'

    def test_missing_header(self, deps):
        result = change_password.handle(self.payload, {'headers': {}}, deps)
        assert result.message == 'Authorization header is required'

    @pytest.mark.parametrize('header', ['Basic abc', 'Bearer', 'Bearer ', 'token-only', 'Bearer a b'])
    def test_malformed_header(self, header, deps):
        result = change_password.handle(self.payload, {'headers': {'Authorization': header}}, deps)

        assert result.message == 'Invalid authorization token'
        deps.users.change_password.assert_not_called()

    def test_lowercase_header_name(self, deps):
        change_password.handle(self.payload, {'headers': {'authorization': 'bearer tok'}}, deps)
        deps.users.change_password.assert_called_once_with('tok', 'old', 'new')


class TestEntraLogin:

    def test_requires_access_token(self, deps):
        result = entra_login.handle({}, {}, deps)
        assert result.message == 'Access token is required for Entra authentication'
        deps.entra.validate.assert_not_called()

    def test_rejected_token(self, deps):
        deps.entra.validate.side_effect = InvalidFederatedToken('bad signature')

        result = entra_login.handle({'accessToken': 'x'}, {}, deps)

        assert result == ActionResult.fail('Microsoft Entra ID authentication failed')
        deps.users.authenticate_federated.assert_not_called()

    def test_admin_policy_is_consulted(self, deps):
        deps.is_admin.return_value = True

        entra_login.handle({'accessToken': 'x'}, {}, deps)

        deps.is_admin.assert_called_once_with('Admin@School.org')
        identity = deps.entra.validate.return_value
        deps.users.authenticate_federated.assert_called_once_with(identity, is_admin=True)
