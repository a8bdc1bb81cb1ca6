"""Password change handler."""
import logging

from utils.http import get_header
from utils.result import ActionResult
from utils.validation import any_missing, parse_bearer


logger = logging.getLogger(__name__)


def handle(payload: dict, event: dict, deps) -> ActionResult:
    """
    Change password for the caller identified by the Bearer token.

    Body fields are checked before the Authorization header.
    """
    logger.info('Processing password change request')

    if any_missing(payload, ('currentPassword', 'newPassword')):
        return ActionResult.fail('Current password and new password are required')

    token, error_msg = parse_bearer(get_header(event, 'Authorization'))
    if error_msg:
        return ActionResult.fail(error_msg)

    return deps.users.change_password(token, payload['currentPassword'], payload['newPassword'])
