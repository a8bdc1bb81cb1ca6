"""Password reset handler."""
import logging

from utils.result import ActionResult
from utils.validation import any_missing


logger = logging.getLogger(__name__)


def handle(payload: dict, event: dict, deps) -> ActionResult:
    """Set a new password with the token from the reset email."""
    logger.info('Processing password reset request')

    if any_missing(payload, ('token', 'newPassword')):
        return ActionResult.fail('Reset token and new password are required')

    return deps.users.reset_password(payload['token'], payload['newPassword'])
