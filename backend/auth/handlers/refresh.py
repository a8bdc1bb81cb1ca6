"""Token refresh handler."""
import logging

from utils.result import ActionResult
from utils.validation import is_missing


logger = logging.getLogger(__name__)


def handle(payload: dict, event: dict, deps) -> ActionResult:
    """Issue a new token pair from a refresh token in the request body."""
    logger.info('Processing token refresh request')

    if is_missing(payload, 'refreshToken'):
        return ActionResult.fail('Refresh token is required')

    return deps.users.refresh_token(payload['refreshToken'])
