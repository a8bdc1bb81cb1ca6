"""Logout handler."""
import logging

from utils.result import ActionResult
from utils.validation import is_missing


logger = logging.getLogger(__name__)


def handle(payload: dict, event: dict, deps) -> ActionResult:
    """Acknowledge logout. Access tokens are stateless and expire on their own."""
    logger.info('Processing logout request')

    if is_missing(payload, 'token'):
        return ActionResult.fail('Token is required for logout')

    return ActionResult.ok('Logout successful')
