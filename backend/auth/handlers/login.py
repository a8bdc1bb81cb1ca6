"""Login handler."""
import logging

from utils.result import ActionResult
from utils.validation import any_missing


logger = logging.getLogger(__name__)


def handle(payload: dict, event: dict, deps) -> ActionResult:
    """Authenticate user with email and password."""
    logger.info('Processing login request')

    if any_missing(payload, ('email', 'password')):
        return ActionResult.fail('Email and password are required')

    return deps.users.authenticate_user(payload['email'], payload['password'])
