"""Registration handler."""
import logging

from utils.result import ActionResult
from utils.validation import first_missing


logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('email', 'firstName', 'lastName', 'role', 'password')


def handle(payload: dict, event: dict, deps) -> ActionResult:
    """Register new user. Fields are checked in order; the first missing one is reported."""
    logger.info('Processing registration request')

    missing = first_missing(payload, REQUIRED_FIELDS)
    if missing:
        return ActionResult.fail(f'Missing required field: {missing}')

    return deps.users.register_user(
        email=payload['email'],
        first_name=payload['firstName'],
        last_name=payload['lastName'],
        role=payload['role'],
        password=payload['password'],
    )
