"""Forgot-password handler."""
import logging

from utils.result import ActionResult
from utils.validation import is_missing


logger = logging.getLogger(__name__)


def handle(payload: dict, event: dict, deps) -> ActionResult:
    logger.info('Processing forgot password request')

    if is_missing(payload, 'email'):
        return ActionResult.fail('Email is required')

    return deps.users.request_password_reset(payload['email'])
