"""Microsoft Entra ID login handler."""
import logging

from services.entra import InvalidFederatedToken
from utils.result import ActionResult
from utils.validation import is_missing


logger = logging.getLogger(__name__)


def handle(payload: dict, event: dict, deps) -> ActionResult:
    """Exchange an Entra ID access token for local Carpool tokens."""
    logger.info('Processing Entra ID login request')

    if is_missing(payload, 'accessToken'):
        return ActionResult.fail('Access token is required for Entra authentication')

    try:
        identity = deps.entra.validate(payload['accessToken'])
    except InvalidFederatedToken as e:
        logger.info('Entra token rejected: %s', e)
        return ActionResult.fail('Microsoft Entra ID authentication failed')

    return deps.users.authenticate_federated(identity, is_admin=deps.is_admin(identity['email']))
