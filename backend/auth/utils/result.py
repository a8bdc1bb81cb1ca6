"""Action result returned by handlers and the user service."""
from dataclasses import dataclass
from typing import Optional


INVALID = 'invalid'
UNAUTHORIZED = 'unauthorized'
CONFLICT = 'conflict'

STATUS_BY_ERROR = {
    INVALID: 400,
    UNAUTHORIZED: 401,
    CONFLICT: 409,
}


@dataclass(frozen=True)
class ActionResult:
    """
    Outcome of an auth action.

    `error` is the failure kind used to pick the HTTP status. It is not part
    of the response body.
    """
    success: bool
    message: str
    data: Optional[dict] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, message: str, data: Optional[dict] = None) -> 'ActionResult':
        return cls(True, message, data)

    @classmethod
    def fail(cls, message: str, error: str = INVALID) -> 'ActionResult':
        return cls(False, message, error=error)

    def status_code(self, success_status: int = 200) -> int:
        if self.success:
            return success_status
        return STATUS_BY_ERROR.get(self.error, 400)

    def to_body(self) -> dict:
        body = {'success': self.success, 'message': self.message}
        if self.data is not None:
            body['data'] = self.data
        return body
