"""Error codes raised by the service layer."""
from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    CONTENT_BLOCKED = "CONTENT_BLOCKED"
    POST_NOT_FOUND = "POST_NOT_FOUND"
    PERSONA_NOT_FOUND = "PERSONA_NOT_FOUND"
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    NO_ACTIVE_PERSONAS = "NO_ACTIVE_PERSONAS"
    USERNAME_TAKEN = "USERNAME_TAKEN"
    CONFIRMATION_MISMATCH = "CONFIRMATION_MISMATCH"
    JOB_ALREADY_COMPLETED = "JOB_ALREADY_COMPLETED"
    INVALID_JOB_TRANSITION = "INVALID_JOB_TRANSITION"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"
    VALIDATION_ERROR = "VALIDATION_ERROR"


HTTP_STATUS = {
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.INVALID_SIGNATURE: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.POST_NOT_FOUND: 404,
    ErrorCode.PERSONA_NOT_FOUND: 404,
    ErrorCode.JOB_NOT_FOUND: 404,
    ErrorCode.USERNAME_TAKEN: 409,
    ErrorCode.JOB_ALREADY_COMPLETED: 409,
    ErrorCode.INVALID_JOB_TRANSITION: 409,
    ErrorCode.CONTENT_BLOCKED: 422,
    ErrorCode.NO_ACTIVE_PERSONAS: 422,
    ErrorCode.CONFIRMATION_MISMATCH: 422,
    ErrorCode.VALIDATION_ERROR: 422,
}


class SpotlightError(Exception):
    """Domain error carrying a stable error code."""

    def __init__(self, code: ErrorCode, message: Optional[str] = None):
        self.code = ErrorCode(code)
        self.message = message or self.code.value.replace("_", " ").capitalize()
        super().__init__(f"{self.code.value}: {self.message}")

    @property
    def status_code(self) -> int:
        return HTTP_STATUS.get(self.code, 400)

    def to_dict(self):
        return {"error": self.code.value, "message": self.message}
