"""
Error taxonomy shared by the services and the HTTP layer.

Services never raise these across the facade boundary; they are caught and
folded into a ``ServiceResponse`` envelope. Routes map the envelope code back
to an HTTP status with ``raise_for_response``.
"""

from typing import Optional

from fastapi import HTTPException, status


class ErrorCode:
    NOT_FOUND = "REQUEST_NOT_FOUND"
    VALIDATION = "VALIDATION_ERROR"
    FORBIDDEN = "INSUFFICIENT_PERMISSIONS"
    CONFLICT = "REQUEST_CONFLICT"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    INTERNAL = "INTERNAL_ERROR"


HTTP_STATUS_BY_CODE = {
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCode.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class ServiceError(Exception):
    """Raised inside the request service; converted to an envelope."""

    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def error_detail(code: str, message: str) -> dict:
    return {"error": {"code": code, "message": message}}


def raise_for_response(response) -> None:
    """Turn a failed ServiceResponse into an HTTPException."""
    if response.success:
        return
    code: Optional[str] = response.code or ErrorCode.STORE_UNAVAILABLE
    raise HTTPException(
        status_code=HTTP_STATUS_BY_CODE.get(code, status.HTTP_400_BAD_REQUEST),
        detail=error_detail(code, response.error or response.message or "Request failed"),
    )
