from typing import Any, Optional
from pydantic import BaseModel


class ServiceResponse(BaseModel):
    """Uniform result of every mutating operation. Never raised, always returned."""

    success: bool
    data: Optional[Any] = None
    message: Optional[str] = None
    error: Optional[str] = None
    code: Optional[str] = None

    @classmethod
    def ok(cls, message: str, data: Any = None) -> "ServiceResponse":
        return cls(success=True, data=data, message=message)

    @classmethod
    def fail(cls, code: str, error: str, message: Optional[str] = None) -> "ServiceResponse":
        return cls(success=False, code=code, error=error, message=message or error)


class RequestStats(BaseModel):
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    fulfilled: int = 0
    urgent: int = 0
