"""
Error envelope models.

The backend reports failures in one of two shapes. Newer endpoints use
RFC 7807 problem details; older ones still wrap errors in a
{code, message, result} envelope.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, model_validator


class ProblemDetail(BaseModel):
    """RFC 7807 problem detail as returned by the backend."""
    model_config = ConfigDict(extra="ignore")

    type: Optional[str] = None
    title: Optional[str] = None
    status: Optional[int] = None
    detail: Optional[str] = None
    instance: Optional[str] = None
    code: Optional[int] = None

    @model_validator(mode='after')
    def require_some_content(self) -> 'ProblemDetail':
        """An object with none of the problem fields is not a problem detail."""
        if self.title is None and self.detail is None and self.status is None:
            raise ValueError("Not a problem detail")
        return self


class ApiResponse(BaseModel):
    """Legacy response envelope."""
    model_config = ConfigDict(extra="ignore")

    code: int
    message: Optional[str] = None
    result: Optional[Any] = None
