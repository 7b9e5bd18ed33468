"""
Base response schemas for standardized API responses.

Every endpoint answers with the same envelope: ``success`` and ``message``
always, ``data`` on success and ``error`` on failure.
"""

from math import ceil
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class SuccessResponse(BaseModel):
    """Standard success response for operations."""

    success: bool = Field(default=True, description="Operation success status")
    message: str = Field(description="Human-readable success message")
    data: Optional[Any] = Field(default=None, description="Operation payload")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "message": "Session booked successfully",
                "data": {"session": {"id": "01HF4G12ABCDEF3456789XYZAB", "status": "scheduled"}},
            }
        }
    )


class ErrorDetail(BaseModel):
    """Machine readable part of an error response."""

    code: str = Field(description="Error code for programmatic handling")
    details: Dict[str, Any] = Field(default_factory=dict, description="Structured error context")


class ErrorResponse(BaseModel):
    """Standard error response."""

    success: bool = Field(default=False)
    message: str = Field(description="Human-readable error message")
    error: Optional[ErrorDetail] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": False,
                "message": "Time slot conflicts with an existing session",
                "error": {
                    "code": "BOOKING_CONFLICT",
                    "details": {"conflictingSessions": [{"id": "01HF4G12ABCDEF3456789XYZAB"}]},
                },
            }
        }
    )


class PaginationMeta(BaseModel):
    page: int = Field(ge=1)
    limit: int = Field(ge=1)
    total: int = Field(ge=0)
    pages: int = Field(ge=0)

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationMeta":
        return cls(page=page, limit=limit, total=total, pages=ceil(total / limit) if total else 0)


def success_response(message: str, data: Optional[Any] = None) -> SuccessResponse:
    return SuccessResponse(message=message, data=data)
