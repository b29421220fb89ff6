"""
Error envelopes shared by every endpoint.

Declared on the routes' ``responses=`` so the OpenAPI document shows the
error contract next to the success payload.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Body of every non-validation error: domain, HTTP and internal."""

    error: bool = Field(default=True, description="Always ``true`` for errors")
    message: str = Field(
        ...,
        description="Human-readable error description",
        examples=["Account '0xabc' is not the fund owner"],
    )
    details: Optional[Any] = Field(default=None, description="Extra context, when available")


class ValidationErrorDetail(BaseModel):
    field: str = Field(
        ...,
        description="Path to the invalid field, parts joined by ' -> '",
        examples=["body -> amount"],
    )
    message: str = Field(..., examples=["Input should be greater than 0"])


class ValidationErrorResponse(BaseModel):
    """Body of a 422 raised by request validation."""

    error: bool = Field(default=True, description="Always ``true`` for errors")
    message: str = Field(default="Validation failed")
    details: List[ValidationErrorDetail] = Field(..., description="Per-field validation failures")
