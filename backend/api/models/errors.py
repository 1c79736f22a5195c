"""
Error bodies returned by the booth API.

Every failure renders as ``{"error": ..., "code": ...}``. Quick-buy sign-in
failures add ``requireAuth`` so the booth can open its sign-in sheet.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """Body of every non-2xx booth response except webhook replies."""

    model_config = ConfigDict(populate_by_name=True)

    error: str
    code: Optional[str] = None
    require_auth: Optional[bool] = Field(default=None, alias="requireAuth")

    def render(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class ValidationErrorResponse(BaseModel):
    """Malformed request body or query parameters (400)."""

    error: str = "Invalid booth request"
    code: str = "INVALID_REQUEST"
    detail: list[dict]
