"""
Common schemas for API responses.
"""
from typing import Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Error response schema for domain errors."""

    detail: str
    code: Optional[str] = None
