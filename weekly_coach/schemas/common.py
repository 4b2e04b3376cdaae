"""
Shared schema primitives used across the API.
"""
from typing import Any, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error envelope returned for all 4xx/5xx responses."""
    success: bool = False
    code: str
    error: str
    details: Optional[dict[str, Any]] = None
    validationErrors: Optional[list[dict[str, Any]]] = None
