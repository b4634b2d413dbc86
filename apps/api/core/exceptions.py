"""
Custom exception classes and error handling.

HTTP-facing exceptions give consistent error responses across the API.
Pipeline exceptions never leave the worker: they select the fallback path.
"""
from fastapi import HTTPException, status
from typing import Optional, Dict, Any


class APIException(HTTPException):
    """Base API exception with consistent structure."""

    def __init__(
        self,
        status_code: int,
        detail: str,
        error_code: Optional[str] = None,
        headers: Optional[Dict[str, Any]] = None
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.error_code = error_code


class NotFoundError(APIException):
    """Resource not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found: {identifier}",
            error_code="NOT_FOUND"
        )


class GenerationError(Exception):
    """The external generation call failed (transport, timeout, non-2xx, empty body)."""


class RecommendationParseError(ValueError):
    """Model output could not be turned into a structured recommendation."""
