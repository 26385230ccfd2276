"""
Exceptions for ShelfWise.

The core is fail-soft: most of these are raised at storage/collaborator
boundaries and caught one layer up, where they are logged and turned into
an empty result or a fallback value.
"""

from typing import Optional


class ShelfWiseException(Exception):
    """Base exception for ShelfWise errors."""
    
    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        detail: Optional[str] = None,
    ):
        self.message = message
        self.code = code
        self.detail = detail
        super().__init__(message)
    
    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "detail": self.detail,
        }


class StorageError(ShelfWiseException):
    """Cache or counter store failure."""
    
    def __init__(self, operation: str, detail: Optional[str] = None):
        super().__init__(
            message=f"Storage operation failed: {operation}",
            code="STORAGE_ERROR",
            detail=detail,
        )


class ExternalServiceError(ShelfWiseException):
    """External search or LLM service failure."""
    
    def __init__(self, service: str, detail: Optional[str] = None):
        super().__init__(
            message=f"{service} service unavailable",
            code="EXTERNAL_SERVICE_ERROR",
            detail=detail,
        )


class RateLimitError(ShelfWiseException):
    """Rate limit exceeded."""
    
    def __init__(self, api_name: str, limit: int, window: str):
        super().__init__(
            message=f"Rate limit exceeded for {api_name}",
            code="RATE_LIMIT_EXCEEDED",
            detail=f"Maximum {limit} requests per {window}",
        )


class ConfigurationError(ShelfWiseException):
    """Invalid or missing configuration."""
    
    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            message=message,
            code="CONFIGURATION_ERROR",
            detail=detail,
        )
