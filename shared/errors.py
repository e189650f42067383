"""
Shared error handling for the schema cache layer.
"""

from typing import Dict, Any, Optional


class CacheLayerException(Exception):
    """Base exception for the cache layer."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a loggable mapping."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.details,
        }


class CacheClientError(CacheLayerException):
    """A backing key-value store operation failed.

    ``reason`` is human readable; ``cause`` keeps the store's native error so
    nothing above the adapter layer has to know the store's exception types.
    """

    def __init__(
        self,
        reason: str,
        cause: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.reason = reason
        self.cause = cause
        merged = dict(details or {})
        if cause is not None:
            merged.setdefault("cause", repr(cause))
        super().__init__("CACHE_CLIENT_ERROR", reason, merged)


class CacheSchemaError(CacheLayerException):
    """A cached payload and its schema disagree."""

    def __init__(
        self,
        code: str,
        reason: str,
        cause: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.reason = reason
        self.cause = cause
        super().__init__(code, reason, details)


class SchemaDecodeError(CacheSchemaError):
    """Stored payload does not match the schema requested for the read."""

    def __init__(
        self,
        reason: str = "Cached payload does not match schema",
        cause: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__("SCHEMA_DECODE_ERROR", reason, cause, details)


class SchemaEncodeError(CacheSchemaError):
    """Value handed to the cache does not satisfy its schema."""

    def __init__(
        self,
        reason: str = "Value does not match schema",
        cause: Optional[BaseException] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__("SCHEMA_ENCODE_ERROR", reason, cause, details)


class CacheConfigurationError(CacheLayerException):
    """Invalid cache configuration."""

    def __init__(self, message: str = "Invalid cache configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CACHE_CONFIGURATION_ERROR", message, details)
