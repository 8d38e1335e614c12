"""
Runtime Error Taxonomy
======================

Consistent error types for the model artifact runtime.

Usage:
    from tabmodel.errors import (
        ArtifactError,
        CorruptArtifactError,
        UnsupportedVersionError,
        InvalidPayloadError,
    )

    try:
        model = Model.from_path("heart_disease.tbma")
    except ArtifactError.UnsupportedVersion as e:
        logger.warning(e.to_dict())

Errors are only raised at two boundaries:
- Artifact load (ArtifactError)
- Monitoring event encoding (CodecError)

Input anomalies at predict time are NEVER errors; the feature encoder
resolves them to documented defaults.
"""

from typing import Optional, Dict, Any
from datetime import datetime


class TabModelError(Exception):
    """Base runtime error class."""

    def __init__(
        self,
        message: str,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": datetime.now().isoformat(),
        }


# =============================================================================
# ARTIFACT ERRORS (load time only)
# =============================================================================

class ArtifactError(TabModelError):
    """Raised when an artifact cannot be loaded."""

    def __init__(self, message: str = "Artifact load failed", error_code: str = "ARTIFACT_ERROR", **details):
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )


class UnsupportedVersionError(ArtifactError):
    """Artifact format version is not readable by this runtime."""

    def __init__(self, version: int, supported: tuple = (), **details):
        self.version = version
        self.supported = tuple(supported)
        details["version"] = version
        details["supported"] = list(self.supported)
        super().__init__(
            message=f"Unsupported artifact format version {version} (supported: {list(self.supported)})",
            error_code="UNSUPPORTED_VERSION",
            **details,
        )


class CorruptArtifactError(ArtifactError):
    """Artifact bytes are structurally invalid."""

    def __init__(self, message: str = "Corrupt artifact", **details):
        super().__init__(
            message=message,
            error_code="CORRUPT_ARTIFACT",
            **details,
        )


ArtifactError.UnsupportedVersion = UnsupportedVersionError
ArtifactError.Corrupt = CorruptArtifactError


# =============================================================================
# CODEC ERRORS (monitoring events)
# =============================================================================

class CodecError(TabModelError):
    """Raised when a monitoring event cannot be encoded or decoded."""

    def __init__(self, message: str = "Codec error", error_code: str = "CODEC_ERROR", **details):
        super().__init__(
            message=message,
            error_code=error_code,
            details=details,
        )


class InvalidPayloadError(CodecError):
    """Event output or true value contradicts the model's task."""

    def __init__(self, message: str = "Invalid monitoring payload", **details):
        super().__init__(
            message=message,
            error_code="INVALID_PAYLOAD",
            **details,
        )


CodecError.InvalidPayload = InvalidPayloadError


# =============================================================================
# TRANSPORT ERRORS (optional HTTP layer)
# =============================================================================

class TransportError(TabModelError):
    """Monitoring collector could not be reached or rejected the payload."""

    def __init__(self, message: str = "Monitoring transport failed", url: str = None, status_code: int = None, **details):
        if url:
            details["url"] = url
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(
            message=message,
            error_code="TRANSPORT_ERROR",
            details=details,
        )

