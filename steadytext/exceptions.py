"""
Exceptions for SteadyText

Small error taxonomy for the stabilization engine:
- Lifecycle misuse (recording into an idle or stopped session)
- Invalid configuration
- OCR backend failures
"""

from typing import Optional


class SteadyTextError(Exception):
    """Base exception for SteadyText errors."""

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

    def __str__(self) -> str:
        if self.detail:
            return f"{self.message} ({self.detail})"
        return self.message


class InvalidOperationError(SteadyTextError):
    """An engine or session method was called in the wrong lifecycle state."""

    def __init__(self, message: str, detail: Optional[str] = None):
        super().__init__(
            message=message,
            code="INVALID_OPERATION",
            detail=detail,
        )


class ConfigurationError(SteadyTextError):
    """Settings failed validation."""

    def __init__(self, setting: str, detail: str):
        super().__init__(
            message=f"Invalid setting '{setting}'",
            code="CONFIGURATION_ERROR",
            detail=detail,
        )
        self.setting = setting


class OCRProviderError(SteadyTextError):
    """OCR backend is unavailable or failed to initialize."""

    def __init__(self, provider: str, detail: Optional[str] = None):
        super().__init__(
            message=f"OCR provider '{provider}' is unavailable",
            code="OCR_PROVIDER_ERROR",
            detail=detail,
        )
        self.provider = provider
