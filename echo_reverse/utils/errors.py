"""
Custom exceptions for Echo Reverse.

Device and decode failures are surfaced to the caller; precondition
violations are absorbed at the controller boundary.
"""

from typing import Any, Optional


class EchoReverseError(Exception):
    """Base exception for all Echo Reverse errors."""

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (Details: {self.details})"
        return self.message


class DeviceUnavailableError(EchoReverseError):
    """Raised when an audio device cannot be opened (permission, missing device)."""

    def __init__(
        self,
        message: str,
        device: Optional[Any] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.device = device
        self.original_error = original_error
        self.details = {
            "device": device,
            "original_error": str(original_error) if original_error else None,
        }


class DecodeError(EchoReverseError):
    """Raised when captured audio cannot be decoded into PCM."""

    def __init__(
        self,
        message: str,
        byte_count: Optional[int] = None,
        original_error: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.byte_count = byte_count
        self.original_error = original_error
        self.details = {
            "byte_count": byte_count,
            "original_error": str(original_error) if original_error else None,
        }


class EncodeError(EchoReverseError):
    """Raised when a buffer cannot be written to a WAV container."""

    def __init__(self, message: str, data_bytes: Optional[int] = None):
        super().__init__(message)
        self.data_bytes = data_bytes
        self.details = {"data_bytes": data_bytes}


class PreconditionError(EchoReverseError):
    """Raised when an operation needs audio but none is loaded."""

    def __init__(self, operation: str):
        super().__init__(
            f"Cannot {operation}: no audio",
            details={"operation": operation},
        )
        self.operation = operation


class ConfigurationError(EchoReverseError):
    """Raised when configuration is invalid or missing."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message)
        self.config_key = config_key
        self.details = {"config_key": config_key}


class AudioContextError(EchoReverseError):
    """Raised when the audio device context is used outside its lifecycle."""
