"""
Exception hierarchy for Venting Vault.

Provides structured error handling with specific error types for the
conversation, moderation, persistence and audio components.
"""

import functools
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


class VentingVaultError(Exception):
    """Base exception for all Venting Vault errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        component: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.component = component

    def __str__(self) -> str:
        """String representation of the error."""
        base_msg = f"[{self.component or 'VentingVault'}] {self.message}"
        if self.error_code:
            base_msg = f"[{self.error_code}] {base_msg}"
        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "component": self.component,
            "details": self.details,
        }


class ConfigurationError(VentingVaultError):
    """Exception raised when configuration is invalid or missing."""

    pass


class TransportError(VentingVaultError):
    """Exception raised when a backend call fails or returns a malformed payload."""

    pass


class ParseError(VentingVaultError):
    """Exception raised when a backend payload cannot be parsed."""

    pass


class PersistenceError(VentingVaultError):
    """Exception raised when the durable store cannot be read or written."""

    pass


class AudioError(VentingVaultError):
    """Exception raised when the audio subsystem fails."""

    pass


class PermissionDeniedError(AudioError):
    """Exception raised when microphone access has not been granted."""

    def __init__(self, resource: str = "microphone", **kwargs: Any) -> None:
        super().__init__(
            f"Permission denied for {resource}",
            error_code="PERMISSION_DENIED",
            details={"resource": resource},
            **kwargs,
        )


class RecordingStateError(AudioError):
    """Exception raised on an invalid voice capture transition."""

    def __init__(self, action: str, state: str, **kwargs: Any) -> None:
        super().__init__(
            f"Cannot {action} while recording state is {state}",
            error_code="INVALID_RECORDING_STATE",
            details={"action": action, "state": state},
            **kwargs,
        )


class AudioPlaybackError(AudioError):
    """Exception raised when a voice message cannot be played."""

    pass


class ValidationError(VentingVaultError):
    """Exception raised when input validation fails."""

    def __init__(self, field: str, value: Any, reason: str, **kwargs: Any) -> None:
        super().__init__(
            f"Validation failed for field '{field}': {reason}",
            error_code="VALIDATION_ERROR",
            details={
                "field": field,
                "value": str(value),
                "reason": reason,
            },
            **kwargs,
        )


# Error handling utilities


def handle_persistence_error(func: F) -> F:
    """Decorator converting storage failures into PersistenceError."""

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except PersistenceError:
            raise
        except (OSError, ValueError, TypeError) as e:
            raise PersistenceError(
                message=f"Storage error in {func.__name__}: {str(e)}",
                error_code="PERSISTENCE_ERROR",
                component=func.__name__,
            ) from e

    return wrapper  # type: ignore
