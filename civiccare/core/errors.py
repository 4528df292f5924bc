from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from civiccare.core.events import redact


class Severity(str, Enum):
    INFO = "INFO"
    WARN = "WARN"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class CivicError(Exception):
    code: str
    user_message: str
    severity: Severity = Severity.ERROR
    recoverable: bool = True
    context: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.user_message)

    def __str__(self) -> str:
        return self.user_message

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "user_message": self.user_message,
            "severity": self.severity.value,
            "recoverable": bool(self.recoverable),
            "context": redact(self.context or {}),
        }


# ---- Core types ----
class ConfigError(CivicError):
    def __init__(self, user_message: str = "Configuration error.", **ctx: Any):
        super().__init__("config_error", user_message, severity=Severity.CRITICAL, recoverable=False, context=ctx)


class StorageError(CivicError):
    def __init__(self, user_message: str = "Local storage error.", **ctx: Any):
        super().__init__("storage_error", user_message, severity=Severity.ERROR, recoverable=True, context=ctx)


class ValidationError(CivicError):
    """
    Malformed input caught locally: a bad form field, a 400 from the backend,
    or a cached record that does not parse.
    """

    def __init__(self, user_message: str = "Invalid request.", *, field_errors: Optional[Dict[str, Any]] = None, **ctx: Any):
        super().__init__("validation_error", user_message, severity=Severity.WARN, recoverable=False, context=ctx)
        self.field_errors: Dict[str, Any] = dict(field_errors or {})


class ApiError(CivicError):
    def __init__(self, user_message: str = "Request failed.", *, status: Optional[int] = None, **ctx: Any):
        super().__init__("api_error", user_message, severity=Severity.ERROR, recoverable=True, context=ctx)
        self.status = status


class AuthError(ApiError):
    """Credential rejected by the server (401/403). Never retried."""

    def __init__(self, user_message: str = "Unauthorized.", *, status: int = 401, **ctx: Any):
        super().__init__(user_message, status=status, **ctx)
        self.code = "auth_error"
        self.severity = Severity.WARN
        self.recoverable = False


class TransientError(ApiError):
    """Network or server unavailability; worth retrying."""

    def __init__(self, user_message: str = "Service temporarily unavailable.", *, status: Optional[int] = None, cause: Optional[BaseException] = None, **ctx: Any):
        super().__init__(user_message, status=status, **ctx)
        self.code = "transient_error"
        self.cause = cause
