from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as PydanticValidationError

from civiccare.core.errors import ValidationError


class UserProfile(BaseModel):
    """
    Current user as reported by the backend.

    Cached records written by older clients may carry only some fields, and
    the backend may add fields; both are accepted.
    """

    model_config = ConfigDict(extra="allow")

    id: int
    username: Optional[str] = None
    email: Optional[str] = None
    full_name: Optional[str] = None
    total_points: Optional[int] = None
    is_verified: Optional[bool] = None

    def to_json(self) -> str:
        return self.model_dump_json(exclude_unset=True)

    def merged(self, partial: Mapping[str, Any]) -> "UserProfile":
        data = self.model_dump(exclude_unset=True)
        data.update(dict(partial))
        return coerce_profile(data)


def coerce_profile(raw: Any) -> UserProfile:
    if isinstance(raw, UserProfile):
        return raw
    if not isinstance(raw, Mapping):
        raise ValidationError("User profile must be an object.", got=type(raw).__name__)
    try:
        return UserProfile.model_validate(dict(raw))
    except PydanticValidationError as e:
        raise ValidationError("User profile is malformed.", errors=e.errors(include_url=False)) from e


def parse_cached_user(raw: Optional[str]) -> Optional[UserProfile]:
    """
    Parse a cached user record. None means absent; malformed raises ValidationError.
    """
    if raw is None or raw == "":
        return None
    try:
        obj = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise ValidationError("Cached user record is not valid JSON.") from e
    return coerce_profile(obj)


class SessionStatus(str, Enum):
    UNINITIALIZED = "UNINITIALIZED"
    RESTORING = "RESTORING"
    READY = "READY"


@dataclass
class Session:
    token: Optional[str] = None
    user: Optional[UserProfile] = None
    status: SessionStatus = SessionStatus.UNINITIALIZED


class SessionView(BaseModel):
    """Read-only view handed to consumers."""

    model_config = ConfigDict(frozen=True)

    user: Optional[UserProfile] = None
    is_authenticated: bool = False
    is_loading: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user": self.user.model_dump(exclude_unset=True) if self.user is not None else None,
            "is_authenticated": self.is_authenticated,
            "is_loading": self.is_loading,
        }


class OutcomeKind(str, Enum):
    VERIFIED = "VERIFIED"
    UNAUTHORIZED = "UNAUTHORIZED"
    UNREACHABLE = "UNREACHABLE"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class SessionOutcome:
    kind: OutcomeKind
    attempts: int
    user: Optional[UserProfile] = None
    last_error: Optional[BaseException] = None
