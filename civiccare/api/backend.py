from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Dict, Optional

from civiccare.api.services import AuthService
from civiccare.core.errors import ApiError, ValidationError
from civiccare.core.session.models import UserProfile, coerce_profile


@dataclass(frozen=True)
class LoginResult:
    token: str
    user: UserProfile


def _unwrap(res: Any) -> Any:
    if isinstance(res, dict) and isinstance(res.get("data"), dict) and "id" not in res:
        return res["data"]
    return res


@dataclass
class AuthBackend:
    """
    Async adapter over AuthService for SessionManager.

    requests is blocking; each call runs in a worker thread so the event
    loop stays free during backoff and teardown.
    """

    service: AuthService

    async def fetch_profile(self, token: str) -> UserProfile:
        res = await asyncio.to_thread(self.service.get_profile, token=token)
        return coerce_profile(_unwrap(res))

    async def logout(self, token: Optional[str]) -> Any:
        return await asyncio.to_thread(self.service.logout, token=token)

    async def login(self, identifier: str, password: str) -> LoginResult:
        if not identifier or not password:
            raise ValidationError("Identifier and password are required.")
        res = await asyncio.to_thread(self.service.login, identifier, password)
        return self._login_result(res)

    async def register(self, fields: Dict[str, Any], files: Optional[Dict[str, Any]] = None) -> LoginResult:
        res = await asyncio.to_thread(self.service.register, fields, files=files)
        return self._login_result(res)

    @staticmethod
    def _login_result(res: Any) -> LoginResult:
        body = _unwrap(res)
        if not isinstance(body, dict):
            raise ApiError("Unexpected login response.")
        token = body.get("token") or body.get("key")
        user = body.get("user")
        if not token or user is None:
            raise ApiError("Login response is missing the token or user.")
        return LoginResult(token=str(token), user=coerce_profile(user))
