from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional

import requests

from civiccare.core.errors import ApiError, AuthError, TransientError, ValidationError
from civiccare.core.events import redact


TRANSIENT_STATUSES = {408, 429}

_NETWORK_MESSAGE = "Network error: Unable to connect to server. Please check if the backend is running."


def _format_field_errors(body: Mapping[str, Any]) -> list[str]:
    messages: list[str] = []
    for name, errors in body.items():
        if isinstance(errors, list):
            messages.append(f"{name}: {', '.join(str(e) for e in errors)}")
        elif isinstance(errors, str):
            messages.append(f"{name}: {errors}")
    return messages


@dataclass
class ApiClient:
    """
    Thin JSON/multipart client for the CivicCare backend.

    The token is looked up per request through token_provider unless a call
    passes token= explicitly.
    """

    base_url: str = "http://localhost:8000/api"
    timeout_seconds: float = 10.0
    token_provider: Optional[Callable[[], Optional[str]]] = None
    http: Any = None
    logger: Any = None
    default_headers: Dict[str, str] = field(default_factory=lambda: {"Accept": "application/json"})

    def __post_init__(self) -> None:
        if self.http is None:
            self.http = requests.Session()

    def _url(self, endpoint: str) -> str:
        return f"{self.base_url.rstrip('/')}{endpoint}"

    def request(
        self,
        method: str,
        endpoint: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        data: Optional[Mapping[str, Any]] = None,
        files: Optional[Mapping[str, Any]] = None,
        token: Optional[str] = None,
        use_token: bool = True,
    ) -> Any:
        url = self._url(endpoint)
        headers = dict(self.default_headers)
        if files is None and data is None:
            headers["Content-Type"] = "application/json"
        if use_token:
            tok = token if token is not None else (self.token_provider() if self.token_provider else None)
            if tok:
                headers["Authorization"] = f"Token {tok}"
        clean_params = {k: v for k, v in (params or {}).items() if v is not None} or None
        clean_data = {k: v for k, v in data.items() if v is not None} if data is not None else None

        if self.logger:
            self.logger.info(f"API {method} {url} params={redact(clean_params or {})}")
        try:
            resp = self.http.request(
                method,
                url,
                params=clean_params,
                json=json,
                data=clean_data,
                files=files,
                headers=headers,
                timeout=self.timeout_seconds,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransientError(_NETWORK_MESSAGE, cause=e, url=url) from e

        return self._handle(resp, url)

    def get(self, endpoint: str, **kw: Any) -> Any:
        return self.request("GET", endpoint, **kw)

    def post(self, endpoint: str, **kw: Any) -> Any:
        return self.request("POST", endpoint, **kw)

    def put(self, endpoint: str, **kw: Any) -> Any:
        return self.request("PUT", endpoint, **kw)

    def delete(self, endpoint: str, **kw: Any) -> Any:
        return self.request("DELETE", endpoint, **kw)

    # ---- internals ----
    def _handle(self, resp: Any, url: str) -> Any:
        status = int(resp.status_code)
        if 200 <= status < 300:
            if status == 204 or not resp.content:
                return None
            try:
                return resp.json()
            except ValueError as e:
                raise ApiError("Backend returned a non-JSON response.", status=status, url=url) from e

        body = self._error_body(resp)
        if self.logger:
            self.logger.warning(f"API error {status} from {url}: {redact(body)}")

        if status in (401, 403):
            raise AuthError(self._message(body, resp) or "Unauthorized.", status=status, url=url)
        if status == 400 and body:
            messages = _format_field_errors(body)
            if messages:
                raise ValidationError(f"Validation errors: {'; '.join(messages)}", field_errors=body, url=url)
        message = self._message(body, resp)
        if status >= 500 or status in TRANSIENT_STATUSES:
            raise TransientError(message, status=status, url=url)
        raise ApiError(message, status=status, url=url)

    @staticmethod
    def _error_body(resp: Any) -> Dict[str, Any]:
        try:
            body = resp.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    @staticmethod
    def _message(body: Mapping[str, Any], resp: Any) -> str:
        msg = body.get("message") or body.get("detail")
        if msg:
            return str(msg)
        return f"HTTP {resp.status_code}: {getattr(resp, 'reason', '') or ''}".rstrip(": ").rstrip()
