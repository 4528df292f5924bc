from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SessionConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    max_attempts: int = Field(default=3, ge=1, le=10)
    backoff_seconds: float = Field(default=0.4, ge=0.0, le=30.0)
    token_key: str = "authToken"
    user_key: str = "authUser"


class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    state_dir: str = "state"
    watch: bool = False
    poll_interval_ms: int = Field(default=500, ge=50, le=60_000)


class LoggingConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    log_dir: str = "logs"
    event_log: str = "session_events.jsonl"


class ClientConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    config_version: int = Field(default=1, ge=1)
    api_base_url: str = "http://localhost:8000/api"
    request_timeout_seconds: float = Field(default=10.0, gt=0.0, le=300.0)
    session: SessionConfig = Field(default_factory=SessionConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("api_base_url")
    @classmethod
    def _http_url(cls, v: str) -> str:
        v = str(v or "").strip()
        if not (v.startswith("http://") or v.startswith("https://")):
            raise ValueError("api_base_url must start with http:// or https://")
        return v
