from __future__ import annotations

import os
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from civiccare.core.config.io import atomic_write_json, ensure_dirs, quarantine_corrupt, read_json_file
from civiccare.core.config.models import ClientConfig
from civiccare.core.config.paths import ConfigFsPaths
from civiccare.core.errors import ConfigError


ENV_API_BASE_URL = "CIVICCARE_API_BASE_URL"


class ConfigManager:
    def __init__(self, *, fs: Optional[ConfigFsPaths] = None, logger=None, read_only: bool = False, environ: Optional[Dict[str, str]] = None):
        self.fs = fs or ConfigFsPaths(".")
        self.logger = logger
        self.read_only = read_only
        self._environ = environ if environ is not None else os.environ
        self._cfg: Optional[ClientConfig] = None

    # ---------- public API ----------
    def load(self) -> ClientConfig:
        """
        Read config/client.json, creating it with defaults when missing.
        Corrupt JSON is moved to backups and defaults are used instead.
        """
        if not self.read_only:
            ensure_dirs(self.fs.config_dir, self.fs.backups_dir)

        raw = self._read_raw()
        try:
            cfg = ClientConfig.model_validate(raw)
        except PydanticValidationError as e:
            raise ConfigError(f"client.json invalid: {e.error_count()} error(s).", errors=e.errors(include_url=False)) from e

        override = str(self._environ.get(ENV_API_BASE_URL) or "").strip()
        if override:
            try:
                cfg = ClientConfig.model_validate({**cfg.model_dump(), "api_base_url": override})
            except PydanticValidationError as e:
                raise ConfigError(f"{ENV_API_BASE_URL} invalid: {override!r}") from e

        self._cfg = cfg
        return cfg

    def get(self) -> ClientConfig:
        if self._cfg is None:
            raise ConfigError("Config not loaded.")
        return self._cfg

    def save(self, data: Dict[str, Any]) -> ClientConfig:
        """
        Validate then write atomically. Invalid data is never written.
        """
        if self.read_only:
            raise ConfigError("Config manager is read-only.")
        if not isinstance(data, dict):
            raise ConfigError("Config data must be an object.")
        try:
            cfg = ClientConfig.model_validate(data)
        except PydanticValidationError as e:
            raise ConfigError(f"client.json invalid: {e.error_count()} error(s).", errors=e.errors(include_url=False)) from e
        atomic_write_json(self.fs.client, cfg.model_dump(mode="json"))
        return self.load()

    def state_dir(self) -> str:
        return self.fs.resolve(self.get().storage.state_dir)

    def log_dir(self) -> str:
        return self.fs.resolve(self.get().logging.log_dir)

    # ---- internals ----
    def _read_raw(self) -> Dict[str, Any]:
        path = self.fs.client
        rr = read_json_file(path)
        if rr.ok:
            return rr.data
        if rr.error == "missing":
            if not self.read_only:
                atomic_write_json(path, ClientConfig().model_dump(mode="json"))
            return {}
        if rr.error and (rr.error.startswith("corrupt_json") or rr.error == "not_object"):
            moved = None if self.read_only else quarantine_corrupt(path, self.fs.backups_dir)
            if self.logger:
                self.logger.warning(f"client.json unreadable ({rr.error}); using defaults. Moved to: {moved}")
            if not self.read_only:
                atomic_write_json(path, ClientConfig().model_dump(mode="json"))
            return {}
        raise ConfigError(f"Unable to read client.json: {rr.error}")
