# src/config/settings.py - v2
"""Typed configuration loaded from the environment / .env via pydantic-settings.

Every knob of a compression run lives here and the resulting Settings value
is passed explicitly into the pipeline. API keys are held as a SecretStr so
they never show up in reprs or log lines.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when configuration is missing or internally inconsistent."""


class Settings(BaseSettings):
    """Application settings (env prefix ``TINYSHRINK_``)."""

    model_config = SettingsConfigDict(
        env_prefix="TINYSHRINK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # === Remote service ===
    api_keys: SecretStr = SecretStr("")
    api_hosts: str = "api.tinify.com"
    shrink_path: str = "/shrink"
    request_timeout_s: float | None = 60.0
    verify_tls: bool = True

    # === Scan policy ===
    max_size_bytes: int = 5 * 1024 * 1024
    file_extensions: str = ".jpg,.png,.webp"

    # === Scheduling ===
    batch_size: int = 5
    backoff_initial_s: int = 10
    backoff_step_s: int = 10
    backoff_cap_s: int = 60
    max_retries: int | None = None

    # === Artifacts ===
    fingerprint_filename: str = "image.json"
    report_filename: str = "图片压缩比.md"

    # === Logging ===
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "text"
    log_file: Path | None = None
    log_rotation: str = "10MB"
    log_retention: int = 5

    @model_validator(mode="after")
    def validate_config_consistency(self) -> Settings:
        """Reject settings the scheduler cannot run with."""
        errors: list[str] = []

        if self.batch_size < 1:
            errors.append("BATCH_SIZE must be >= 1")
        if self.max_size_bytes <= 0:
            errors.append("MAX_SIZE_BYTES must be > 0")
        if self.backoff_initial_s < 0 or self.backoff_step_s < 0:
            errors.append("BACKOFF_INITIAL_S and BACKOFF_STEP_S must be >= 0")
        if self.backoff_cap_s < self.backoff_initial_s:
            errors.append("BACKOFF_CAP_S must be >= BACKOFF_INITIAL_S")
        if self.max_retries is not None and self.max_retries < 0:
            errors.append("MAX_RETRIES must be >= 0")
        if not self.api_host_list:
            errors.append("API_HOSTS must name at least one host")

        if errors:
            raise ConfigurationError("; ".join(errors))

        return self

    # --- Helpers ---

    @property
    def api_key_list(self) -> list[str]:
        """Parse the comma-separated key pool."""
        raw = self.api_keys.get_secret_value()
        return [k.strip() for k in raw.split(",") if k.strip()]

    @property
    def api_host_list(self) -> list[str]:
        """Parse the comma-separated host pool."""
        return [h.strip() for h in self.api_hosts.split(",") if h.strip()]

    @property
    def file_extension_list(self) -> list[str]:
        """Normalized extensions: lower-case, leading dot."""
        exts = []
        for ext in self.file_extensions.split(","):
            ext = ext.strip().lower()
            if not ext:
                continue
            exts.append(ext if ext.startswith(".") else f".{ext}")
        return exts

    def with_extra_keys(self, keys: list[str]) -> Settings:
        """Return a copy whose key pool also contains ``keys`` (order kept, no duplicates)."""
        merged = list(dict.fromkeys([*self.api_key_list, *keys]))
        return self.model_copy(update={"api_keys": SecretStr(",".join(merged))})


def load_secret_keys(path: Path) -> list[str]:
    """Read an extra-keys file: a JSON array of API key strings.

    Raises:
        ConfigurationError: If the file is missing, not JSON, or not a list of strings.
    """
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Cannot read secret file {path}: {e}") from e

    if not isinstance(data, list) or not all(isinstance(k, str) for k in data):
        raise ConfigurationError(f"Secret file {path} must contain a JSON array of strings")
    return [k.strip() for k in data if k.strip()]


def load_settings(**overrides: object) -> Settings:
    """Load settings from the environment with optional overrides.

    Raises:
        ConfigurationError: If configuration is internally inconsistent.
    """
    return Settings(**overrides)  # type: ignore[arg-type]
