"""Configuration for ado-link.

Two layers live here:

- :class:`AdoLinkSettings`: process settings loaded from environment variables
  and a local `.env` file (where the config file lives, log level, API version).
- :class:`ConfigStore`: the persisted key-value file holding the organization
  URL and the personal access token, written by `ado-link init` / `config set`.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol
from urllib.parse import urlparse

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ado_link.errors import ConfigurationMissing, UnknownConfigKey

logger = logging.getLogger(__name__)

ORG_URL_KEY = "org_url"
PAT_KEY = "pat"
KNOWN_KEYS: tuple[str, ...] = (ORG_URL_KEY, PAT_KEY)
SECRET_KEYS: frozenset[str] = frozenset({PAT_KEY})


class AdoLinkSettings(BaseSettings):
    """Settings for the CLI process.

    Environment variables:
    - ADO_LINK_CONFIG_FILE      (optional)
    - LOG_LEVEL                 (optional)
    - ADO_LINK_API_VERSION      (optional)
    - ADO_LINK_TIMEOUT_SECONDS  (optional)

    Notes:
        Tests can override the env file via `AdoLinkSettings(_env_file=path)`.
    """

    config_file: Path = Field(
        default_factory=lambda: Path.home() / ".ado-link.json",
        validation_alias="ADO_LINK_CONFIG_FILE",
        description="File where the organization URL and PAT are persisted",
    )
    log_level: str = Field(
        default="WARNING",
        validation_alias="LOG_LEVEL",
        description="Root logging level",
    )
    api_version: str = Field(
        default="7.0",
        validation_alias="ADO_LINK_API_VERSION",
        description="Azure DevOps REST api-version",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        validation_alias="ADO_LINK_TIMEOUT_SECONDS",
        description="Per-request timeout for Azure DevOps calls",
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {value!r}")
        return level


class ConfigStore(Protocol):
    def get(self, key: str) -> str: ...

    def set(self, key: str, value: str) -> None: ...


def _check_key(key: str) -> None:
    if key not in KNOWN_KEYS:
        raise UnknownConfigKey(key)


class MemoryConfigStore:
    """Dict-backed store; nothing touches the disk."""

    def __init__(self, values: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(values or {})

    def get(self, key: str) -> str:
        return self._values.get(key, "")

    def set(self, key: str, value: str) -> None:
        _check_key(key)
        self._values[key] = value


class FileConfigStore:
    """JSON-file backed store. Every `set` rewrites the file."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._values = self._load()

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}

        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(
                "Config file is unreadable; treating as empty",
                extra={"path": str(self._path), "error": str(e)},
            )
            return {}

        if not isinstance(raw, dict):
            logger.warning(
                "Config file has unexpected shape; treating as empty",
                extra={"path": str(self._path)},
            )
            return {}

        return {str(k): str(v) for k, v in raw.items() if v is not None}

    def get(self, key: str) -> str:
        return self._values.get(key, "")

    def set(self, key: str, value: str) -> None:
        _check_key(key)
        self._values[key] = value
        self._save()

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps(self._values, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )
        # The file holds the PAT.
        try:
            os.chmod(self._path, 0o600)
        except OSError:
            logger.debug("Could not restrict config file permissions", extra={"path": str(self._path)})
        logger.debug("Config written", extra={"path": str(self._path)})


@dataclass(frozen=True, slots=True)
class Configuration:
    """Organization URL and PAT as read from a store."""

    org_url: str
    pat: str

    @classmethod
    def load(cls, store: ConfigStore) -> Configuration:
        return cls(org_url=store.get(ORG_URL_KEY).strip(), pat=store.get(PAT_KEY).strip())

    @property
    def organization_name(self) -> str:
        return organization_name(self.org_url)

    def require(self) -> Configuration:
        missing = [key for key, value in ((ORG_URL_KEY, self.org_url), (PAT_KEY, self.pat)) if not value]
        if missing:
            raise ConfigurationMissing(missing)
        return self


def organization_name(org_url: str) -> str:
    """Return the organization part of an organization URL.

    `https://dev.azure.com/contoso` and `https://contoso.visualstudio.com` both
    give `contoso`.
    """

    parsed = urlparse(org_url.strip())
    host = (parsed.hostname or "").lower()
    segments = [s for s in parsed.path.split("/") if s]

    if host.endswith(".visualstudio.com"):
        return host[: -len(".visualstudio.com")]
    if host == "dev.azure.com" and segments:
        return segments[0]
    return segments[-1] if segments else ""


def mask_secret(value: str) -> str:
    if not value:
        return ""
    if len(value) <= 4:
        return "*" * len(value)
    return "*" * (len(value) - 4) + value[-4:]
