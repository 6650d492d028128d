"""Run configuration, sourced from the environment and overridable by CLI flags."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any, Mapping, Optional

from .client import RegistryEndpoint

DEFAULT_REGISTRY_URL = "http://localhost:5000"
DEFAULT_KEEP_LAST = 2

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


class ConfigError(ValueError):
    """Invalid configuration value."""


def parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {value!r}")


def parse_int(name: str, value: str) -> int:
    try:
        return int(value.strip())
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from e


def parse_list(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class Config:
    """Cleanup configuration."""

    registry_url: str = DEFAULT_REGISTRY_URL
    username: str = ""
    password: str = field(default="", repr=False)
    keep_last: int = DEFAULT_KEEP_LAST
    dry_run: bool = False
    strict: bool = False
    halt_on_delete_unsupported: bool = False
    repositories: tuple[str, ...] = ()
    log_level: str = "info"
    log_format: str = "console"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> Config:
        """Build a configuration from environment variables.

        Environment variables:
            REGISTRY_URL: Registry base URL (default: http://localhost:5000)
            REGISTRY_USERNAME, REGISTRY_PASSWORD: Basic auth, used only when both are set
            KEEP_LAST: Images to keep per repository (default: 2)
            DRY_RUN, STRICT, HALT_ON_DELETE_UNSUPPORTED: Boolean switches
            REPOSITORIES: Comma separated repositories to restrict the run to
            LOG_LEVEL, LOG_FORMAT: Logging setup
        """
        env = os.environ if environ is None else environ
        return cls(
            registry_url=env.get("REGISTRY_URL") or DEFAULT_REGISTRY_URL,
            username=env.get("REGISTRY_USERNAME", ""),
            password=env.get("REGISTRY_PASSWORD", ""),
            keep_last=parse_int("KEEP_LAST", env["KEEP_LAST"]) if env.get("KEEP_LAST") else DEFAULT_KEEP_LAST,
            dry_run=parse_bool("DRY_RUN", env.get("DRY_RUN", "")),
            strict=parse_bool("STRICT", env.get("STRICT", "")),
            halt_on_delete_unsupported=parse_bool(
                "HALT_ON_DELETE_UNSUPPORTED", env.get("HALT_ON_DELETE_UNSUPPORTED", "")
            ),
            repositories=parse_list(env.get("REPOSITORIES", "")),
            log_level=(env.get("LOG_LEVEL") or "info").lower(),
            log_format=(env.get("LOG_FORMAT") or "console").lower(),
        )

    def with_overrides(self, **overrides: Any) -> Config:
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @property
    def endpoint(self) -> RegistryEndpoint:
        return RegistryEndpoint(self.registry_url, self.username, self.password)
