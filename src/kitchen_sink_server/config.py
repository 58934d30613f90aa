"""Server configuration.

Values come from environment variables (prefix ``KITCHEN_SINK_``) and can be
overridden by CLI options. ``PORT`` is honoured as a fallback for hosting
platforms that inject it.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any

from .errors import ConfigError

ENV_PREFIX = "KITCHEN_SINK_"
_TRUE_VALUES = ("1", "true", "yes")
_FALSE_VALUES = ("0", "false", "no", "")


class ProbePolicy(str, Enum):
    """How to answer a POST against the stream-open path."""

    REJECT = "reject"  # 405, steers the client back to GET
    PERMIT = "permit"  # 200 with an empty body


@dataclass(frozen=True)
class ServerConfig:
    """Runtime configuration for the HTTP surface and sessions."""

    host: str = "0.0.0.0"
    port: int = 8000
    public_url: str | None = None
    sse_path: str = "/mcp"
    message_path: str = "/mcp/messages"
    probe_policy: ProbePolicy = ProbePolicy.REJECT
    flush_headers: bool = True
    heartbeat_interval: float = 15.0
    max_body_bytes: int = 4 * 1024 * 1024
    widget_path: Path | None = None
    widget_required: bool = False
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        for name in ("sse_path", "message_path"):
            value = getattr(self, name)
            if not value.startswith("/") or value == "/":
                raise ConfigError(f"{name} must be an absolute, non-root path: {value!r}")
        if self.sse_path.rstrip("/") == self.message_path.rstrip("/"):
            raise ConfigError("sse_path and message_path must differ")
        if not 0 < self.port < 65536:
            raise ConfigError(f"port out of range: {self.port}")
        if self.heartbeat_interval < 0:
            raise ConfigError("heartbeat_interval cannot be negative")
        if self.max_body_bytes <= 0:
            raise ConfigError("max_body_bytes must be positive")

    @property
    def endpoint_base(self) -> str:
        """URL prefix announced to clients in the endpoint frame."""
        if self.public_url:
            return f"{self.public_url.rstrip('/')}{self.message_path}"
        return self.message_path

    def endpoint_for(self, session_id: str) -> str:
        """Message-submit URL for one session."""
        return f"{self.endpoint_base}?sessionId={session_id}"

    def with_overrides(self, **overrides: Any) -> ServerConfig:
        """Return a copy with non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ServerConfig:
        """Build a config from environment variables."""
        env = os.environ if environ is None else environ
        kwargs: dict[str, Any] = {}

        def get(name: str) -> str | None:
            return env.get(ENV_PREFIX + name)

        if (host := get("HOST")) is not None:
            kwargs["host"] = host

        port = get("PORT") or env.get("PORT")
        if port:
            kwargs["port"] = _parse_int("PORT", port)

        if public_url := get("PUBLIC_URL"):
            kwargs["public_url"] = public_url
        if sse_path := get("SSE_PATH"):
            kwargs["sse_path"] = sse_path
        if message_path := get("MESSAGE_PATH"):
            kwargs["message_path"] = message_path

        if (policy := get("PROBE_POLICY")) is not None:
            try:
                kwargs["probe_policy"] = ProbePolicy(policy.lower())
            except ValueError:
                raise ConfigError(
                    f"{ENV_PREFIX}PROBE_POLICY must be one of "
                    f"{[p.value for p in ProbePolicy]}, got {policy!r}"
                ) from None

        if (flush := get("FLUSH_HEADERS")) is not None:
            kwargs["flush_headers"] = _parse_bool("FLUSH_HEADERS", flush)

        if interval := get("HEARTBEAT_INTERVAL"):
            try:
                kwargs["heartbeat_interval"] = float(interval)
            except ValueError:
                raise ConfigError(
                    f"{ENV_PREFIX}HEARTBEAT_INTERVAL must be a number, got {interval!r}"
                ) from None

        if max_body := get("MAX_BODY_BYTES"):
            kwargs["max_body_bytes"] = _parse_int("MAX_BODY_BYTES", max_body)

        if widget := get("WIDGET_PATH"):
            kwargs["widget_path"] = Path(widget)
        if (required := get("WIDGET_REQUIRED")) is not None:
            kwargs["widget_required"] = _parse_bool("WIDGET_REQUIRED", required)

        if level := get("LOG_LEVEL"):
            kwargs["log_level"] = level.upper()

        return cls(**kwargs)


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigError(f"{ENV_PREFIX}{name} must be a boolean, got {value!r}")


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name} must be an integer, got {value!r}") from None
