"""Tests for server configuration."""

from __future__ import annotations

from pathlib import Path

import pytest

from kitchen_sink_server.config import ProbePolicy, ServerConfig
from kitchen_sink_server.errors import ConfigError


class TestServerConfig:
    """Tests for defaults and validation."""

    def test_defaults(self) -> None:
        config = ServerConfig()
        assert config.sse_path == "/mcp"
        assert config.message_path == "/mcp/messages"
        assert config.probe_policy is ProbePolicy.REJECT
        assert config.flush_headers is True
        assert config.public_url is None

    def test_relative_endpoint(self) -> None:
        assert ServerConfig().endpoint_for("abc") == "/mcp/messages?sessionId=abc"

    def test_absolute_endpoint(self) -> None:
        config = ServerConfig(public_url="https://example.test/")
        assert config.endpoint_for("abc") == "https://example.test/mcp/messages?sessionId=abc"

    @pytest.mark.parametrize("path", ["mcp", "/", ""])
    def test_invalid_paths(self, path: str) -> None:
        with pytest.raises(ConfigError):
            ServerConfig(sse_path=path)

    def test_paths_must_differ(self) -> None:
        with pytest.raises(ConfigError, match="differ"):
            ServerConfig(sse_path="/events", message_path="/events/")

    def test_invalid_port(self) -> None:
        with pytest.raises(ConfigError, match="port"):
            ServerConfig(port=0)

    def test_config_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            ServerConfig(max_body_bytes=0)

    def test_with_overrides_ignores_none(self) -> None:
        config = ServerConfig()
        updated = config.with_overrides(port=9000, host=None)
        assert updated.port == 9000
        assert updated.host == config.host
        assert config.with_overrides(host=None) is config


class TestFromEnv:
    """Tests for environment loading."""

    def test_empty_environment(self) -> None:
        assert ServerConfig.from_env({}) == ServerConfig()

    def test_reads_prefixed_variables(self) -> None:
        config = ServerConfig.from_env(
            {
                "KITCHEN_SINK_HOST": "127.0.0.1",
                "KITCHEN_SINK_PORT": "9001",
                "KITCHEN_SINK_PUBLIC_URL": "https://example.test",
                "KITCHEN_SINK_PROBE_POLICY": "PERMIT",
                "KITCHEN_SINK_FLUSH_HEADERS": "no",
                "KITCHEN_SINK_HEARTBEAT_INTERVAL": "2.5",
                "KITCHEN_SINK_MAX_BODY_BYTES": "1024",
                "KITCHEN_SINK_WIDGET_PATH": "/tmp/widget.html",
                "KITCHEN_SINK_WIDGET_REQUIRED": "true",
                "KITCHEN_SINK_LOG_LEVEL": "debug",
            }
        )
        assert config.host == "127.0.0.1"
        assert config.port == 9001
        assert config.public_url == "https://example.test"
        assert config.probe_policy is ProbePolicy.PERMIT
        assert config.flush_headers is False
        assert config.heartbeat_interval == 2.5
        assert config.max_body_bytes == 1024
        assert config.widget_path == Path("/tmp/widget.html")
        assert config.widget_required is True
        assert config.log_level == "DEBUG"

    def test_plain_port_fallback(self) -> None:
        assert ServerConfig.from_env({"PORT": "7000"}).port == 7000
        assert (
            ServerConfig.from_env({"PORT": "7000", "KITCHEN_SINK_PORT": "7001"}).port == 7001
        )

    @pytest.mark.parametrize(
        "name,value",
        [
            ("KITCHEN_SINK_PORT", "eighty"),
            ("KITCHEN_SINK_PROBE_POLICY", "maybe"),
            ("KITCHEN_SINK_FLUSH_HEADERS", "sometimes"),
            ("KITCHEN_SINK_HEARTBEAT_INTERVAL", "soon"),
        ],
    )
    def test_invalid_values(self, name: str, value: str) -> None:
        with pytest.raises(ConfigError, match=name):
            ServerConfig.from_env({name: value})
