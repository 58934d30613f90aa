"""Tests for the stream registry."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from unittest.mock import MagicMock

import pytest

from kitchen_sink_server.errors import DuplicateSessionError
from kitchen_sink_server.registry import StreamRegistry


def _session(session_id: str) -> MagicMock:
    session = MagicMock()
    session.session_id = session_id
    return session


class TestStreamRegistry:
    """Tests for insert/lookup/remove."""

    def test_insert_and_get(self) -> None:
        registry = StreamRegistry()
        session = _session("s1")

        registry.insert(session)

        assert registry.get("s1") is session
        assert "s1" in registry
        assert len(registry) == 1

    def test_get_unknown_returns_none(self) -> None:
        registry = StreamRegistry()
        assert registry.get("ghost") is None
        assert "ghost" not in registry

    def test_duplicate_insert_raises(self) -> None:
        registry = StreamRegistry()
        original = _session("s1")
        registry.insert(original)

        with pytest.raises(DuplicateSessionError):
            registry.insert(_session("s1"))

        assert registry.get("s1") is original

    def test_remove_is_idempotent(self) -> None:
        registry = StreamRegistry()
        session = _session("s1")
        registry.insert(session)

        assert registry.remove("s1") is session
        assert registry.remove("s1") is None
        assert registry.get("s1") is None

    def test_id_can_be_reused_after_removal(self) -> None:
        registry = StreamRegistry()
        registry.insert(_session("s1"))
        registry.remove("s1")

        registry.insert(_session("s1"))
        assert "s1" in registry

    def test_session_ids(self) -> None:
        registry = StreamRegistry()
        registry.insert(_session("a"))
        registry.insert(_session("b"))
        assert sorted(registry.session_ids()) == ["a", "b"]

    def test_drain_empties_registry(self) -> None:
        registry = StreamRegistry()
        registry.insert(_session("a"))
        registry.insert(_session("b"))

        drained = registry.drain()

        assert {s.session_id for s in drained} == {"a", "b"}
        assert len(registry) == 0

    def test_concurrent_inserts_and_removes(self) -> None:
        registry = StreamRegistry()
        ids = [f"s{i}" for i in range(200)]

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda i: registry.insert(_session(i)), ids))
        assert len(registry) == 200

        with ThreadPoolExecutor(max_workers=8) as pool:
            removed = list(pool.map(registry.remove, ids + ids))

        # Each id is removed exactly once
        assert sum(1 for r in removed if r is not None) == 200
        assert len(registry) == 0
