"""Tests for the lazy, single-flight database connection."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from vitruvi.db import connection


@pytest.fixture
def fake_establish(monkeypatch):
    """Replace the real connect step with a slow, counting fake."""
    calls = {"count": 0, "fail_first": False}
    engine = AsyncMock(name="engine")

    async def _establish(url):
        calls["count"] += 1
        await asyncio.sleep(0.01)
        if calls["fail_first"] and calls["count"] == 1:
            raise OSError("connection refused")
        return engine

    monkeypatch.setattr(connection, "_establish_engine", _establish)
    monkeypatch.setattr(connection, "_engine", None)
    monkeypatch.setattr(connection, "_session_factory", None)
    monkeypatch.setattr(connection, "_pending", None)
    calls["engine"] = engine
    return calls


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_attempt(fake_establish):
    engines = await asyncio.gather(*(connection.connect_db() for _ in range(5)))

    assert fake_establish["count"] == 1
    assert all(e is fake_establish["engine"] for e in engines)
    assert connection._pending is None
    await connection.close_db()


@pytest.mark.asyncio
async def test_failed_attempt_is_cleared(fake_establish):
    fake_establish["fail_first"] = True

    with pytest.raises(OSError):
        await connection.connect_db()
    assert connection._pending is None
    assert connection._engine is None

    engine = await connection.connect_db()

    assert engine is fake_establish["engine"]
    assert fake_establish["count"] == 2
    await connection.close_db()


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_cancel_shared_attempt(fake_establish):
    first = asyncio.ensure_future(connection.connect_db())
    second = asyncio.ensure_future(connection.connect_db())
    await asyncio.sleep(0)
    first.cancel()

    engine = await second

    assert engine is fake_establish["engine"]
    assert first.cancelled()
    assert fake_establish["count"] == 1
    await connection.close_db()


@pytest.mark.asyncio
async def test_engine_is_reused_after_connect(fake_establish):
    await connection.connect_db()
    await connection.connect_db()

    assert fake_establish["count"] == 1
    await connection.close_db()
    assert connection._engine is None
