"""Tests for the background cleanup job."""

import asyncio

import pytest

from src.features.auth import jobs


class TestCleanupLoop:
    async def test_runs_sweeps_until_cancelled(self, monkeypatch):
        calls = 0

        async def fake_cleanup():
            nonlocal calls
            calls += 1
            if calls == 3:
                raise asyncio.CancelledError
            return 1, 2

        async def no_sleep(_):
            return None

        monkeypatch.setattr(jobs, "run_cleanup_once", fake_cleanup)
        monkeypatch.setattr(jobs.asyncio, "sleep", no_sleep)

        with pytest.raises(asyncio.CancelledError):
            await jobs.run_cleanup_loop(interval_minutes=1)

        assert calls == 3

    async def test_errors_do_not_stop_the_loop(self, monkeypatch):
        calls = 0

        async def flaky_cleanup():
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("database unavailable")
            raise asyncio.CancelledError

        async def no_sleep(_):
            return None

        monkeypatch.setattr(jobs, "run_cleanup_once", flaky_cleanup)
        monkeypatch.setattr(jobs.asyncio, "sleep", no_sleep)

        with pytest.raises(asyncio.CancelledError):
            await jobs.run_cleanup_loop(interval_minutes=1)

        assert calls == 2
