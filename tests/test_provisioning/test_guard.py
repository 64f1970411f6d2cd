"""Tests for the per-identity session guard."""

from __future__ import annotations

import pytest

from wallet_provisioning.errors.provisioning_errors import AlreadyInProgressError
from wallet_provisioning.provisioning.guard import SessionGuard


class TestSessionGuard:
    def test_acquire_and_release(self):
        guard = SessionGuard()
        lease = guard.acquire("a")
        assert guard.is_active("a") is True
        assert guard.active_count == 1
        lease.release()
        assert guard.is_active("a") is False
        assert lease.released is True

    def test_second_acquire_rejected(self):
        guard = SessionGuard()
        guard.acquire("a")
        with pytest.raises(AlreadyInProgressError) as exc_info:
            guard.acquire("a")
        assert exc_info.value.status_code == 409
        assert exc_info.value.identity == "a"

    def test_identities_independent(self):
        guard = SessionGuard()
        guard.acquire("a")
        guard.acquire("b")
        assert guard.active_count == 2

    def test_release_idempotent(self):
        guard = SessionGuard()
        lease = guard.acquire("a")
        lease.release()
        second = guard.acquire("a")
        # A stale lease must not free the new holder
        lease.release()
        assert guard.is_active("a") is True
        second.release()

    def test_context_manager_releases_on_error(self):
        guard = SessionGuard()
        with pytest.raises(RuntimeError), guard.acquire("a") as lease:
            assert lease.identity == "a"
            msg = "boom"
            raise RuntimeError(msg)
        assert guard.is_active("a") is False

    async def test_async_context_manager(self):
        guard = SessionGuard()
        async with guard.acquire("a"):
            assert guard.is_active("a") is True
        assert guard.is_active("a") is False
