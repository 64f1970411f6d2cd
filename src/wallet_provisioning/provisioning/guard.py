"""Session guard — at most one provisioning workflow per identity."""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from wallet_provisioning.errors.provisioning_errors import AlreadyInProgressError

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)


class Lease:
    """Exclusive right to provision one identity.

    Usable as a sync or async context manager; ``release`` is idempotent.
    """

    def __init__(self, guard: SessionGuard, identity: str) -> None:
        self._guard = guard
        self._identity = identity
        self._released = False

    @property
    def identity(self) -> str:
        return self._identity

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Give the identity back to the guard."""
        if self._released:
            return
        self._released = True
        self._guard._release(self._identity)

    def __enter__(self) -> Lease:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()

    async def __aenter__(self) -> Lease:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()


class SessionGuard:
    """Rejects a second concurrent provisioning attempt for the same identity.

    The only shared mutable structure across concurrent workflows. The
    check-and-set in :meth:`acquire` has no suspension point and is also
    protected by a lock, so it is atomic per identity for coroutines and
    threads alike.
    """

    def __init__(self) -> None:
        self._active: set[str] = set()
        self._lock = threading.Lock()

    def acquire(self, identity: str) -> Lease:
        """Take the lease for *identity*.

        Raises:
            AlreadyInProgressError: If a workflow for *identity* is running.
        """
        with self._lock:
            if identity in self._active:
                logger.warning("Rejected concurrent provisioning for %s", identity)
                raise AlreadyInProgressError(identity)
            self._active.add(identity)
        return Lease(self, identity)

    def is_active(self, identity: str) -> bool:
        """Whether a workflow for *identity* holds the lease."""
        with self._lock:
            return identity in self._active

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._active)

    def _release(self, identity: str) -> None:
        with self._lock:
            self._active.discard(identity)
