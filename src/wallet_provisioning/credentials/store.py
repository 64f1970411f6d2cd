"""Credential store abstraction with database and in-memory backends.

Pure key-value persistence of ``{token, tokenIssuedAt, wallet}`` per identity;
no business logic lives here. Writes for one identity are serialized by the
session guard, so backends only need to be safe across identities.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from wallet_provisioning.config.settings import StoreEngine

if TYPE_CHECKING:
    from wallet_provisioning.config.settings import StoreConfig
    from wallet_provisioning.datastore.client import Datastore
    from wallet_provisioning.provider.models import AccessToken, Wallet


class _Unset(enum.Enum):
    UNSET = "UNSET"


# Marks a field that ``put`` should leave untouched
UNSET = _Unset.UNSET


@dataclass(frozen=True)
class CredentialRecord:
    """What the store knows about one identity."""

    identity: str
    token: AccessToken | None = None
    wallet: Wallet | None = None

    @property
    def encryption_key(self) -> str | None:
        return self.token.encryption_key if self.token is not None else None

    @property
    def token_issued_at(self) -> float | None:
        return self.token.issued_at if self.token is not None else None

    @property
    def has_wallet(self) -> bool:
        return self.wallet is not None


class CredentialStore(Protocol):
    """Protocol for credential store backends."""

    async def get(self, identity: str) -> CredentialRecord: ...

    async def put(
        self,
        identity: str,
        *,
        token: AccessToken | None | _Unset = UNSET,
        wallet: Wallet | None | _Unset = UNSET,
    ) -> CredentialRecord: ...

    async def delete(self, identity: str) -> None: ...


def create_credential_store(
    config: StoreConfig,
    datastore: Datastore | None = None,
) -> CredentialStore:
    """Build the credential store selected by *config*.

    Raises:
        ValueError: If the database backend is selected without a datastore,
            or the engine is unsupported.
    """
    from wallet_provisioning.credentials.memory import MemoryCredentialStore
    from wallet_provisioning.credentials.sql import SQLCredentialStore

    if config.engine == StoreEngine.MEMORY:
        return MemoryCredentialStore()
    if config.engine == StoreEngine.DATABASE:
        if datastore is None:
            msg = "Database credential store requires an open datastore"
            raise ValueError(msg)
        return SQLCredentialStore(datastore)
    msg = f"Unsupported credential store engine: {config.engine}"
    raise ValueError(msg)
