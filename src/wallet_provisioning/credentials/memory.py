"""In-memory credential store (tests and ephemeral use)."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

from wallet_provisioning.credentials.store import UNSET, CredentialRecord, _Unset

if TYPE_CHECKING:
    from wallet_provisioning.provider.models import AccessToken, Wallet


class MemoryCredentialStore:
    """Dict-backed credential store. Contents are lost on restart."""

    def __init__(self) -> None:
        self._records: dict[str, CredentialRecord] = {}

    async def get(self, identity: str) -> CredentialRecord:  # noqa: ASYNC910
        """Return the record for *identity* (empty if unknown)."""
        return self._records.get(identity, CredentialRecord(identity=identity))

    async def put(  # noqa: ASYNC910
        self,
        identity: str,
        *,
        token: AccessToken | None | _Unset = UNSET,
        wallet: Wallet | None | _Unset = UNSET,
    ) -> CredentialRecord:
        """Update the given fields, leaving the others untouched."""
        record = self._records.get(identity, CredentialRecord(identity=identity))
        if token is not UNSET:
            record = replace(record, token=token)
        if wallet is not UNSET:
            record = replace(record, wallet=wallet)
        self._records[identity] = record
        return record

    async def delete(self, identity: str) -> None:  # noqa: ASYNC910
        """Forget everything about *identity*."""
        self._records.pop(identity, None)

    def __len__(self) -> int:
        return len(self._records)
