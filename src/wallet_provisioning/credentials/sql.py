"""Database-backed credential store (survives restarts)."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import delete

from wallet_provisioning.credentials.models import ProvisionedCredential
from wallet_provisioning.credentials.store import UNSET, CredentialRecord, _Unset
from wallet_provisioning.provider.models import AccessToken, Wallet

if TYPE_CHECKING:
    from wallet_provisioning.datastore.client import Datastore


def _to_record(identity: str, row: ProvisionedCredential | None) -> CredentialRecord:
    if row is None:
        return CredentialRecord(identity=identity)
    token = None
    if row.user_token:
        token = AccessToken(
            user_token=row.user_token,
            encryption_key=row.encryption_key or "",
            issued_at=row.token_issued_at or 0.0,
        )
    wallet = Wallet.from_dict(row.wallet) if row.wallet else None
    return CredentialRecord(identity=identity, token=token, wallet=wallet)


class SQLCredentialStore:
    """Credential store on the ``provisioned_credentials`` table."""

    def __init__(self, datastore: Datastore) -> None:
        self._datastore = datastore

    async def get(self, identity: str) -> CredentialRecord:
        """Return the record for *identity* (empty if unknown)."""
        async with self._datastore.session() as session:
            row = await session.get(ProvisionedCredential, identity)
            return _to_record(identity, row)

    async def put(
        self,
        identity: str,
        *,
        token: AccessToken | None | _Unset = UNSET,
        wallet: Wallet | None | _Unset = UNSET,
    ) -> CredentialRecord:
        """Upsert the given fields, leaving the others untouched."""
        async with self._datastore.session() as session:
            row = await session.get(ProvisionedCredential, identity)
            if row is None:
                row = ProvisionedCredential(identity=identity)
                session.add(row)
            if not isinstance(token, _Unset):
                row.user_token = token.user_token if token else None
                row.encryption_key = token.encryption_key if token else None
                row.token_issued_at = token.issued_at if token else None
            if not isinstance(wallet, _Unset):
                row.wallet = wallet.to_dict() if wallet else None
            await session.commit()
            return _to_record(identity, row)

    async def delete(self, identity: str) -> None:
        """Forget everything about *identity*."""
        async with self._datastore.session() as session:
            await session.execute(
                delete(ProvisionedCredential).where(ProvisionedCredential.identity == identity)
            )
            await session.commit()
