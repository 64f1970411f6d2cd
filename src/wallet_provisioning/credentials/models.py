"""ProvisionedCredential model — persisted token and wallet per identity."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - SQLAlchemy needs this at runtime for Mapped[datetime]
from typing import Any

from sqlalchemy import JSON, DateTime, Float, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for credential models."""

    type_annotation_map = {  # noqa: RUF012
        dict[str, Any]: JSON,
    }


class TimestampMixin:
    """Created / updated timestamps."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class ProvisionedCredential(Base, TimestampMixin):
    """Flat credential record keyed by user identity.

    Rebuildable from the provider, so no schema versioning is kept.
    """

    __tablename__ = "provisioned_credentials"

    identity: Mapped[str] = mapped_column(
        String(320), primary_key=True, comment="User identity (typically an email)"
    )
    user_token: Mapped[str | None] = mapped_column(
        Text, nullable=True, default=None, comment="Last issued provider user token"
    )
    encryption_key: Mapped[str | None] = mapped_column(
        Text, nullable=True, default=None, comment="Encryption key issued with the token"
    )
    token_issued_at: Mapped[float | None] = mapped_column(
        Float, nullable=True, default=None, comment="Unix time the token was issued"
    )
    wallet: Mapped[dict[str, Any] | None] = mapped_column(
        JSON, nullable=True, default=None, comment="Provisioned wallet"
    )

    def __repr__(self) -> str:
        wallet_id = (self.wallet or {}).get("id", "")
        return f"<ProvisionedCredential identity={self.identity} wallet={wallet_id}>"
