"""Datastore — async SQLAlchemy engine and sessions."""

from __future__ import annotations

from wallet_provisioning.datastore.client import Datastore, create_engine

__all__ = ["Datastore", "create_engine"]
