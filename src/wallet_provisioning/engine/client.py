"""ProvisioningEngine — composition root owning the provisioning services."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from wallet_provisioning.config.settings import StoreEngine

if TYPE_CHECKING:
    from wallet_provisioning.challenge.executor import SecureChallengeModule
    from wallet_provisioning.config.settings import AppConfig
    from wallet_provisioning.credentials.store import CredentialStore
    from wallet_provisioning.datastore.client import Datastore
    from wallet_provisioning.metrics.collector import ProvisioningMetrics
    from wallet_provisioning.provider.client import ProviderClient
    from wallet_provisioning.provider.models import Wallet
    from wallet_provisioning.provisioning.orchestrator import ProvisioningOrchestrator

logger = logging.getLogger(__name__)

# Error messages
_ERR_NOT_INITIALIZED = "Engine not initialized. Call initialize() first."


class ProvisioningEngine:
    """Owns the provider client, credential store and orchestrator.

    Provides lifecycle management; the secure challenge module is supplied by
    the host application since the ceremony runs on the user's device.
    """

    def __init__(self, config: AppConfig, *, challenge_module: SecureChallengeModule) -> None:
        """Initialize engine with configuration.

        Args:
            config: Application configuration.
            challenge_module: Client-side module that runs challenge ceremonies.
        """
        self._config = config
        self._challenge_module = challenge_module
        self._initialized = False

        self._datastore: Datastore | None = None
        self._store: CredentialStore | None = None
        self._provider: ProviderClient | None = None
        self._metrics: ProvisioningMetrics | None = None
        self._orchestrator: ProvisioningOrchestrator | None = None

    async def initialize(self) -> None:
        """Open the datastore, connect the provider and wire the orchestrator.

        Raises:
            RuntimeError: If already initialized.
        """
        if self._initialized:
            msg = "Engine already initialized"
            raise RuntimeError(msg)

        # Import here to avoid circular deps
        from wallet_provisioning.challenge.classification import AdvisoryRules
        from wallet_provisioning.challenge.executor import ChallengeExecutorAdapter
        from wallet_provisioning.credentials.models import Base
        from wallet_provisioning.credentials.store import create_credential_store
        from wallet_provisioning.datastore.client import Datastore
        from wallet_provisioning.metrics.collector import ProvisioningMetrics
        from wallet_provisioning.provider.client import ProviderClient
        from wallet_provisioning.provisioning.guard import SessionGuard
        from wallet_provisioning.provisioning.orchestrator import ProvisioningOrchestrator

        if self._config.metrics.enabled:
            self._metrics = ProvisioningMetrics()

        if self._config.store.engine == StoreEngine.DATABASE:
            self._datastore = Datastore(self._config.db)
            await self._datastore.open(base=Base)
        self._store = create_credential_store(self._config.store, self._datastore)

        self._provider = ProviderClient(self._config.provider, metrics=self._metrics)
        await self._provider.connect()

        challenge = self._config.challenge
        adapter = ChallengeExecutorAdapter(
            self._challenge_module,
            timeout=challenge.timeout,
            rules=AdvisoryRules.with_extra(challenge.advisory_codes, challenge.advisory_phrases),
        )
        self._orchestrator = ProvisioningOrchestrator(
            self._provider,
            adapter,
            self._store,
            SessionGuard(),
            config=self._config.provisioning,
            metrics=self._metrics,
        )

        self._initialized = True
        logger.info(
            "Provisioning engine ready (provider=%s, store=%s)",
            self._config.provider.url,
            self._config.store.engine,
        )

    async def close(self) -> None:
        """Shut down connections.

        Can be called multiple times (idempotent).
        """
        if not self._initialized:
            return

        self._orchestrator = None
        self._store = None
        self._metrics = None

        if self._provider is not None:
            await self._provider.close()
            self._provider = None

        if self._datastore is not None:
            await self._datastore.close()
            self._datastore = None

        self._initialized = False

    async def __aenter__(self) -> ProvisioningEngine:
        await self.initialize()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def provision_wallet(self, identity: str) -> Wallet:
        """Provision (or return the existing) wallet for *identity*."""
        return await self.orchestrator.provision_wallet(identity)

    async def lookup_wallet(self, identity: str) -> Wallet | None:
        """Find the identity's wallet without creating one.

        Checks the credential store first, then the provider's wallet list;
        a wallet found at the provider is written back to the store.
        """
        record = await self.store.get(identity)
        if record.wallet is not None:
            return record.wallet
        wallets = await self.provider.list_user_wallets(identity)
        if not wallets:
            return None
        wallet = wallets[0]
        await self.store.put(identity, wallet=wallet)
        logger.info("Stored wallet %s found at provider for %s", wallet.id, identity)
        return wallet

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def is_initialized(self) -> bool:
        """Check if the engine is initialized."""
        return self._initialized

    @property
    def config(self) -> AppConfig:
        """Get the application configuration."""
        return self._config

    @property
    def datastore(self) -> Datastore | None:
        """The datastore, or None when the memory store is configured."""
        return self._datastore

    @property
    def store(self) -> CredentialStore:
        if self._store is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._store

    @property
    def provider(self) -> ProviderClient:
        if self._provider is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._provider

    @property
    def orchestrator(self) -> ProvisioningOrchestrator:
        if self._orchestrator is None:
            raise RuntimeError(_ERR_NOT_INITIALIZED)
        return self._orchestrator

    @property
    def metrics(self) -> ProvisioningMetrics | None:
        """Metrics sink, or None when metrics are disabled."""
        return self._metrics
