"""Shared test fixtures for the wallet provisioning test suite."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import pytest

from wallet_provisioning.config.settings import (
    AppConfig,
    DatabaseConfig,
    DatabaseEngine,
    ProvisioningConfig,
    StoreConfig,
    StoreEngine,
)
from wallet_provisioning.provider.models import (
    AccessToken,
    ChallengeState,
    ChallengeStatus,
    UserBootstrap,
    Wallet,
    WalletRequestResult,
)

if TYPE_CHECKING:
    from collections.abc import Callable


IDENTITY = "user@example.com"


class FakeProvider:
    """In-process stand-in for ProviderClient with a call log.

    ``create_responses`` is consumed in order; each entry is either a
    WalletRequestResult to return or an exception to raise. When
    ``creates_wallet`` is set, every create call makes that wallet visible in
    ``wallets`` before answering, which models a request that succeeded on the
    provider even if the client never hears about it.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []
        self.user_exists = False
        self.init_challenge: str | None = None
        self.wallets: list[Wallet] = []
        self.creates_wallet: Wallet | None = None
        self.create_responses: list[WalletRequestResult | Exception] = []
        self.list_errors: list[Exception] = []
        self.tokens_issued = 0

    @property
    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]

    def count(self, name: str) -> int:
        return self.call_names.count(name)

    async def create_or_initialize_user(self, identity: str) -> UserBootstrap:
        self.calls.append(("create_or_initialize_user", identity))
        await asyncio.sleep(0)
        return UserBootstrap(identity=identity, exists=self.user_exists)

    async def get_user_token(self, identity: str) -> AccessToken:
        self.tokens_issued += 1
        token = AccessToken(
            user_token=f"token-{self.tokens_issued}",
            encryption_key=f"key-{self.tokens_issued}",
            issued_at=float(self.tokens_issued),
        )
        self.calls.append(("get_user_token", identity, token.user_token))
        await asyncio.sleep(0)
        return token

    async def initialize_user(self, identity: str, token: AccessToken) -> str | None:
        self.calls.append(("initialize_user", identity, token.user_token))
        await asyncio.sleep(0)
        return self.init_challenge

    async def create_wallet(
        self, identity: str, token: AccessToken, idempotency_key: str
    ) -> WalletRequestResult:
        self.calls.append(("create_wallet", identity, token.user_token, idempotency_key))
        await asyncio.sleep(0)
        if self.creates_wallet is not None and self.creates_wallet not in self.wallets:
            self.wallets.append(self.creates_wallet)
        response = self.create_responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def list_user_wallets(self, identity: str) -> list[Wallet]:
        self.calls.append(("list_user_wallets", identity))
        await asyncio.sleep(0)
        if self.list_errors:
            raise self.list_errors.pop(0)
        return list(self.wallets)

    async def get_challenge_status(self, challenge_id: str) -> ChallengeStatus:
        self.calls.append(("get_challenge_status", challenge_id))
        return ChallengeStatus(challenge_id=challenge_id, state=ChallengeState.COMPLETE)


class FakeSecureModule:
    """Secure challenge module that answers synchronously (or never)."""

    def __init__(
        self,
        *,
        error: Any = None,
        result: Any = None,
        respond: bool = True,
        on_execute: Callable[[str], None] | None = None,
    ) -> None:
        self.error = error
        self.result = result
        self.respond = respond
        self.on_execute = on_execute
        self.executed: list[str] = []
        self.authentications: list[tuple[str, str]] = []

    def set_authentication(self, user_token: str, encryption_key: str) -> None:
        self.authentications.append((user_token, encryption_key))

    def execute(self, challenge_id: str, callback: Callable[[Any, Any], None]) -> None:
        self.executed.append(challenge_id)
        if self.on_execute is not None:
            self.on_execute(challenge_id)
        if self.respond:
            callback(self.error, self.result)


@pytest.fixture
def wallet() -> Wallet:
    return Wallet(id="w1", address="0xabc", blockchain="APTOS-TESTNET")


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def provisioning_config() -> ProvisioningConfig:
    """Workflow settings without sleeps."""
    return ProvisioningConfig(confirm_interval=0, recovery_timeout=1.0)


@pytest.fixture
def app_config() -> AppConfig:
    """Provide a test AppConfig with an in-memory database."""
    return AppConfig(
        db=DatabaseConfig(
            engine=DatabaseEngine.SQLITE,
            dsn="sqlite+aiosqlite:///:memory:",
        ),
        provisioning=ProvisioningConfig(confirm_interval=0),
        store=StoreConfig(engine=StoreEngine.DATABASE),
    )


@pytest.fixture
def make_module() -> type[FakeSecureModule]:
    """Factory for fake secure modules: ``make_module(error=..., on_execute=...)``."""
    return FakeSecureModule


@pytest.fixture
def memory_store():
    from wallet_provisioning.credentials.memory import MemoryCredentialStore

    return MemoryCredentialStore()


@pytest.fixture
def make_orchestrator(provider, memory_store, provisioning_config):
    """Build an orchestrator around the fake provider and the memory store."""
    from wallet_provisioning.challenge.executor import ChallengeExecutorAdapter
    from wallet_provisioning.provisioning.orchestrator import ProvisioningOrchestrator

    def build(module: FakeSecureModule, **overrides: Any) -> ProvisioningOrchestrator:
        config = overrides.pop("config", provisioning_config)
        timeout = overrides.pop("challenge_timeout", 1.0)
        return ProvisioningOrchestrator(
            provider,
            ChallengeExecutorAdapter(module, timeout=timeout),
            memory_store,
            config=config,
            **overrides,
        )

    return build
