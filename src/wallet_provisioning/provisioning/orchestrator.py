"""Provisioning orchestrator — drives a user identity to a usable wallet.

Steps, each a suspension point::

    create/initialize user → fresh token → wallet request
        → wallet returned directly, or
        → challenge ceremony → wallet list re-query
    → persist {token, wallet}

Wallet creation can succeed on the provider even when the client only sees a
timeout, and a challenge's completion signal can be lost. After any such
ambiguous failure the orchestrator asks the provider's wallet list before
deciding anything; it never blindly re-sends a creation request and never
reports failure while a wallet exists.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, TypeVar
from uuid import uuid4

from wallet_provisioning.challenge.executor import AdvisoryWarning, Fatal
from wallet_provisioning.config.settings import ProvisioningConfig
from wallet_provisioning.errors.provider_errors import (
    ProviderDataError,
    ProviderError,
    ProviderTransportError,
)
from wallet_provisioning.errors.provisioning_errors import (
    ChallengeTimeoutError,
    FatalProvisioningError,
    ProvisioningTimeout,
)
from wallet_provisioning.provisioning.guard import SessionGuard
from wallet_provisioning.provisioning.session import ProvisioningSession, ProvisioningState

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterator

    from wallet_provisioning.challenge.executor import ChallengeExecutorAdapter, ChallengeOutcome
    from wallet_provisioning.credentials.store import CredentialStore
    from wallet_provisioning.metrics.collector import ProvisioningMetrics
    from wallet_provisioning.provider.client import ProviderClient
    from wallet_provisioning.provider.models import AccessToken, Wallet

logger = logging.getLogger(__name__)

_S = ProvisioningState
T = TypeVar("T")


def _new_idempotency_key() -> str:
    return str(uuid4())


class _Ambiguous(Exception):  # noqa: N818
    """Internal signal: the outcome of a wallet-creating step is unknown."""

    def __init__(self, reason: str, cause: BaseException | None = None) -> None:
        super().__init__(reason)
        self.reason = reason
        self.cause = cause

    @property
    def timed_out(self) -> bool:
        if isinstance(self.cause, ChallengeTimeoutError):
            return True
        return isinstance(self.cause, ProviderTransportError) and self.cause.timed_out


class ProvisioningOrchestrator:
    """State machine that provisions one custodial wallet per identity.

    Usage::

        orchestrator = ProvisioningOrchestrator(provider, challenges, store)
        wallet = await orchestrator.provision_wallet("user@example.com")
    """

    def __init__(
        self,
        provider: ProviderClient,
        challenges: ChallengeExecutorAdapter,
        store: CredentialStore,
        guard: SessionGuard | None = None,
        *,
        config: ProvisioningConfig | None = None,
        challenge_timeout: float | None = None,
        metrics: ProvisioningMetrics | None = None,
        key_factory: Callable[[], str] = _new_idempotency_key,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            provider: Custodial provider client.
            challenges: Adapter around the client-side secure module.
            store: Credential store receiving the confirmed token and wallet.
            guard: Session guard; a private one is created when omitted.
            config: Workflow settings (attempts, confirmation polling).
            challenge_timeout: Overrides the adapter's default challenge timeout.
            metrics: Optional metrics sink.
            key_factory: Generates wallet-request idempotency keys.
        """
        self._provider = provider
        self._challenges = challenges
        self._store = store
        self._guard = guard or SessionGuard()
        self._config = config or ProvisioningConfig()
        self._challenge_timeout = challenge_timeout
        self._metrics = metrics
        self._key_factory = key_factory

    @property
    def guard(self) -> SessionGuard:
        return self._guard

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def provision_wallet(self, identity: str) -> Wallet:
        """Return the identity's wallet, creating it if necessary.

        Args:
            identity: User identity (typically an email).

        Returns:
            The confirmed wallet.

        Raises:
            ValueError: If *identity* is empty.
            AlreadyInProgressError: If a workflow for *identity* is running.
            ProvisioningTimeout: If the provider kept timing out.
            FatalProvisioningError: On any other irrecoverable failure.
        """
        if not identity:
            msg = "identity must be a non-empty string"
            raise ValueError(msg)

        lease = self._guard.acquire(identity)
        session = ProvisioningSession(identity=identity)
        async with lease:
            with self._track():
                try:
                    wallet = await self._run(session)
                except asyncio.CancelledError:
                    await self._recover_on_cancel(session)
                    self._record_outcome("cancelled")
                    raise
                except ProvisioningTimeout:
                    self._record_outcome("timeout")
                    raise
                except FatalProvisioningError:
                    self._record_outcome("fatal")
                    raise
        self._record_outcome("done")
        return wallet

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def _run(self, session: ProvisioningSession) -> Wallet:
        identity = session.identity

        record = await self._store.get(identity)
        if record.wallet is not None:
            logger.info("Wallet %s already provisioned for %s", record.wallet.id, identity)
            session.transition(_S.CONFIRMED)
            session.wallet = record.wallet
            session.transition(_S.DONE)
            return record.wallet

        existing = await self._bootstrap_user(session)
        session.transition(_S.USER_READY)
        if existing is not None:
            return await self._confirm(session, existing)

        while True:
            session.attempt += 1
            session.token = await self._fresh_token(session)
            session.transition(_S.TOKEN_READY)
            try:
                wallet = await self._attempt(session)
            except _Ambiguous as ambiguous:
                wallet = await self._recover(session, ambiguous)
                if wallet is None:
                    continue
            return await self._confirm(session, wallet)

    async def _bootstrap_user(self, session: ProvisioningSession) -> Wallet | None:
        """INIT → USER_READY. Returns a wallet if an existing user already has one."""
        identity = session.identity
        bootstrap = await self._step(
            session, "create user", self._provider.create_or_initialize_user(identity)
        )
        if not bootstrap.exists:
            logger.info("Created provider user for %s", identity)
            return None

        # Returning user: the steady-state lookup decides whether anything is left to do
        wallets = await self._step(
            session, "list wallets", self._provider.list_user_wallets(identity)
        )
        if wallets:
            logger.info("Existing user %s already holds wallet %s", identity, wallets[0].id)
            return wallets[0]

        token = await self._fresh_token(session)
        challenge_id = await self._step(
            session, "initialize user", self._provider.initialize_user(identity, token)
        )
        if challenge_id:
            logger.info("Initialization of %s issued challenge %s", identity, challenge_id)
            session.challenge_id = challenge_id
        return None

    async def _attempt(self, session: ProvisioningSession) -> Wallet:
        """TOKEN_READY → … → a wallet, or raise _Ambiguous / FatalProvisioningError."""
        if session.challenge_id is None:
            session.idempotency_key = self._key_factory()
            session.transition(_S.WALLET_REQUESTED)
            logger.info(
                "Requesting wallet for %s (attempt %d, key %s)",
                session.identity,
                session.attempt,
                session.idempotency_key,
            )
            assert session.token is not None
            try:
                result = await self._provider.create_wallet(
                    session.identity, session.token, session.idempotency_key
                )
            except ProviderTransportError as exc:
                raise _Ambiguous("wallet request outcome unknown", exc) from exc
            except ProviderError as exc:
                raise self._fatal(session, f"wallet request failed: {exc.message}", exc) from exc

            if result.wallet is not None:
                session.transition(_S.DIRECT_SUCCESS)
                return result.wallet
            session.challenge_id = result.challenge_id
            session.transition(_S.CHALLENGE_REQUIRED)
            # The wallet request consumed a suspension; the ceremony gets its own token
            session.token = await self._fresh_token(session)
        else:
            session.transition(_S.CHALLENGE_REQUIRED)

        return await self._run_challenge(session)

    async def _run_challenge(self, session: ProvisioningSession) -> Wallet:
        """CHALLENGE_REQUIRED → CHALLENGE_EXECUTING → CHALLENGE_RESOLVED → wallet."""
        challenge_id = session.challenge_id
        assert challenge_id is not None
        session.transition(_S.CHALLENGE_EXECUTING)
        # A challenge is consumed by its first execution
        session.challenge_id = None
        try:
            outcome: ChallengeOutcome = await self._challenges.execute(
                challenge_id, token=session.token, timeout=self._challenge_timeout
            )
        except ChallengeTimeoutError as exc:
            self._record_challenge("timeout")
            raise _Ambiguous("challenge completion unknown", exc) from exc

        if isinstance(outcome, Fatal):
            self._record_challenge("fatal")
            raise self._fatal(session, outcome.message or "challenge failed")
        if isinstance(outcome, AdvisoryWarning):
            logger.info(
                "Challenge %s reported advisory %s: %s", challenge_id, outcome.code, outcome.message
            )
            self._record_challenge("advisory")
        else:
            self._record_challenge("success")
        session.transition(_S.CHALLENGE_RESOLVED)

        if self._config.check_challenge_status:
            await self._corroborate(challenge_id)

        wallet = await self._await_wallet(session)
        if wallet is None:
            raise _Ambiguous("no wallet visible after challenge")
        return wallet

    async def _await_wallet(self, session: ProvisioningSession) -> Wallet | None:
        """Poll the wallet list; the challenge call itself never returns the wallet."""
        attempts = self._config.confirm_attempts
        for poll in range(1, attempts + 1):
            try:
                wallets = await self._provider.list_user_wallets(session.identity)
            except ProviderDataError as exc:
                raise self._fatal(
                    session, f"wallet lookup after challenge returned bad data: {exc.message}", exc
                ) from exc
            except ProviderError as exc:
                logger.warning(
                    "Wallet lookup after challenge failed for %s: %s (poll %d/%d)",
                    session.identity,
                    exc,
                    poll,
                    attempts,
                )
                wallets = []
            if wallets:
                return wallets[0]
            if poll < attempts and self._config.confirm_interval:
                await asyncio.sleep(self._config.confirm_interval)
        return None

    async def _corroborate(self, challenge_id: str) -> None:
        try:
            status = await self._provider.get_challenge_status(challenge_id)
        except ProviderError as exc:
            logger.debug("Could not check challenge %s status: %s", challenge_id, exc)
            return
        logger.info("Provider reports challenge %s as %s", challenge_id, status.state)

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    async def _recover(
        self, session: ProvisioningSession, ambiguous: _Ambiguous
    ) -> Wallet | None:
        """RECOVERABLE: ask the provider whether the side effect happened.

        Returns:
            The wallet if it exists, or None when another attempt is allowed.

        Raises:
            ProvisioningTimeout / FatalProvisioningError: When the retry budget
                is spent.
        """
        session.transition(_S.RECOVERABLE)
        logger.warning(
            "Ambiguous failure for %s (attempt %d): %s; probing wallet list",
            session.identity,
            session.attempt,
            ambiguous.cause or ambiguous.reason,
        )
        try:
            wallet = await self._recovery_lookup(session.identity)
        except ProviderDataError as exc:
            raise self._fatal(
                session, f"recovery lookup returned bad data: {exc.message}", exc
            ) from exc
        if wallet is not None:
            logger.info("Recovered wallet %s for %s", wallet.id, session.identity)
            return wallet

        if session.attempt < self._config.max_attempts:
            logger.warning(
                "No wallet found for %s; retrying with a new idempotency key", session.identity
            )
            return None

        message = f"{ambiguous.reason} after {session.attempt} attempt(s)"
        raise self._fatal(session, message, ambiguous.cause, timeout=ambiguous.timed_out)

    async def _recovery_lookup(self, identity: str) -> Wallet | None:
        """Look for the wallet; a failed lookup counts as absent.

        Raises:
            ProviderDataError: If the provider lists a wallet it cannot describe.
        """
        try:
            wallets = await self._provider.list_user_wallets(identity)
        except ProviderDataError:
            self._record_recovery("failed")
            raise
        except ProviderError as exc:
            logger.warning("Recovery lookup failed for %s: %s", identity, exc)
            self._record_recovery("failed")
            return None
        if not wallets:
            self._record_recovery("absent")
            return None
        self._record_recovery("recovered")
        return wallets[0]

    async def _recover_on_cancel(self, session: ProvisioningSession) -> None:
        """One last wallet lookup before abandoning a cancelled session."""
        if session.attempt == 0 or session.state.is_terminal:
            return
        try:
            wallet = await asyncio.wait_for(
                self._recovery_lookup(session.identity), timeout=self._config.recovery_timeout
            )
        except (TimeoutError, asyncio.CancelledError):
            logger.warning("Recovery lookup abandoned for cancelled session %s", session.identity)
            return
        except ProviderDataError as exc:
            logger.error("Recovery lookup for cancelled session %s: %s", session.identity, exc)
            return
        if wallet is None:
            return
        logger.info("Cancelled session for %s had created wallet %s", session.identity, wallet.id)
        session.wallet = wallet
        try:
            await self._store.put(session.identity, wallet=wallet)
        except Exception:
            logger.exception("Could not persist recovered wallet for %s", session.identity)

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def _confirm(self, session: ProvisioningSession, wallet: Wallet) -> Wallet:
        """→ CONFIRMED → DONE: persist and finish."""
        session.transition(_S.CONFIRMED)
        session.wallet = wallet
        try:
            if session.token is not None:
                await self._store.put(session.identity, token=session.token, wallet=wallet)
            else:
                await self._store.put(session.identity, wallet=wallet)
        except Exception as exc:
            raise self._fatal(
                session, f"wallet {wallet.id} provisioned but could not be stored", exc
            ) from exc
        session.transition(_S.DONE)
        logger.info("Wallet %s confirmed for %s", wallet.id, session.identity)
        return wallet

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _fresh_token(self, session: ProvisioningSession) -> AccessToken:
        return await self._step(
            session, "token request", self._provider.get_user_token(session.identity)
        )

    async def _step(
        self, session: ProvisioningSession, description: str, awaitable: Awaitable[T]
    ) -> T:
        """Await a non-ambiguous provider step; provider errors are fatal."""
        try:
            return await awaitable
        except ProviderError as exc:
            raise self._fatal(session, f"{description} failed: {exc.message}", exc) from exc

    def _fatal(
        self,
        session: ProvisioningSession,
        message: str,
        cause: BaseException | None = None,
        *,
        timeout: bool | None = None,
    ) -> FatalProvisioningError:
        """Move the session to FATAL and build the caller-facing error."""
        state = session.state.value
        if not session.is_terminal:
            session.transition(_S.FATAL)
        if timeout is None:
            timeout = isinstance(cause, ProviderTransportError) and cause.timed_out
        error_cls = ProvisioningTimeout if timeout else FatalProvisioningError
        logger.error("Provisioning failed for %s in %s: %s", session.identity, state, message)
        return error_cls(message, identity=session.identity, state=state, cause=cause)

    @contextlib.contextmanager
    def _track(self) -> Iterator[None]:
        if self._metrics is None:
            yield
            return
        with self._metrics.track_provisioning():
            yield

    def _record_outcome(self, outcome: str) -> None:
        if self._metrics is not None:
            self._metrics.record_outcome(outcome)

    def _record_recovery(self, result: str) -> None:
        if self._metrics is not None:
            self._metrics.record_recovery(result)

    def _record_challenge(self, outcome: str) -> None:
        if self._metrics is not None:
            self._metrics.record_challenge_outcome(outcome)
