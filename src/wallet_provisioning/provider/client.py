"""Custodial provider HTTP client — users, tokens, wallets, challenges.

Provides an async HTTP client for the wallet relay in front of the custodial
provider:
- POST /users — Create a user (or report that it already exists)
- POST /users/token — Issue a short-lived user token
- POST /users/initialize — Initialize a user (may return a PIN challenge)
- POST /wallets — Request wallet creation
- GET /users/{identity}/wallets — List the user's wallets
- GET /challenges/{id} — Challenge status
"""

from __future__ import annotations

import contextlib
import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote
from uuid import uuid4

import httpx

from wallet_provisioning.errors.definitions import (
    CONFLICT_STATUSES,
    USER_ALREADY_EXISTS,
    USER_ALREADY_INITIALIZED,
)
from wallet_provisioning.errors.provider_errors import (
    ProviderDataError,
    ProviderError,
    ProviderTimeoutError,
    ProviderTransportError,
)
from wallet_provisioning.provider.models import (
    AccessToken,
    ChallengeStatus,
    UserBootstrap,
    Wallet,
    WalletRequestResult,
    normalize_wallet_response,
    parse_wallet_list,
)
from wallet_provisioning.provider.retry import RetryPolicy

if TYPE_CHECKING:
    from collections.abc import Iterator

    from wallet_provisioning.config.settings import ProviderConfig
    from wallet_provisioning.metrics.collector import ProvisioningMetrics

logger = logging.getLogger(__name__)


class ProviderClient:
    """Async HTTP client for the custodial wallet provider.

    Stateless apart from the connection pool: it never reads or writes the
    credential store.

    Usage::

        provider = ProviderClient(config)
        await provider.connect()
        try:
            token = await provider.get_user_token("user@example.com")
        finally:
            await provider.close()
    """

    def __init__(
        self,
        config: ProviderConfig,
        *,
        metrics: ProvisioningMetrics | None = None,
    ) -> None:
        """Initialize the provider client.

        Args:
            config: Provider configuration (url, api key, timeouts, retries).
            metrics: Optional metrics sink for request durations.
        """
        self._config = config
        self._metrics = metrics
        self._client: httpx.AsyncClient | None = None
        self._read_policy = RetryPolicy.for_reads(config.read_retries, config.retry_backoff)
        self._create_policy = RetryPolicy.for_creation(config.create_retries, config.retry_backoff)

    async def connect(self) -> None:
        """Create the underlying HTTP client."""
        headers: dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"

        self._client = httpx.AsyncClient(
            base_url=self._config.url.rstrip("/"),
            headers=headers,
            timeout=self._config.read_timeout,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        """Check if the HTTP client is active."""
        return self._client is not None

    @property
    def read_policy(self) -> RetryPolicy:
        return self._read_policy

    @property
    def create_policy(self) -> RetryPolicy:
        return self._create_policy

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def create_or_initialize_user(self, identity: str) -> UserBootstrap:
        """Create the provider user for *identity*.

        An "already exists" answer is the steady state for returning users and
        is reported as ``UserBootstrap(exists=True)`` rather than an error.

        Raises:
            ProviderError: On transport or API errors.
        """

        async def attempt() -> UserBootstrap:
            response = await self._request(
                "POST",
                "/users",
                operation="create_user",
                json_payload={"userId": identity, "email": identity},
                timeout=self._config.create_timeout,
            )
            if response.is_success:
                return UserBootstrap.from_dict(identity, self._json(response))
            error = self._error_from_response(response, "create_user")
            if self._is_conflict(error, USER_ALREADY_EXISTS):
                logger.info("Provider user %s already exists", identity)
                return UserBootstrap(identity=identity, exists=True)
            raise error

        return await self._create_policy.run("create_user", attempt)

    async def get_user_token(self, identity: str) -> AccessToken:
        """Issue a fresh short-lived token for *identity*.

        Raises:
            ProviderError: On transport or API errors.
            ProviderDataError: If the response carries no token.
        """

        async def attempt() -> AccessToken:
            response = await self._request(
                "POST",
                "/users/token",
                operation="get_user_token",
                json_payload={"userId": identity},
                timeout=self._config.create_timeout,
            )
            if not response.is_success:
                raise self._error_from_response(response, "get_user_token")
            return AccessToken.from_dict(self._json(response))

        return await self._create_policy.run("get_user_token", attempt)

    async def initialize_user(self, identity: str, token: AccessToken) -> str | None:
        """Initialize an existing user.

        Returns:
            The PIN-setup challenge ID if the provider issued one, else None
            (including when the user was already initialized).

        Raises:
            ProviderError: On transport or API errors.
        """

        payload = {
            "userId": identity,
            "userToken": token.user_token,
            "idempotencyKey": str(uuid4()),
        }

        async def attempt() -> str | None:
            response = await self._request(
                "POST",
                "/users/initialize",
                operation="initialize_user",
                json_payload=payload,
                token=token,
                timeout=self._config.create_timeout,
            )
            if response.is_success:
                bootstrap = UserBootstrap.from_dict(identity, self._json(response), exists=True)
                return bootstrap.challenge_id or None
            error = self._error_from_response(response, "initialize_user")
            if self._is_conflict(error, USER_ALREADY_INITIALIZED):
                logger.info("Provider user %s already initialized", identity)
                return None
            raise error

        return await self._create_policy.run("initialize_user", attempt)

    async def create_wallet(
        self,
        identity: str,
        token: AccessToken,
        idempotency_key: str,
    ) -> WalletRequestResult:
        """Request wallet creation.

        Args:
            identity: User identity.
            token: Freshly issued user token.
            idempotency_key: Client-generated key for provider-side dedup.

        Returns:
            WalletRequestResult with either the wallet or a challenge ID.

        Raises:
            ProviderError: On transport or API errors.
            ProviderDataError: If the response is not a recognised shape.
        """
        payload: dict[str, Any] = {
            "userId": identity,
            "userToken": token.user_token,
            "idempotencyKey": idempotency_key,
            "blockchain": self._config.blockchain,
            "description": self._config.wallet_description or f"Wallet for {identity}",
        }

        async def attempt() -> WalletRequestResult:
            response = await self._request(
                "POST",
                "/wallets",
                operation="create_wallet",
                json_payload=payload,
                token=token,
                timeout=self._config.create_timeout,
            )
            if not response.is_success:
                raise self._error_from_response(response, "create_wallet")
            return normalize_wallet_response(self._json(response))

        return await self._create_policy.run("create_wallet", attempt)

    async def list_user_wallets(self, identity: str) -> list[Wallet]:
        """List the wallets the provider holds for *identity*.

        A 404 means the provider has no wallets for the user yet.

        Raises:
            ProviderError: On transport or API errors.
        """

        async def attempt() -> list[Wallet]:
            response = await self._request(
                "GET",
                f"/users/{quote(identity, safe='@')}/wallets",
                operation="list_user_wallets",
                timeout=self._config.read_timeout,
            )
            if response.status_code == 404:
                return []
            if not response.is_success:
                raise self._error_from_response(response, "list_user_wallets")
            return parse_wallet_list(self._json(response))

        return await self._read_policy.run("list_user_wallets", attempt)

    async def get_challenge_status(self, challenge_id: str) -> ChallengeStatus:
        """Get the provider-side status of a challenge.

        Raises:
            ProviderError: On transport or API errors.
        """

        async def attempt() -> ChallengeStatus:
            response = await self._request(
                "GET",
                f"/challenges/{quote(challenge_id, safe='')}",
                operation="get_challenge_status",
                timeout=self._config.read_timeout,
            )
            if not response.is_success:
                raise self._error_from_response(response, "get_challenge_status")
            return ChallengeStatus.from_dict(challenge_id, self._json(response))

        return await self._read_policy.run("get_challenge_status", attempt)

    async def health(self) -> bool:
        """Check whether the relay answers its health endpoint."""
        try:
            response = await self._request(
                "GET",
                "/health",
                operation="health",
                timeout=self._config.read_timeout,
            )
        except ProviderError:
            return False
        return response.is_success

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_connected(self) -> httpx.AsyncClient:
        """Return the HTTP client, raising if not connected."""
        if self._client is None:
            msg = "Provider client not connected. Call connect() first."
            raise ProviderError(msg, status_code=500)
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        json_payload: dict[str, Any] | None = None,
        token: AccessToken | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Send one request, translating transport failures into typed errors."""
        client = self._ensure_connected()
        headers = {"X-User-Token": token.user_token} if token is not None else None
        try:
            with self._track(operation):
                return await client.request(
                    method,
                    path,
                    json=json_payload,
                    headers=headers,
                    timeout=timeout,
                )
        except httpx.TimeoutException as exc:
            msg = f"provider {operation} timed out: {exc!r}"
            raise ProviderTimeoutError(msg) from exc
        except httpx.HTTPError as exc:
            msg = f"provider {operation} failed: {exc!r}"
            raise ProviderTransportError(msg) from exc

    @contextlib.contextmanager
    def _track(self, operation: str) -> Iterator[None]:
        if self._metrics is None:
            yield
            return
        with self._metrics.track_provider_request(operation):
            yield

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        """Decode a JSON object body."""
        try:
            body = response.json()
        except ValueError as exc:
            msg = f"provider returned invalid JSON ({response.status_code})"
            raise ProviderDataError(msg, body=response.text) from exc
        if not isinstance(body, dict):
            msg = "provider returned a non-object JSON body"
            raise ProviderDataError(msg, body=body)
        return body

    @staticmethod
    def _error_from_response(response: httpx.Response, operation: str) -> ProviderError:
        """Build a ProviderError from a non-2xx response."""
        status = response.status_code
        body: object | None
        try:
            body = response.json()
        except ValueError:
            body = None

        detail: object = response.text
        error_code: int | str | None = None
        if isinstance(body, dict):
            detail = body.get("error") or body.get("message") or body.get("detail") or detail
            details = body.get("details") if isinstance(body.get("details"), dict) else {}
            raw_code = details.get("code", body.get("code"))
            # The relay echoes the HTTP status as ``code``; only keep provider codes
            if raw_code is not None and raw_code != status:
                error_code = raw_code

        message = f"provider {operation} failed ({status}): {detail}"
        return ProviderError(message, status_code=status, error_code=error_code, body=body)

    @staticmethod
    def _is_conflict(error: ProviderError, provider_code: int) -> bool:
        """Whether *error* means "already exists"."""
        if error.status_code in CONFLICT_STATUSES:
            return True
        if str(error.error_code) == str(provider_code):
            return True
        message = error.message.lower()
        return "already exists" in message or "already initialized" in message
