"""Provider data models — tokens, wallets, challenge state.

Data classes representing custodial provider request/response objects, plus
the normalization that folds the relay's several response envelopes into a
single :class:`WalletRequestResult`.
"""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Any

from wallet_provisioning.errors.provider_errors import ProviderDataError

# ---------------------------------------------------------------------------
# Access token
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AccessToken:
    """Short-lived bearer credential scoped to one user identity.

    Attributes:
        user_token: The bearer token (``X-User-Token``).
        encryption_key: Key handed to the client-side secure module.
        issued_at: Unix timestamp at which the token was received.
    """

    user_token: str
    encryption_key: str = ""
    issued_at: float = field(default_factory=time.time)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccessToken:
        """Create an AccessToken from a token response (``data`` envelope or flat)."""
        payload = data.get("data") if isinstance(data.get("data"), dict) else data
        user_token = payload.get("userToken", payload.get("user_token", ""))
        if not user_token:
            msg = "provider token response did not include a userToken"
            raise ProviderDataError(msg, body=data)
        return cls(
            user_token=user_token,
            encryption_key=payload.get("encryptionKey", payload.get("encryption_key", "")) or "",
        )

    def __repr__(self) -> str:
        return f"AccessToken(user_token={self.user_token[:8]}..., issued_at={self.issued_at})"


# ---------------------------------------------------------------------------
# Wallet
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Wallet:
    """A provisioned custodial wallet.

    Attributes:
        id: Provider wallet ID.
        address: On-chain address (may be empty while the provider derives it).
        blockchain: Chain identifier (e.g. ``APTOS-TESTNET``).
        created_at: ISO-8601 creation timestamp as reported by the provider.
        description: Optional wallet label.
        state: Provider wallet state (e.g. ``LIVE``).
    """

    id: str
    address: str = ""
    blockchain: str = ""
    created_at: str = ""
    description: str = ""
    state: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Wallet:
        """Create a Wallet from a provider wallet dict.

        Raises:
            ProviderDataError: If the wallet has no ID.
        """
        wallet_id = data.get("id") or data.get("walletId") or data.get("wallet_id")
        if not wallet_id:
            msg = "provider returned a wallet without an id"
            raise ProviderDataError(msg, body=data)
        return cls(
            id=str(wallet_id),
            address=data.get("address") or "",
            blockchain=data.get("blockchain") or "",
            created_at=(
                data.get("createDate") or data.get("createdAt") or data.get("created_at") or ""
            ),
            description=data.get("description") or data.get("name") or "",
            state=data.get("state") or "",
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-friendly dict."""
        return {
            "id": self.id,
            "address": self.address,
            "blockchain": self.blockchain,
            "createdAt": self.created_at,
            "description": self.description,
            "state": self.state,
        }


# ---------------------------------------------------------------------------
# User bootstrap
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class UserBootstrap:
    """Result of creating (or finding) a provider user.

    Attributes:
        identity: The user identity sent to the provider.
        exists: True if the provider already knew the identity.
        provider_user_id: Provider-side user ID, when reported.
        pin_status: Provider PIN status (e.g. ``UNSET``, ``ENABLED``).
        challenge_id: Pending challenge from an initialization call.
    """

    identity: str
    exists: bool = False
    provider_user_id: str = ""
    pin_status: str = ""
    challenge_id: str = ""

    @classmethod
    def from_dict(
        cls, identity: str, data: dict[str, Any], *, exists: bool = False
    ) -> UserBootstrap:
        """Create a UserBootstrap from a ``POST /users`` response."""
        user = data.get("user") or data.get("data") or {}
        if not isinstance(user, dict):
            user = {}
        status = str(user.get("status") or "")
        return cls(
            identity=identity,
            exists=exists or status.startswith("exists"),
            provider_user_id=(
                user.get("circleUserId") or user.get("providerUserId") or user.get("id") or ""
            ),
            pin_status=user.get("pinStatus") or "",
            challenge_id=_challenge_id(data) or "",
        )


# ---------------------------------------------------------------------------
# Challenge status
# ---------------------------------------------------------------------------


class ChallengeState(enum.StrEnum):
    """Provider challenge states."""

    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"
    EXPIRED = "EXPIRED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_string(cls, value: str) -> ChallengeState:
        """Parse a status string, returning UNKNOWN for unrecognised values."""
        try:
            return cls(value.upper())
        except (ValueError, AttributeError):
            return cls.UNKNOWN


@dataclass(frozen=True)
class ChallengeStatus:
    """Challenge status as reported by ``GET /challenges/{id}``."""

    challenge_id: str
    state: ChallengeState = ChallengeState.UNKNOWN

    @property
    def is_complete(self) -> bool:
        return self.state is ChallengeState.COMPLETE

    @classmethod
    def from_dict(cls, challenge_id: str, data: dict[str, Any]) -> ChallengeStatus:
        payload = data.get("data") if isinstance(data.get("data"), dict) else data
        challenge = payload.get("challenge")
        if not isinstance(challenge, dict):
            challenge = payload
        return cls(
            challenge_id=challenge.get("id", challenge_id) or challenge_id,
            state=ChallengeState.from_string(challenge.get("status", "")),
        )


# ---------------------------------------------------------------------------
# Wallet request result (normalized)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WalletRequestResult:
    """Normalized outcome of a wallet request.

    Exactly one of ``wallet`` / ``challenge_id`` is set for a usable result.
    """

    wallet: Wallet | None = None
    challenge_id: str | None = None
    requires_challenge: bool = False


def _challenge_id(body: dict[str, Any]) -> str | None:
    data = body.get("data") if isinstance(body.get("data"), dict) else {}
    for source in (data, body):
        value = source.get("challengeId") or source.get("challenge_id")
        if value:
            return str(value)
    return None


def _requires_challenge(body: dict[str, Any]) -> bool:
    data = body.get("data") if isinstance(body.get("data"), dict) else {}
    keys = ("requiresPinSetup", "requiresChallenge", "requires_challenge")
    return any(bool(source.get(key)) for source in (data, body) for key in keys)


def parse_wallet_list(body: dict[str, Any]) -> list[Wallet]:
    """Extract wallets from a list response.

    Accepts ``{wallets: [...]}``, ``{data: {wallets: [...]}}`` and
    ``{data: [...]}``.
    """
    data = body.get("data")
    if isinstance(body.get("wallets"), list):
        items = body["wallets"]
    elif isinstance(data, dict) and isinstance(data.get("wallets"), list):
        items = data["wallets"]
    elif isinstance(data, list):
        items = data
    else:
        items = []
    return [Wallet.from_dict(item) for item in items if isinstance(item, dict)]


def _nested_wallet(body: dict[str, Any]) -> dict[str, Any] | None:
    data = body.get("data") if isinstance(body.get("data"), dict) else {}
    for source in (body, data):
        if isinstance(source.get("wallet"), dict):
            return source["wallet"]
    return None


def normalize_wallet_response(body: dict[str, Any]) -> WalletRequestResult:
    """Fold any known wallet-request envelope into a WalletRequestResult.

    Recognised shapes:

    * direct wallet: ``{data: {id, address, ...}}``, ``{data: {wallets: [...]}}``
      or ``{wallet: {...}}`` (top level or under ``data``)
    * wallet list: ``{wallets: [...]}``
    * challenge required: ``{data: {challengeId, requiresPinSetup}}`` or the
      same keys at the top level

    Raises:
        ProviderDataError: If the body claims failure or carries neither a
            wallet nor a challenge.
    """
    if not isinstance(body, dict):
        msg = "provider returned a non-object wallet response"
        raise ProviderDataError(msg, body=body)
    if body.get("success") is False:
        detail = body.get("error") or body.get("message") or "unknown error"
        msg = f"provider reported wallet request failure: {detail}"
        raise ProviderDataError(msg, body=body)

    nested = _nested_wallet(body)
    if nested is not None:
        return WalletRequestResult(wallet=Wallet.from_dict(nested))

    wallets = parse_wallet_list(body)
    if wallets:
        return WalletRequestResult(wallet=wallets[0])

    challenge_id = _challenge_id(body)
    data = body.get("data")
    if isinstance(data, dict) and not challenge_id and any(
        key in data for key in ("id", "walletId", "wallet_id", "address")
    ):
        return WalletRequestResult(wallet=Wallet.from_dict(data))

    if challenge_id:
        return WalletRequestResult(challenge_id=challenge_id, requires_challenge=True)

    if _requires_challenge(body):
        msg = "provider requires a challenge but did not provide a challenge id"
        raise ProviderDataError(msg, body=body)
    msg = "provider response carried neither a wallet nor a challenge"
    raise ProviderDataError(msg, body=body)
