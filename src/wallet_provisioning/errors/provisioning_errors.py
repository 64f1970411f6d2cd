"""Errors surfaced by the provisioning workflow to its caller."""

from __future__ import annotations

from wallet_provisioning.errors.base import WalletProvisioningError


class FatalProvisioningError(WalletProvisioningError):
    """Provisioning aborted; no usable wallet exists for the identity.

    Attributes:
        identity: The user identity being provisioned.
        state: The workflow state in which the failure happened.
        cause: The underlying error, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        identity: str = "",
        state: str = "",
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, status_code=502, code="provisioning-fatal")
        self.identity = identity
        self.state = state
        self.cause = cause


class ProvisioningTimeout(FatalProvisioningError):
    """Provisioning gave up after the provider kept timing out."""

    def __init__(
        self,
        message: str,
        *,
        identity: str = "",
        state: str = "",
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, identity=identity, state=state, cause=cause)
        self.status_code = 504
        self.code = "provisioning-timeout"


class AlreadyInProgressError(WalletProvisioningError):
    """Another provisioning workflow is already running for the identity."""

    def __init__(self, identity: str) -> None:
        super().__init__(
            f"wallet provisioning already in progress for {identity}",
            status_code=409,
            code="provisioning-in-progress",
        )
        self.identity = identity


class InvalidTransitionError(WalletProvisioningError):
    """A state transition outside the provisioning state machine was attempted."""

    def __init__(self, source: str, target: str) -> None:
        super().__init__(
            f"invalid provisioning transition: {source} -> {target}",
            status_code=500,
            code="invalid-transition",
        )
        self.source = source
        self.target = target


class ChallengeTimeoutError(WalletProvisioningError):
    """The challenge executor did not report back within the allotted time."""

    def __init__(self, challenge_id: str, timeout: float) -> None:
        super().__init__(
            f"challenge {challenge_id} did not complete within {timeout:g}s",
            status_code=504,
            code="challenge-timeout",
        )
        self.challenge_id = challenge_id
        self.timeout = timeout
