"""Provisioning session — workflow states and the transition table.

Lifecycle::

    INIT → USER_READY → TOKEN_READY → WALLET_REQUESTED
         → DIRECT_SUCCESS | CHALLENGE_REQUIRED → CHALLENGE_EXECUTING → CHALLENGE_RESOLVED
         → CONFIRMED → DONE

    RECOVERABLE (ambiguous failure, triggers a recovery lookup), FATAL (terminal)
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from wallet_provisioning.errors.provisioning_errors import InvalidTransitionError

if TYPE_CHECKING:
    from wallet_provisioning.provider.models import AccessToken, Wallet


class ProvisioningState(enum.StrEnum):
    """States of the wallet provisioning state machine."""

    INIT = "INIT"
    USER_READY = "USER_READY"
    TOKEN_READY = "TOKEN_READY"
    WALLET_REQUESTED = "WALLET_REQUESTED"
    DIRECT_SUCCESS = "DIRECT_SUCCESS"
    CHALLENGE_REQUIRED = "CHALLENGE_REQUIRED"
    CHALLENGE_EXECUTING = "CHALLENGE_EXECUTING"
    CHALLENGE_RESOLVED = "CHALLENGE_RESOLVED"
    CONFIRMED = "CONFIRMED"
    DONE = "DONE"
    RECOVERABLE = "RECOVERABLE"
    FATAL = "FATAL"

    @property
    def is_terminal(self) -> bool:
        return self in (ProvisioningState.DONE, ProvisioningState.FATAL)


_S = ProvisioningState

TRANSITIONS: dict[ProvisioningState, frozenset[ProvisioningState]] = {
    # INIT → CONFIRMED: wallet already known locally
    _S.INIT: frozenset({_S.USER_READY, _S.CONFIRMED, _S.FATAL}),
    # USER_READY → CONFIRMED: existing user already holds a wallet
    _S.USER_READY: frozenset({_S.TOKEN_READY, _S.CONFIRMED, _S.FATAL}),
    # TOKEN_READY → CHALLENGE_REQUIRED: initialization already issued a challenge
    _S.TOKEN_READY: frozenset({_S.WALLET_REQUESTED, _S.CHALLENGE_REQUIRED, _S.FATAL}),
    _S.WALLET_REQUESTED: frozenset(
        {_S.DIRECT_SUCCESS, _S.CHALLENGE_REQUIRED, _S.RECOVERABLE, _S.FATAL}
    ),
    _S.DIRECT_SUCCESS: frozenset({_S.CONFIRMED}),
    _S.CHALLENGE_REQUIRED: frozenset({_S.CHALLENGE_EXECUTING, _S.RECOVERABLE, _S.FATAL}),
    _S.CHALLENGE_EXECUTING: frozenset({_S.CHALLENGE_RESOLVED, _S.RECOVERABLE, _S.FATAL}),
    _S.CHALLENGE_RESOLVED: frozenset({_S.CONFIRMED, _S.RECOVERABLE, _S.FATAL}),
    _S.RECOVERABLE: frozenset({_S.CONFIRMED, _S.TOKEN_READY, _S.FATAL}),
    _S.CONFIRMED: frozenset({_S.DONE, _S.FATAL}),
    _S.DONE: frozenset(),
    _S.FATAL: frozenset(),
}


@dataclass
class ProvisioningSession:
    """Ephemeral state of one provisioning call.

    Owned exclusively by the orchestrator for the duration of the call.

    Attributes:
        identity: User identity being provisioned (never changes).
        state: Current state.
        token: Token acquired for the current step.
        challenge_id: Challenge awaiting (or undergoing) execution.
        attempt: Wallet request attempt number (1-based once requested).
        wallet: The confirmed wallet.
        idempotency_key: Key of the current wallet request.
        history: Every state visited, in order.
    """

    identity: str
    state: ProvisioningState = ProvisioningState.INIT
    token: AccessToken | None = None
    challenge_id: str | None = None
    attempt: int = 0
    wallet: Wallet | None = None
    idempotency_key: str | None = None
    history: list[ProvisioningState] = field(default_factory=lambda: [ProvisioningState.INIT])

    def __setattr__(self, name: str, value: object) -> None:
        if name == "identity" and "identity" in self.__dict__:
            msg = "identity is immutable once a provisioning session starts"
            raise AttributeError(msg)
        super().__setattr__(name, value)

    def transition(self, target: ProvisioningState) -> None:
        """Move to *target*.

        Raises:
            InvalidTransitionError: If the move is not in the transition table.
        """
        if target not in TRANSITIONS[self.state]:
            raise InvalidTransitionError(self.state.value, target.value)
        self.state = target
        self.history.append(target)

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal
