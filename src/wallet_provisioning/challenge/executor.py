"""Challenge executor adapter — callback-style secure module to awaitable.

The client-side secure module exposes ``execute(challenge_id, callback)`` and
calls ``callback(error, result)`` once the end user finishes (or abandons) the
ceremony. :class:`ChallengeExecutorAdapter` turns that into a single awaitable
returning a :class:`ChallengeOutcome`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from wallet_provisioning.challenge.classification import (
    DEFAULT_RULES,
    AdvisoryRules,
    classify_challenge_error,
)
from wallet_provisioning.errors.provisioning_errors import ChallengeTimeoutError

if TYPE_CHECKING:
    from collections.abc import Callable

    from wallet_provisioning.provider.models import AccessToken

logger = logging.getLogger(__name__)

# Default wait for end-user interaction (PIN entry)
DEFAULT_CHALLENGE_TIMEOUT = 60.0


# ---------------------------------------------------------------------------
# Secure module contract
# ---------------------------------------------------------------------------


@runtime_checkable
class SecureChallengeModule(Protocol):
    """Client-side secure module that runs challenge ceremonies."""

    def execute(
        self,
        challenge_id: str,
        callback: Callable[[Any, Any], None],
    ) -> None: ...


@runtime_checkable
class AuthenticatedChallengeModule(SecureChallengeModule, Protocol):
    """Secure module that must be given the user token before executing."""

    def set_authentication(self, user_token: str, encryption_key: str) -> None: ...


@dataclass(frozen=True)
class ChallengeError:
    """Error as reported through the module's callback."""

    code: object = None
    message: str = ""

    @classmethod
    def from_callback(cls, error: Any) -> ChallengeError:
        """Normalize whatever the module passed as ``error``."""
        if isinstance(error, ChallengeError):
            return error
        if isinstance(error, dict):
            return cls(code=error.get("code"), message=str(error.get("message") or ""))
        if isinstance(error, BaseException):
            return cls(code=getattr(error, "code", None), message=str(error))
        return cls(code=getattr(error, "code", None), message=str(getattr(error, "message", error)))


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Success:
    """Ceremony completed cleanly."""

    result: Any = None


@dataclass(frozen=True)
class AdvisoryWarning:
    """Non-fatal validation advisory; the ceremony still progressed."""

    code: object = None
    message: str = ""


@dataclass(frozen=True)
class Fatal:
    """Ceremony failed; provisioning must abort."""

    message: str = ""
    code: object = None


ChallengeOutcome = Success | AdvisoryWarning | Fatal


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


@dataclass
class ChallengeExecutorAdapter:
    """Awaitable wrapper around a callback-style secure challenge module.

    Purely a translation layer: it never retries, since a challenge is
    consumed by its first execution.

    Attributes:
        module: The secure module performing the ceremony.
        timeout: Default seconds to wait for the callback.
        rules: Advisory allow-list used to classify reported errors.
    """

    module: SecureChallengeModule
    timeout: float = DEFAULT_CHALLENGE_TIMEOUT
    rules: AdvisoryRules = field(default=DEFAULT_RULES)

    async def execute(
        self,
        challenge_id: str,
        *,
        token: AccessToken | None = None,
        timeout: float | None = None,
    ) -> ChallengeOutcome:
        """Run the ceremony for *challenge_id* and classify its result.

        Args:
            challenge_id: Provider-issued challenge ID.
            token: Fresh user token handed to modules that need authentication.
            timeout: Overrides the adapter's default timeout.

        Returns:
            Success, AdvisoryWarning or Fatal.

        Raises:
            ChallengeTimeoutError: If the module did not call back in time.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[tuple[Any, Any]] = loop.create_future()

        def resolve(error: Any, result: Any) -> None:
            if not future.done():
                future.set_result((error, result))

        def callback(error: Any = None, result: Any = None) -> None:
            # The module may call back from its own thread
            try:
                running = asyncio.get_running_loop()
            except RuntimeError:
                running = None
            if running is loop:
                resolve(error, result)
            elif not loop.is_closed():
                loop.call_soon_threadsafe(resolve, error, result)

        if token is not None and isinstance(self.module, AuthenticatedChallengeModule):
            self.module.set_authentication(token.user_token, token.encryption_key)

        logger.info("Executing challenge %s", challenge_id)
        try:
            self.module.execute(challenge_id, callback)
        except Exception as exc:
            logger.exception("Challenge module failed to start challenge %s", challenge_id)
            return Fatal(message=f"challenge module error: {exc}")

        wait = self.timeout if timeout is None else timeout
        try:
            error, result = await asyncio.wait_for(future, timeout=wait)
        except TimeoutError as exc:
            raise ChallengeTimeoutError(challenge_id, wait) from exc

        if error is None:
            logger.info("Challenge %s completed", challenge_id)
            return Success(result=result)

        reported = ChallengeError.from_callback(error)
        if classify_challenge_error(reported.code, reported.message, self.rules):
            logger.warning(
                "Challenge %s reported non-fatal advisory %s: %s",
                challenge_id,
                reported.code,
                reported.message,
            )
            return AdvisoryWarning(code=reported.code, message=reported.message)

        logger.error(
            "Challenge %s failed with %s: %s", challenge_id, reported.code, reported.message
        )
        return Fatal(
            message=f"challenge failed: {reported.message or 'unknown error'}",
            code=reported.code,
        )
