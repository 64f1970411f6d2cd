"""Custodial provider errors raised by the provider client."""

from __future__ import annotations

from wallet_provisioning.errors.base import WalletProvisioningError


class ProviderError(WalletProvisioningError):
    """The provider answered with an error response.

    Attributes:
        error_code: Provider machine-readable code (e.g. ``155110``) when present.
        body: Decoded response body, if any.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 502,
        error_code: int | str | None = None,
        body: object | None = None,
        code: str = "provider-error",
    ) -> None:
        super().__init__(message, status_code=status_code, code=code)
        self.error_code = error_code
        self.body = body


class ProviderTransportError(ProviderError):
    """The provider could not be reached (connection refused, reset, ...)."""

    def __init__(self, message: str, *, status_code: int = 503) -> None:
        super().__init__(message, status_code=status_code, code="provider-unreachable")

    @property
    def timed_out(self) -> bool:
        """Whether the failure was a timeout."""
        return False


class ProviderTimeoutError(ProviderTransportError):
    """The provider did not answer within the request timeout."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=504)
        self.code = "provider-timeout"

    @property
    def timed_out(self) -> bool:
        return True


class ProviderDataError(ProviderError):
    """The provider claimed success but the response is unusable."""

    def __init__(self, message: str, *, body: object | None = None) -> None:
        super().__init__(message, status_code=502, body=body, code="provider-bad-response")
