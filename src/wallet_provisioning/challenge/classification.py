"""Challenge error classification — advisory vs fatal.

The secure module reports input-validation nudges (e.g. a PIN recovery hint
that repeats the answer) through the same error channel as real ceremony
failures. The provider-side ceremony has still progressed for the former, so
they must not abort provisioning.

The allow-list is empirical and incomplete; extend it through
``ChallengeConfig.advisory_codes`` / ``advisory_phrases`` rather than by
adding string checks elsewhere.
"""

from __future__ import annotations

from dataclasses import dataclass

from wallet_provisioning.errors.definitions import HINT_SAME_AS_ANSWER

DEFAULT_ADVISORY_CODES: frozenset[int] = frozenset({HINT_SAME_AS_ANSWER})

DEFAULT_ADVISORY_PHRASES: tuple[str, ...] = (
    "hint can't be the same",
    "validation failed",
    "pin you entered is not the same",
)


def _as_code(code: object) -> int | None:
    """Coerce an error code to int; the module reports both ``155705`` and ``"155705"``."""
    if isinstance(code, bool):
        return None
    if isinstance(code, int):
        return code
    if isinstance(code, str) and code.strip().lstrip("-").isdigit():
        return int(code.strip())
    return None


@dataclass(frozen=True)
class AdvisoryRules:
    """Allow-list of non-fatal challenge errors.

    Attributes:
        codes: Error codes treated as advisory.
        phrases: Lower-case message fragments treated as advisory.
    """

    codes: frozenset[int] = DEFAULT_ADVISORY_CODES
    phrases: tuple[str, ...] = DEFAULT_ADVISORY_PHRASES

    @classmethod
    def with_extra(
        cls,
        codes: list[int] | tuple[int, ...] = (),
        phrases: list[str] | tuple[str, ...] = (),
    ) -> AdvisoryRules:
        """Default rules extended with additional codes and phrases."""
        return cls(
            codes=DEFAULT_ADVISORY_CODES | frozenset(codes),
            phrases=DEFAULT_ADVISORY_PHRASES + tuple(p.lower() for p in phrases if p),
        )

    def is_advisory(self, code: object, message: str | None) -> bool:
        """Whether an error with *code* / *message* is an advisory warning."""
        numeric = _as_code(code)
        if numeric is not None and numeric in self.codes:
            return True
        text = (message or "").lower()
        return any(phrase in text for phrase in self.phrases)


DEFAULT_RULES = AdvisoryRules()


def classify_challenge_error(
    code: object,
    message: str | None,
    rules: AdvisoryRules = DEFAULT_RULES,
) -> bool:
    """Return True if the error is advisory (non-fatal), False if fatal."""
    return rules.is_advisory(code, message)
