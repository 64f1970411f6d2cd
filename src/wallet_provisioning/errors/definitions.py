"""Custodial provider error codes observed on the wallet relay."""

from __future__ import annotations

# -- User bootstrap --------------------------------------------------------

USER_ALREADY_EXISTS = 155101
USER_ALREADY_INITIALIZED = 155106

# -- Wallet creation -------------------------------------------------------

PIN_NOT_SET = 155110

# -- Challenge ceremony ----------------------------------------------------

HINT_SAME_AS_ANSWER = 155705

# HTTP statuses that mean "the resource is already there"
CONFLICT_STATUSES = frozenset({409})
