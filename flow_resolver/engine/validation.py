"""
Request validation with categorized failure reasons.

Before resolving a payment we verify:
  1. Amount is positive
  2. Currency is present
  3. Intent id is present (the caller's correlation key)

A failing check is reported as a structured result so both resolvers can
return an `invalid_request` resolution instead of raising.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from flow_resolver.models.enums import ResolutionError


@dataclass
class ValidationResult:
    """Result of a request validation check."""

    valid: bool
    error: Optional[ResolutionError] = None
    message: str = ""


def check_request(
    amount: Decimal,
    currency: Optional[str] = "MYR",
    intent_id: Optional[str] = None,
) -> ValidationResult:
    """
    Check whether a payment request can be resolved.

    Args:
        amount: Requested amount.
        currency: ISO 4217 code of the amount.
        intent_id: Caller-supplied correlation id. None skips the check, for
            callers (such as the smart resolver) that do not carry one.

    Returns:
        ValidationResult with a user-facing message when invalid.
    """
    if amount <= 0:
        return ValidationResult(
            valid=False,
            error=ResolutionError.INVALID_REQUEST,
            message="The payment amount must be greater than zero.",
        )

    if not currency or not currency.strip():
        return ValidationResult(
            valid=False,
            error=ResolutionError.INVALID_REQUEST,
            message="The payment request is missing its currency.",
        )

    if intent_id is not None and not intent_id.strip():
        return ValidationResult(
            valid=False,
            error=ResolutionError.INVALID_REQUEST,
            message="The payment request is missing its reference.",
        )

    return ValidationResult(valid=True)
