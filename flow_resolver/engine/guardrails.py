"""
Guardrails: when a payment may proceed on its own vs. stop to ask.

These are safety limits, not intelligence. Each check returns a structured
result; none of them raise for business outcomes. A guardrail that trips
never blocks a payment, it only makes the resolver ask the user first.

The daily auto-approval counter is a plain value. `get_or_reset_daily_state`
and `record_auto_approved_payment` return new states and leave persistence
to the caller.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, Union
from zoneinfo import ZoneInfo

from flow_resolver.config import settings
from flow_resolver.engine.formatting import format_money
from flow_resolver.models.domain import FundingSource, GuardrailConfig, UserPaymentState, to_decimal
from flow_resolver.models.enums import ReasonCode

logger = logging.getLogger("flow_resolver.guardrails")


DEFAULT_GUARDRAILS = GuardrailConfig(
    max_auto_top_up_amount=settings.default_max_auto_top_up,
    max_single_payment_auto=settings.default_max_single_payment_auto,
    require_confirmation_above=settings.default_require_confirmation_above,
    daily_auto_limit=settings.default_daily_auto_limit,
)


@dataclass
class GuardrailCheck:
    """Outcome of the guardrail rules for one payment."""

    can_proceed_auto: bool
    reason_codes: list[ReasonCode] = field(default_factory=list)
    reasons: list[str] = field(default_factory=list)

    @property
    def requires_confirmation(self) -> bool:
        return not self.can_proceed_auto

    @property
    def high_risk(self) -> bool:
        return bool({ReasonCode.HIGH_VALUE, ReasonCode.DAILY_LIMIT_EXCEEDED} & set(self.reason_codes))


@dataclass
class TopUpCheck:
    allowed: bool
    cap: Decimal
    reason: str = ""


def current_date(tz_name: Optional[str] = None) -> str:
    """Today's date (YYYY-MM-DD) at the configured day boundary."""
    tz_name = tz_name or settings.day_boundary_timezone
    tz = timezone.utc if tz_name.upper() == "UTC" else ZoneInfo(tz_name)
    return datetime.now(tz).date().isoformat()


def _as_iso(day: Union[str, date, None]) -> str:
    if day is None:
        return current_date()
    if isinstance(day, date):
        return day.isoformat()
    return day


def confirmation_threshold(config: GuardrailConfig, source: Optional[FundingSource] = None) -> Decimal:
    """The stricter of the global and per-source confirmation thresholds."""
    threshold = config.require_confirmation_above
    if source is not None and source.require_confirm_above is not None:
        threshold = min(threshold, source.require_confirm_above)
    return threshold


def top_up_cap(config: GuardrailConfig, target: Optional[FundingSource] = None) -> Decimal:
    """
    Largest automatic top-up allowed into `target`.

    Most restrictive wins: a per-source cap of 0 disables top-ups into that
    source even when the global cap is higher.
    """
    cap = config.max_auto_top_up_amount
    if target is not None and target.max_auto_top_up is not None:
        cap = min(cap, target.max_auto_top_up)
    return cap


def check_guardrails(
    amount: Decimal,
    state: UserPaymentState,
    config: GuardrailConfig = DEFAULT_GUARDRAILS,
    source: Optional[FundingSource] = None,
    currency: str = "MYR",
) -> GuardrailCheck:
    """
    Check whether a payment can proceed automatically or needs confirmation.

    Rules, all evaluated so the caller sees every reason:
      1. Above the confirmation threshold (global or the source's, whichever
         is stricter) → high value, confirm.
      2. Today's auto-approved total would exceed the daily limit → confirm.
      3. Above the single-payment auto-approve threshold → confirm.

    `state` must already be reset for today (see `get_or_reset_daily_state`).
    """
    check = GuardrailCheck(can_proceed_auto=True)

    threshold = confirmation_threshold(config, source)
    if amount > threshold:
        check.reason_codes.append(ReasonCode.HIGH_VALUE)
        check.reasons.append(f"payments above {format_money(threshold, currency)} need your confirmation")

    if state.daily_auto_approved + amount > config.daily_auto_limit:
        check.reason_codes.append(ReasonCode.DAILY_LIMIT_EXCEEDED)
        check.reasons.append(
            f"this would go past your daily auto-approved limit of {format_money(config.daily_auto_limit, currency)}"
        )

    if amount > config.max_single_payment_auto:
        check.reason_codes.append(ReasonCode.SINGLE_PAYMENT_LIMIT)
        check.reasons.append(
            f"it is above your auto-approve amount of {format_money(config.max_single_payment_auto, currency)}"
        )

    check.can_proceed_auto = not check.reason_codes
    return check


def can_auto_top_up(
    amount: Decimal,
    config: GuardrailConfig = DEFAULT_GUARDRAILS,
    target: Optional[FundingSource] = None,
    currency: str = "MYR",
) -> TopUpCheck:
    """Check if a top-up of `amount` into `target` is within the automatic limits."""
    cap = top_up_cap(config, target)

    if amount <= 0:
        return TopUpCheck(allowed=False, cap=cap, reason="The top-up amount must be greater than zero.")

    if cap <= 0:
        name = target.name if target is not None else "this source"
        return TopUpCheck(allowed=False, cap=cap, reason=f"Automatic top-ups into {name} are turned off.")

    if amount > cap:
        return TopUpCheck(
            allowed=False,
            cap=cap,
            reason=(
                f"A top-up of {format_money(amount, currency)} is above your "
                f"{format_money(cap, currency)} automatic top-up limit."
            ),
        )

    return TopUpCheck(allowed=True, cap=cap)


def get_or_reset_daily_state(
    state: Optional[UserPaymentState],
    today: Union[str, date, None] = None,
) -> UserPaymentState:
    """
    Return today's payment state, resetting the counter if the day changed.

    Args:
        state: Stored state, or None for a user with no state yet.
        today: Date to compare against. Defaults to the current date at the
            configured day boundary (`day_boundary_timezone`, UTC by default).
    """
    today = _as_iso(today)
    if state is None or state.last_reset_date != today:
        return UserPaymentState(daily_auto_approved=Decimal("0"), last_reset_date=today)
    return state


def record_auto_approved_payment(
    state: Optional[UserPaymentState],
    amount: Union[Decimal, int, float, str],
    today: Union[str, date, None] = None,
) -> UserPaymentState:
    """Return a new state with `amount` added to today's auto-approved total."""
    amount = to_decimal(amount, "amount")
    if amount < 0:
        raise ValueError(f"Auto-approved amount must be >= 0, got {amount}")

    current = get_or_reset_daily_state(state, today)
    updated = UserPaymentState(
        daily_auto_approved=current.daily_auto_approved + amount,
        last_reset_date=current.last_reset_date,
    )
    logger.debug(
        "Daily auto-approved total %s -> %s (%s)",
        current.daily_auto_approved,
        updated.daily_auto_approved,
        updated.last_reset_date,
    )
    return updated
