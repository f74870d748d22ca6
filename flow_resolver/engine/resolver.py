"""
Rule-based payment resolver.

Decides HOW to pay: which funding source is charged, whether it is topped up
first and from where, and whether the user must confirm. Pure rules over the
snapshot passed in: no I/O, no randomness, no mutation. Calling it from a
preview screen is safe; the caller records the payment separately once it
actually completes.

Resolution order:
  1. Validate the request
  2. Keep linked, available sources the payee accepts
  3. Rank by priority (then balance)
  4. First source that covers the amount on its own wins
  5. Otherwise top up the first source that can be topped up within the caps
  6. Apply guardrails: they raise the risk level, they never block
"""

import logging
from decimal import Decimal
from typing import Optional

from flow_resolver.engine.formatting import format_money, sentence
from flow_resolver.engine.guardrails import check_guardrails, get_or_reset_daily_state
from flow_resolver.engine.topup import TopUpPlan, plan_top_up, source_order
from flow_resolver.engine.validation import check_request
from flow_resolver.models.domain import (
    FundingSource,
    PaymentRequest,
    PaymentResolution,
    ResolutionStep,
    ResolverContext,
)
from flow_resolver.models.enums import (
    FallbackPreference,
    ReasonCode,
    ResolutionError,
    RiskLevel,
    StepAction,
)
from flow_resolver.routing.rail_catalog import is_compatible, parse_accepted_rails

logger = logging.getLogger("flow_resolver.resolver")


def _failure(request: PaymentRequest, error: ResolutionError, explanation: str) -> PaymentResolution:
    logger.info("Intent %s not resolved: %s", request.intent_id or "-", error.value)
    return PaymentResolution(
        success=False,
        total_amount=request.amount,
        error=error,
        explanation=explanation,
    )


def _next_best(candidates: list[FundingSource], chosen: FundingSource) -> Optional[str]:
    for source in candidates:
        if source.id != chosen.id:
            return source.name
    return None


def resolve_payment(request: PaymentRequest, context: ResolverContext) -> PaymentResolution:
    """
    Determine how to fulfil a payment.

    Args:
        request: The payment to resolve.
        context: Funding-source snapshot, guardrails, today's state and the
            user's fallback preference.

    Returns:
        A PaymentResolution. Expected business outcomes (no source,
        incompatible merchant, insufficient funds, invalid amount) come back
        as `success=False` with a user-facing explanation, never as exceptions.
    """
    amount = request.amount
    currency = request.currency

    # Step 1: Request validation
    validation = check_request(amount, currency, request.intent_id)
    if not validation.valid:
        return _failure(request, validation.error, validation.message)

    # Step 2: Linked and available sources only
    usable = [s for s in context.sources if s.is_usable]
    if not usable:
        return _failure(
            request,
            ResolutionError.NO_FUNDING_SOURCE,
            "No funding source is available. Please link a wallet, bank or card to continue.",
        )

    # Step 3: Payee compatibility
    accepted = parse_accepted_rails(request.merchant_rails)
    if accepted is not None and not accepted:
        return _failure(
            request,
            ResolutionError.NO_COMPATIBLE_RAIL,
            "This merchant only accepts payment methods we do not support yet.",
        )
    compatible = [s for s in usable if is_compatible(s.rail, accepted)]
    if not compatible:
        listed = ", ".join(request.merchant_rails or ())
        return _failure(
            request,
            ResolutionError.NO_COMPATIBLE_RAIL,
            f"This merchant accepts {listed}, and none of your linked payment methods match. "
            "Please link a compatible payment method.",
        )

    # Step 4: Rank, then look for a source that covers the amount alone
    candidates = sorted(compatible, key=source_order)
    chosen: Optional[FundingSource] = None
    top_up: Optional[TopUpPlan] = None

    for source in candidates:
        if source.balance >= amount:
            chosen = source
            break

    # Step 5: No single source covers it, plan a top-up
    if chosen is None:
        blocked: list[TopUpPlan] = []
        for source in candidates:
            plan = plan_top_up(
                source, amount, usable, context.config, context.fallback_preference, currency
            )
            if plan.possible:
                chosen, top_up = source, plan
                break
            blocked.append(plan)

        if chosen is None:
            primary = blocked[0]
            return _failure(
                request,
                ResolutionError.INSUFFICIENT_FUNDS,
                f"Not enough funds to pay {format_money(amount, currency)}. "
                f"{primary.target.name} is short by {format_money(primary.amount, currency)}. "
                f"{primary.reason}",
            )

    # Step 6: Guardrails
    state = get_or_reset_daily_state(context.user_state, context.today)
    guardrails = check_guardrails(amount, state, context.config, chosen, currency)
    reason_codes = list(guardrails.reason_codes)
    reasons = list(guardrails.reasons)

    if top_up is not None:
        reason_codes.insert(0, ReasonCode.TOPUP_REQUIRED)
        if context.fallback_preference == FallbackPreference.ASK_EACH_TIME:
            reason_codes.append(ReasonCode.ASK_BEFORE_TOP_UP)
            reasons.append("you asked to approve every top-up")

    risk_level = RiskLevel.HIGH if guardrails.high_risk else RiskLevel.LOW
    requires_confirmation = risk_level == RiskLevel.HIGH or not guardrails.can_proceed_auto or (
        ReasonCode.ASK_BEFORE_TOP_UP in reason_codes
    )
    if requires_confirmation:
        reason_codes.append(ReasonCode.CONFIRMATION_REQUIRED)

    # Step 7: Steps and explanation
    steps: list[ResolutionStep] = []
    if top_up is not None:
        steps.append(ResolutionStep(action=StepAction.TOP_UP, source_id=top_up.source.id, amount=top_up.amount))
        explanation = (
            f"Topping up {format_money(top_up.amount, currency)} from {top_up.source.name}, "
            f"then paying via {chosen.name}."
        )
    else:
        explanation = f"Using {chosen.name} with sufficient balance."
    steps.append(ResolutionStep(action=StepAction.PAY, source_id=chosen.id, amount=amount))

    if requires_confirmation and reasons:
        explanation += " " + sentence("Please confirm this payment because " + " and ".join(reasons))

    resolution = PaymentResolution(
        success=True,
        total_amount=amount,
        explanation=explanation,
        steps=tuple(steps),
        chosen_rail=chosen.name,
        chosen_source_id=chosen.id,
        fallback_rail=_next_best(candidates, chosen),
        topup_needed=top_up is not None,
        topup_amount=top_up.amount if top_up is not None else Decimal("0"),
        topup_source_id=top_up.source.id if top_up is not None else None,
        risk_level=risk_level,
        requires_confirmation=requires_confirmation,
        reason_codes=tuple(reason_codes),
    )

    logger.info(
        "Intent %s resolved: rail=%s topup=%s risk=%s reasons=%s",
        request.intent_id,
        resolution.chosen_rail,
        resolution.topup_amount if resolution.topup_needed else "none",
        resolution.risk_level.value,
        ",".join(c.value for c in resolution.reason_codes) or "none",
    )
    return resolution


def explain_resolution(resolution: PaymentResolution) -> str:
    """One-line summary of a resolution for lists and notifications."""
    if not resolution.success:
        return resolution.explanation

    if resolution.topup_needed:
        summary = f"Top up, then pay with {resolution.chosen_rail}"
    else:
        summary = f"Pay directly with {resolution.chosen_rail}"

    if resolution.requires_confirmation:
        summary += " (confirmation required)"
    return summary
