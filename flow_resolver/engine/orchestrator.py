"""
Resolution orchestrator: fetch, resolve, audit.

The resolvers are pure, so something has to load their inputs and persist
what follows from their decisions. For each call this module:

  1. Loads the user's snapshot through the collaborator stores
  2. Resets the daily auto-approval counter if the day changed
  3. Runs the pure resolver
  4. Writes an audit entry for the decision

Payments are recorded separately, after they actually complete, through
`record_payment_outcome`; only that call moves the daily counter.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union

from sqlalchemy.ext.asyncio import AsyncSession

from flow_resolver.audit.logger import log_event
from flow_resolver.engine.guardrails import get_or_reset_daily_state, record_auto_approved_payment
from flow_resolver.engine.resolver import resolve_payment
from flow_resolver.models.domain import PaymentRequest, PaymentResolution, ResolverContext, UserPaymentState, to_decimal
from flow_resolver.models.enums import PaymentStatus
from flow_resolver.scoring.smart_resolver import SmartResolutionContext, SmartResolutionResult, smart_resolve
from flow_resolver.stores.sql import (
    SqlConnectorHealthStore,
    SqlFundingSourceStore,
    SqlPaymentSettingsStore,
    SqlTransactionHistoryStore,
)

logger = logging.getLogger("flow_resolver.orchestrator")


async def resolve_for_user(
    session: AsyncSession,
    user_id: str,
    request: PaymentRequest,
    today: Union[str, date, None] = None,
) -> PaymentResolution:
    """
    Resolve a payment against the user's current stored snapshot.

    Args:
        session: Database session.
        user_id: Whose sources and guardrails to use.
        request: The payment to resolve.
        today: Override for the day boundary (tests, replays).

    Returns:
        The resolver's PaymentResolution. Nothing is debited.
    """
    sources_store = SqlFundingSourceStore(session)
    settings_store = SqlPaymentSettingsStore(session)

    sources = await sources_store.get_sources(user_id)
    config = await settings_store.get_config(user_id)
    preference = await settings_store.get_fallback_preference(user_id)
    state = get_or_reset_daily_state(await settings_store.get_state(user_id), today)

    resolution = resolve_payment(request, ResolverContext(
        sources=tuple(sources),
        config=config,
        user_state=state,
        fallback_preference=preference,
        today=state.last_reset_date,
    ))

    await log_event(
        session,
        "payment_resolved" if resolution.success else "payment_unresolved",
        user_id=user_id,
        intent_id=request.intent_id,
        details={
            "amount": request.amount,
            "currency": request.currency,
            "error": resolution.error,
            "chosen_rail": resolution.chosen_rail,
            "fallback_rail": resolution.fallback_rail,
            "topup_amount": resolution.topup_amount if resolution.topup_needed else None,
            "risk": resolution.risk_level,
            "reason_codes": list(resolution.reason_codes),
            "explanation": resolution.explanation,
        },
    )
    await session.commit()
    return resolution


async def smart_resolve_for_user(
    session: AsyncSession,
    context: SmartResolutionContext,
    now: Optional[datetime] = None,
) -> SmartResolutionResult:
    """Rank the user's rails for display, using their own guardrails for top-up planning."""
    config = await SqlPaymentSettingsStore(session).get_config(context.user_id)

    result = await smart_resolve(
        context,
        funding_sources=SqlFundingSourceStore(session),
        history=SqlTransactionHistoryStore(session),
        health=SqlConnectorHealthStore(session),
        config=config,
        now=now,
    )

    await log_event(session, "rails_ranked", user_id=context.user_id, details={
        "amount": context.amount,
        "intent_type": context.intent_type,
        "error": result.error,
        "recommended": result.recommended_rail.name if result.recommended_rail else None,
        "score": round(result.recommended_rail.total_score, 2) if result.recommended_rail else None,
        "alternatives": [r.name for r in result.alternatives],
        "top_up_amount": result.top_up_amount,
    })
    await session.commit()
    return result


async def record_payment_outcome(
    session: AsyncSession,
    user_id: str,
    intent_id: str,
    rail: str,
    amount: Union[Decimal, int, float, str],
    status: PaymentStatus,
    auto_approved: bool = False,
    currency: str = "MYR",
    today: Union[str, date, None] = None,
) -> UserPaymentState:
    """
    Record a payment that was actually executed.

    Appends it to the history used by the smart resolver and, for successful
    auto-approved payments, adds it to today's auto-approved total.

    Returns:
        The user's daily state after the update.
    """
    amount = to_decimal(amount, "amount")
    status = PaymentStatus(status)
    settings_store = SqlPaymentSettingsStore(session)

    await SqlTransactionHistoryStore(session).record_payment(
        user_id, intent_id, rail, amount, status, auto_approved=auto_approved, currency=currency
    )

    state = await settings_store.get_state(user_id)
    if status == PaymentStatus.SUCCESS and auto_approved:
        state = record_auto_approved_payment(state, amount, today)
    else:
        state = get_or_reset_daily_state(state, today)
    await settings_store.save_state(user_id, state)

    await log_event(session, "payment_recorded", user_id=user_id, intent_id=intent_id, details={
        "rail": rail,
        "amount": amount,
        "status": status,
        "auto_approved": auto_approved,
        "daily_auto_approved": state.daily_auto_approved,
    })
    logger.info(
        "User %s payment %s via %s: %s (auto=%s, today=%s)",
        user_id,
        intent_id,
        rail,
        status.value,
        auto_approved,
        state.daily_auto_approved,
    )

    await session.commit()
    return state
