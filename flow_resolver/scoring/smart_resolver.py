"""
Smart resolution: score every rail the user has and explain the ranking.

Where the rule-based resolver produces one executable plan, this produces
the ranked view shown to the user ("why this rail") so they can override it.

`score_rails` is pure. `smart_resolve` fetches the user's sources, recent
history and connector health through the collaborator stores, then calls
`score_rails`.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, Mapping, Optional

from flow_resolver.config import settings
from flow_resolver.engine.formatting import format_money, sentence
from flow_resolver.engine.guardrails import DEFAULT_GUARDRAILS
from flow_resolver.engine.topup import plan_top_up, top_up_deficit
from flow_resolver.engine.validation import check_request
from flow_resolver.models.domain import FundingSource, GuardrailConfig, to_decimal
from flow_resolver.models.enums import (
    ConnectorStatus,
    FallbackPreference,
    IntentType,
    Rail,
    RailType,
    ResolutionError,
)
from flow_resolver.routing.rail_catalog import is_universal, lookup_rail
from flow_resolver.scoring.factors import (
    FactorScores,
    PayeeRails,
    score_balance,
    score_compatibility,
    score_health,
    score_history,
    score_priority,
)
from flow_resolver.stores.base import ConnectorHealthStore, FundingSourceStore, TransactionHistoryStore

logger = logging.getLogger("flow_resolver.smart_resolver")


@dataclass(frozen=True)
class SmartResolutionContext:
    """What the user is paying, and to whom."""

    user_id: str
    amount: Decimal
    intent_type: IntentType = IntentType.PAY_MERCHANT
    merchant_rails: Optional[tuple[str, ...]] = None
    recipient_wallets: Optional[tuple[str, ...]] = None
    recipient_preferred_wallet: Optional[str] = None
    currency: str = "MYR"

    def __post_init__(self):
        object.__setattr__(self, "amount", to_decimal(self.amount, "amount"))
        object.__setattr__(self, "intent_type", IntentType(self.intent_type))
        for name in ("merchant_rails", "recipient_wallets"):
            value = getattr(self, name)
            if value is not None:
                if isinstance(value, str):
                    raise TypeError(f"{name} must be a collection of rail names, not a string")
                object.__setattr__(self, name, tuple(value))


@dataclass(frozen=True)
class RailCandidate:
    """A linked funding source together with the health of its connector."""

    source: FundingSource
    status: ConnectorStatus


@dataclass
class ScoredRail:
    name: str
    rail: Optional[Rail]
    funding_source_id: str
    type: RailType
    balance: Decimal
    priority: int
    status: ConnectorStatus
    scores: FactorScores
    total_score: float  # Kept precise for ranking
    explanation: str = ""

    @property
    def display_score(self) -> int:
        return int(Decimal(str(self.total_score)).quantize(Decimal("1")))


@dataclass
class SmartResolutionResult:
    success: bool
    explanation: str
    error: Optional[ResolutionError] = None
    recommended_rail: Optional[ScoredRail] = None
    alternatives: list[ScoredRail] = field(default_factory=list)
    requires_top_up: bool = False
    top_up_amount: Optional[Decimal] = None
    top_up_source: Optional[str] = None
    top_up_source_id: Optional[str] = None
    currency: str = "MYR"


def _status_for(source: FundingSource, statuses: Mapping[str, ConnectorStatus]) -> ConnectorStatus:
    if not source.is_available:
        return ConnectorStatus.UNAVAILABLE
    if source.name in statuses:
        return ConnectorStatus(statuses[source.name])
    rail = source.rail
    for name, status in statuses.items():
        if rail is not None and lookup_rail(name) == rail:
            return ConnectorStatus(status)
    return ConnectorStatus.AVAILABLE


def build_candidates(
    sources: Iterable[FundingSource],
    statuses: Mapping[str, ConnectorStatus],
) -> list[RailCandidate]:
    """Linked sources with their connector health. Sources without a health record count as available."""
    return [RailCandidate(source=s, status=_status_for(s, statuses)) for s in sources if s.is_linked]


def _explain(scored: ScoredRail, context: SmartResolutionContext, payee: PayeeRails) -> str:
    parts: list[str] = []
    rail = scored.rail
    currency = context.currency

    sending = context.intent_type == IntentType.SEND_MONEY
    if sending and payee.preferred is not None and rail == payee.preferred:
        parts.append(f"{scored.name} is the recipient's preferred wallet")
    elif payee.merchant and rail in payee.merchant:
        parts.append(f"merchant accepts {scored.name}")
    elif sending and payee.recipient and rail in payee.recipient:
        parts.append(f"the recipient also uses {scored.name}")
    elif scored.scores.compatibility == 100 and is_universal(rail):
        parts.append(f"{scored.name} works with any merchant or recipient")
    else:
        parts.append(f"{scored.name} is available")

    if scored.scores.balance == 100:
        parts.append(f"fully funded ({format_money(scored.balance, currency)} available)")
    else:
        shortfall = context.amount - scored.balance
        parts.append(f"needs a top-up of {format_money(shortfall, currency)}")

    if scored.priority == 1:
        parts.append("your preferred payment method")

    if scored.status == ConnectorStatus.DEGRADED:
        parts.append("its connection is slower than usual right now")

    return sentence(*parts)


def score_rails(
    context: SmartResolutionContext,
    candidates: list[RailCandidate],
    history: Mapping[str, int],
    config: GuardrailConfig = DEFAULT_GUARDRAILS,
) -> SmartResolutionResult:
    """
    Score and rank every candidate rail.

    Args:
        context: The payment and its payee.
        candidates: The user's linked sources with connector health.
        history: Successful payment counts per rail name in the lookback window.
        config: Guardrails used to plan a top-up for the recommended rail.

    Returns:
        SmartResolutionResult with the recommended rail first and every
        other viable rail in ranked order. Rails the payee cannot accept or
        whose connector is down are left out.
    """
    amount = context.amount
    currency = context.currency

    validation = check_request(amount, currency)
    if not validation.valid:
        return SmartResolutionResult(
            success=False, error=validation.error, explanation=validation.message
        )

    if not candidates:
        return SmartResolutionResult(
            success=False,
            error=ResolutionError.NO_FUNDING_SOURCE,
            explanation="No payment apps are connected. Please connect at least one wallet or bank.",
        )

    payee = PayeeRails.parse(
        context.merchant_rails,
        context.recipient_wallets,
        context.recipient_preferred_wallet,
    )

    scored: list[ScoredRail] = []
    for candidate in candidates:
        source = candidate.source
        scores = FactorScores(
            compatibility=score_compatibility(source.rail, context.intent_type, payee),
            balance=score_balance(source.balance, amount),
            priority=score_priority(source.priority),
            history=score_history(source, history),
            health=score_health(candidate.status),
        )
        scored.append(ScoredRail(
            name=source.name,
            rail=source.rail,
            funding_source_id=source.id,
            type=source.type,
            balance=source.balance,
            priority=source.priority,
            status=candidate.status,
            scores=scores,
            total_score=scores.weighted_total(),
        ))

    viable = sorted(
        (r for r in scored if r.scores.compatibility > 0 and r.scores.health > 0),
        key=lambda r: (-r.total_score, r.priority, r.name, r.funding_source_id),
    )

    if not viable:
        accepted = ""
        if context.merchant_rails:
            accepted = f"This merchant accepts {', '.join(context.merchant_rails)}. "
        return SmartResolutionResult(
            success=False,
            error=ResolutionError.NO_COMPATIBLE_RAIL,
            explanation=f"{accepted}None of your connected apps can make this payment. "
            "Please connect a compatible payment app.",
        )

    for rail in viable:
        rail.explanation = _explain(rail, context, payee)

    recommended = viable[0]
    result = SmartResolutionResult(
        success=True,
        recommended_rail=recommended,
        alternatives=viable[1:],
        explanation=recommended.explanation,
        currency=currency,
    )

    by_id = {c.source.id: c.source for c in candidates}
    target = by_id[recommended.funding_source_id]
    if target.balance < amount:
        plan = plan_top_up(
            target,
            amount,
            (c.source for c in candidates if c.status != ConnectorStatus.UNAVAILABLE),
            config,
            FallbackPreference.TOP_UP_WALLET,
            currency,
        )
        result.requires_top_up = True
        result.top_up_amount = top_up_deficit(target, amount)
        if plan.possible:
            result.top_up_source = plan.source.name
            result.top_up_source_id = plan.source.id
            result.explanation += f" Top up {format_money(plan.amount, currency)} from {plan.source.name} first."
        else:
            result.explanation += f" {plan.reason}"

    logger.info(
        "Smart resolution for user %s: %s (%.1f) with %d alternative(s)",
        context.user_id,
        recommended.name,
        recommended.total_score,
        len(result.alternatives),
    )
    return result


async def smart_resolve(
    context: SmartResolutionContext,
    *,
    funding_sources: FundingSourceStore,
    history: TransactionHistoryStore,
    health: ConnectorHealthStore,
    config: GuardrailConfig = DEFAULT_GUARDRAILS,
    now: Optional[datetime] = None,
    lookback_days: Optional[int] = None,
) -> SmartResolutionResult:
    """Fetch the user's rails, history and connector health, then score them."""
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=lookback_days or settings.history_lookback_days)

    sources = await funding_sources.get_sources(context.user_id)
    usage = await history.successful_payment_counts(context.user_id, since)
    statuses = await health.get_statuses(context.user_id)

    return score_rails(context, build_candidates(sources, statuses), usage, config)


def resolution_summary(result: SmartResolutionResult) -> str:
    """Short summary of why a rail was chosen, for UI display."""
    if not result.success or result.recommended_rail is None:
        return result.explanation

    rail = result.recommended_rail
    parts = [f"Using {rail.name}"]

    if result.requires_top_up and result.top_up_amount:
        source = result.top_up_source or "another source"
        parts.append(f"(top up {format_money(result.top_up_amount, result.currency)} from {source})")

    if rail.scores.compatibility == 100 and rail.scores.balance == 100:
        parts.append("- best match")

    return " ".join(parts)
