"""
Top-up planning shared by the rule-based and smart resolvers.

A top-up moves the shortfall from one funding source into the source that
will make the payment. Both resolvers go through `plan_top_up` so they agree
on the arithmetic (deficit = amount - balance, exactly) and on which source
the money comes from.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from flow_resolver.engine.formatting import format_money
from flow_resolver.engine.guardrails import can_auto_top_up
from flow_resolver.models.domain import FundingSource, GuardrailConfig
from flow_resolver.models.enums import FallbackPreference, RailType
from flow_resolver.routing.rail_catalog import accepts_top_up, can_fund_top_up


@dataclass
class TopUpPlan:
    """Result of trying to cover a shortfall in `target`."""

    possible: bool
    target: FundingSource
    amount: Decimal
    source: Optional[FundingSource] = None
    reason: str = ""


def source_order(source: FundingSource) -> tuple:
    """Sort key: ascending priority, then descending balance, then id."""
    return (source.priority, -source.balance, source.id)


def top_up_deficit(target: FundingSource, amount: Decimal) -> Decimal:
    return max(amount - target.balance, Decimal("0"))


def _can_fund(source: FundingSource) -> bool:
    return can_fund_top_up(source.rail, source.type)


def find_top_up_source(
    target: FundingSource,
    deficit: Decimal,
    sources: Iterable[FundingSource],
    preference: FallbackPreference = FallbackPreference.TOP_UP_WALLET,
) -> Optional[FundingSource]:
    """
    Pick the source that will fund a top-up of `deficit` into `target`.

    Only linked, available sources other than the target with enough balance
    qualify. With `use_next_source` the next sources after the target in
    priority order are tried first; otherwise banks are preferred, since they
    usually hold more funds.
    """
    ordered = sorted(sources, key=source_order)
    pool = [
        s for s in ordered
        if s.is_usable and s.id != target.id and _can_fund(s) and s.balance >= deficit
    ]
    if not pool:
        return None

    if preference == FallbackPreference.USE_NEXT_SOURCE:
        after = [s for s in pool if source_order(s) > source_order(target)]
        return after[0] if after else pool[0]

    banks = [s for s in pool if s.type == RailType.BANK]
    return banks[0] if banks else pool[0]


def plan_top_up(
    target: FundingSource,
    amount: Decimal,
    sources: Iterable[FundingSource],
    config: GuardrailConfig,
    preference: FallbackPreference = FallbackPreference.TOP_UP_WALLET,
    currency: str = "MYR",
) -> TopUpPlan:
    """
    Plan a top-up so that `target` can pay `amount`.

    Never under-funds: either the whole deficit is covered by one source
    within the automatic top-up cap, or the plan is not possible and
    `reason` says why in a user-facing sentence.
    """
    deficit = top_up_deficit(target, amount)

    if not accepts_top_up(target.rail, target.type):
        return TopUpPlan(
            possible=False,
            target=target,
            amount=deficit,
            reason=f"{target.name} cannot be topped up.",
        )

    check = can_auto_top_up(deficit, config, target, currency)
    if not check.allowed:
        return TopUpPlan(possible=False, target=target, amount=deficit, reason=check.reason)

    source = find_top_up_source(target, deficit, sources, preference)
    if source is None:
        return TopUpPlan(
            possible=False,
            target=target,
            amount=deficit,
            reason=(
                f"None of your other sources has {format_money(deficit, currency)} "
                f"available to top up {target.name}."
            ),
        )

    return TopUpPlan(possible=True, target=target, amount=deficit, source=source)
