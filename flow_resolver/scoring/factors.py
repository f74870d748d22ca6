"""
Scoring factors for the smart resolver.

Each factor rates one candidate rail from 0 to 100, independently of the
others. The total is the weighted sum:

    Compatibility 35  Can this rail pay this payee at all?
    Balance       30  Can it pay without a top-up?
    Priority      15  How high did the user rank it?
    History       10  How often does the user pay with it?
    Health        10  Is the connection up?

Curves:
  - Balance: 100 when covered, otherwise 60 * balance / amount. Any shortfall
    stays well below full marks and an empty source scores 0.
  - Priority: 100, 80, 60, 40 for priorities 1-4, then 20.
  - History: 25 + 75 * share of the user's successful payments in the
    lookback window. No history at all is neutral (25) rather than zero.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional

from flow_resolver.models.domain import FundingSource
from flow_resolver.models.enums import ConnectorStatus, IntentType, Rail
from flow_resolver.routing.rail_catalog import (
    is_compatible,
    is_universal,
    lookup_rail,
    parse_accepted_rails,
    supports_intent,
)

WEIGHTS: dict[str, int] = {
    "compatibility": 35,
    "balance": 30,
    "priority": 15,
    "history": 10,
    "health": 10,
}

assert sum(WEIGHTS.values()) == 100, "Scoring weights must total 100"

AMBIGUOUS_COMPATIBILITY = 50.0
LISTED_WALLET_COMPATIBILITY = 80.0
PARTIAL_BALANCE_MAX = 60.0
HISTORY_NEUTRAL = 25.0

HEALTH_SCORES: dict[ConnectorStatus, float] = {
    ConnectorStatus.AVAILABLE: 100.0,
    ConnectorStatus.DEGRADED: 50.0,
    ConnectorStatus.UNAVAILABLE: 0.0,
}


@dataclass(frozen=True)
class FactorScores:
    """Per-factor breakdown, each 0-100."""

    compatibility: float
    balance: float
    priority: float
    history: float
    health: float

    def weighted_total(self) -> float:
        return sum(getattr(self, factor) * weight for factor, weight in WEIGHTS.items()) / 100


@dataclass(frozen=True)
class PayeeRails:
    """A payee's accepted rails, parsed once per resolution."""

    merchant: Optional[frozenset[Rail]]
    recipient: Optional[frozenset[Rail]]
    preferred: Optional[Rail]

    @classmethod
    def parse(
        cls,
        merchant_rails=None,
        recipient_wallets=None,
        recipient_preferred_wallet: Optional[str] = None,
    ) -> "PayeeRails":
        # The preferred wallet ranks a rail; only the wallet list excludes one.
        return cls(
            merchant=parse_accepted_rails(merchant_rails),
            recipient=parse_accepted_rails(recipient_wallets),
            preferred=lookup_rail(recipient_preferred_wallet),
        )


def score_compatibility(rail: Optional[Rail], intent_type: IntentType, payee: PayeeRails) -> float:
    """
    100 if the payee accepts the rail (or it is universal), 0 if excluded,
    50 when nobody said which rails are accepted.

    When sending money, the recipient's preferred wallet scores 100 and
    the other wallets they listed score 80.
    """
    if not supports_intent(rail, intent_type):
        return 0.0

    if payee.merchant is not None:
        return 100.0 if is_compatible(rail, payee.merchant) else 0.0

    if intent_type == IntentType.SEND_MONEY:
        if rail is not None and rail == payee.preferred:
            return 100.0
        if payee.recipient is not None:
            if not is_compatible(rail, payee.recipient):
                return 0.0
            return 100.0 if is_universal(rail) else LISTED_WALLET_COMPATIBILITY

    if is_universal(rail):
        return 100.0
    return AMBIGUOUS_COMPATIBILITY


def score_balance(balance: Decimal, amount: Decimal) -> float:
    if amount <= 0 or balance >= amount:
        return 100.0
    return float(Decimal(str(PARTIAL_BALANCE_MAX)) * balance / amount)


def score_priority(priority: int) -> float:
    return float(max(20, 120 - 20 * priority))


def usage_count(source: FundingSource, history: Mapping[str, int]) -> int:
    """Successful payments recorded under this source's rail, however the rail was spelled."""
    rail = source.rail
    return sum(
        count for name, count in history.items()
        if name == source.name or (rail is not None and lookup_rail(name) == rail)
    )


def score_history(source: FundingSource, history: Mapping[str, int]) -> float:
    total = sum(history.values())
    if total <= 0:
        return HISTORY_NEUTRAL
    share = min(usage_count(source, history) / total, 1.0)
    return HISTORY_NEUTRAL + (100.0 - HISTORY_NEUTRAL) * share


def score_health(status: ConnectorStatus) -> float:
    return HEALTH_SCORES[status]
