"""Tests for the smart resolver's scoring factors."""

from decimal import Decimal

import pytest

from flow_resolver.models.domain import FundingSource
from flow_resolver.models.enums import ConnectorStatus, IntentType, Rail
from flow_resolver.scoring.factors import (
    WEIGHTS,
    FactorScores,
    PayeeRails,
    score_balance,
    score_compatibility,
    score_health,
    score_history,
    score_priority,
    usage_count,
)


def _wallet(name="TouchNGo") -> FundingSource:
    return FundingSource(id=name.lower(), type="wallet", name=name, balance=Decimal("0"))


class TestWeights:
    def test_weights_sum_to_100(self):
        assert sum(WEIGHTS.values()) == 100

    def test_perfect_scores_total_100(self):
        scores = FactorScores(compatibility=100, balance=100, priority=100, history=100, health=100)
        assert scores.weighted_total() == pytest.approx(100.0)

    def test_zero_scores_total_0(self):
        scores = FactorScores(compatibility=0, balance=0, priority=0, history=0, health=0)
        assert scores.weighted_total() == 0.0

    def test_weighted_total(self):
        scores = FactorScores(compatibility=50, balance=100, priority=80, history=25, health=100)
        assert scores.weighted_total() == pytest.approx(72.0)


class TestCompatibility:
    def test_no_payee_information_is_ambiguous(self):
        payee = PayeeRails.parse()
        assert score_compatibility(Rail.TOUCH_N_GO, IntentType.PAY_MERCHANT, payee) == 50.0

    def test_universal_rail_always_full(self):
        payee = PayeeRails.parse()
        assert score_compatibility(Rail.DUITNOW, IntentType.PAY_MERCHANT, payee) == 100.0
        payee = PayeeRails.parse(merchant_rails=["GrabPay"])
        assert score_compatibility(Rail.MAYBANK, IntentType.PAY_MERCHANT, payee) == 100.0

    def test_merchant_accepts_rail(self):
        payee = PayeeRails.parse(merchant_rails=["GrabPay", "Touch 'n Go"])
        assert score_compatibility(Rail.TOUCH_N_GO, IntentType.PAY_MERCHANT, payee) == 100.0

    def test_merchant_excludes_rail(self):
        payee = PayeeRails.parse(merchant_rails=["GrabPay"])
        assert score_compatibility(Rail.BOOST, IntentType.PAY_MERCHANT, payee) == 0.0

    def test_recipient_wallets_for_send_money(self):
        payee = PayeeRails.parse(recipient_wallets=["GrabPay"], recipient_preferred_wallet="Boost")
        assert score_compatibility(Rail.BOOST, IntentType.SEND_MONEY, payee) == 100.0
        assert score_compatibility(Rail.GRABPAY, IntentType.SEND_MONEY, payee) == 80.0
        assert score_compatibility(Rail.TOUCH_N_GO, IntentType.SEND_MONEY, payee) == 0.0
        assert score_compatibility(Rail.MAYBANK, IntentType.SEND_MONEY, payee) == 100.0

    def test_preferred_wallet_alone_excludes_nothing(self):
        payee = PayeeRails.parse(recipient_preferred_wallet="TouchNGo")
        assert payee.recipient is None
        assert score_compatibility(Rail.TOUCH_N_GO, IntentType.SEND_MONEY, payee) == 100.0
        assert score_compatibility(Rail.GRABPAY, IntentType.SEND_MONEY, payee) == 50.0
        assert score_compatibility(Rail.DUITNOW, IntentType.SEND_MONEY, payee) == 100.0

    def test_unknown_preferred_wallet_is_ignored(self):
        payee = PayeeRails.parse(recipient_preferred_wallet="FooPay")
        assert payee.preferred is None
        assert score_compatibility(Rail.MAYBANK, IntentType.SEND_MONEY, payee) == 100.0
        assert score_compatibility(Rail.GRABPAY, IntentType.SEND_MONEY, payee) == 50.0

    def test_preferred_wallet_only_applies_to_send_money(self):
        payee = PayeeRails.parse(recipient_preferred_wallet="Boost")
        assert score_compatibility(Rail.BOOST, IntentType.PAY_MERCHANT, payee) == 50.0

    def test_rail_without_capability_excluded(self):
        payee = PayeeRails.parse()
        assert score_compatibility(Rail.ATOME, IntentType.SEND_MONEY, payee) == 0.0

    def test_unknown_rail_is_ambiguous(self):
        assert score_compatibility(None, IntentType.PAY_MERCHANT, PayeeRails.parse()) == 50.0


class TestBalance:
    def test_covered(self):
        assert score_balance(Decimal("100"), Decimal("30")) == 100.0
        assert score_balance(Decimal("30"), Decimal("30")) == 100.0

    def test_empty_source(self):
        assert score_balance(Decimal("0"), Decimal("30")) == 0.0

    def test_partial_coverage(self):
        assert score_balance(Decimal("25"), Decimal("50")) == pytest.approx(30.0)

    def test_shortfall_always_below_full_marks(self):
        assert score_balance(Decimal("49.99"), Decimal("50")) < 100.0

    def test_monotonic_in_balance(self):
        amount = Decimal("80")
        scores = [score_balance(Decimal(b), amount) for b in range(0, 120, 5)]
        assert scores == sorted(scores)


class TestPriority:
    def test_curve(self):
        assert [score_priority(p) for p in range(1, 7)] == [100.0, 80.0, 60.0, 40.0, 20.0, 20.0]

    def test_never_increases_with_rank(self):
        scores = [score_priority(p) for p in range(1, 20)]
        assert scores == sorted(scores, reverse=True)


class TestHistory:
    def test_no_history_is_neutral(self):
        assert score_history(_wallet(), {}) == 25.0

    def test_all_payments_with_rail(self):
        assert score_history(_wallet(), {"TouchNGo": 4}) == 100.0

    def test_share_of_payments(self):
        assert score_history(_wallet(), {"TouchNGo": 1, "GrabPay": 3}) == pytest.approx(43.75)

    def test_unused_rail_keeps_neutral_floor(self):
        assert score_history(_wallet(), {"GrabPay": 3}) == 25.0

    def test_alias_spellings_counted(self):
        history = {"TouchNGo": 2, "Touch 'n Go": 1, "GrabPay": 1}
        assert usage_count(_wallet(), history) == 3


class TestHealth:
    def test_scores(self):
        assert score_health(ConnectorStatus.AVAILABLE) == 100.0
        assert score_health(ConnectorStatus.DEGRADED) == 50.0
        assert score_health(ConnectorStatus.UNAVAILABLE) == 0.0
