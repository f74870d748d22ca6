"""Tests for the smart scoring resolver."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from flow_resolver.models.domain import FundingSource
from flow_resolver.models.enums import ConnectorStatus, IntentType, ResolutionError
from flow_resolver.scoring.smart_resolver import (
    RailCandidate,
    SmartResolutionContext,
    build_candidates,
    resolution_summary,
    score_rails,
    smart_resolve,
)
from flow_resolver.stores.base import ConnectorHealthStore, FundingSourceStore, TransactionHistoryStore


def _source(id, name, balance, priority=1, type="wallet", **kwargs) -> FundingSource:
    return FundingSource(id=id, type=type, name=name, balance=Decimal(str(balance)), priority=priority, **kwargs)


def _candidate(source, status=ConnectorStatus.AVAILABLE) -> RailCandidate:
    return RailCandidate(source=source, status=status)


def _context(amount, **kwargs) -> SmartResolutionContext:
    return SmartResolutionContext(user_id="u1", amount=Decimal(str(amount)), **kwargs)


class TestRanking:
    def test_full_balance_outranks_preferred_source_with_shortfall(self):
        full = _source("tng", "TouchNGo", 100, priority=2)
        short = _source("grab", "GrabPay", 25, priority=1)
        result = score_rails(_context(50), [_candidate(short), _candidate(full)], history={})

        assert result.success
        assert result.recommended_rail.funding_source_id == "tng"
        assert result.recommended_rail.total_score == pytest.approx(72.0)
        assert result.recommended_rail.display_score == 72
        assert [r.funding_source_id for r in result.alternatives] == ["grab"]
        assert result.alternatives[0].total_score == pytest.approx(54.0)
        assert not result.requires_top_up

    def test_score_breakdown(self):
        result = score_rails(_context(50), [_candidate(_source("tng", "TouchNGo", 100, priority=2))], {})
        scores = result.recommended_rail.scores
        assert (scores.compatibility, scores.balance, scores.priority, scores.history, scores.health) == (
            50.0, 100.0, 80.0, 25.0, 100.0,
        )

    def test_ties_broken_by_priority(self):
        a = _source("grab", "GrabPay", 100, priority=1)
        b = _source("boost", "Boost", 100, priority=1)
        result = score_rails(_context(30), [_candidate(a), _candidate(b)], {})
        # Same score and priority: name decides
        assert result.recommended_rail.name == "Boost"

    def test_all_viable_rails_listed(self):
        sources = [_source(f"s{i}", name, 100, priority=i + 1) for i, name in enumerate(
            ["TouchNGo", "GrabPay", "Boost", "ShopeePay", "Maybank"]
        )]
        result = score_rails(_context(30), [_candidate(s) for s in sources], {})
        assert len(result.alternatives) == 4

    def test_history_lifts_frequent_rail(self):
        a = _source("tng", "TouchNGo", 100, priority=1)
        b = _source("grab", "GrabPay", 100, priority=1)
        result = score_rails(_context(30), [_candidate(a), _candidate(b)], {"TouchNGo": 9, "GrabPay": 1})
        assert result.recommended_rail.name == "TouchNGo"

    def test_degraded_connector_scores_lower(self):
        a = _source("tng", "TouchNGo", 100, priority=1)
        b = _source("grab", "GrabPay", 100, priority=1)
        result = score_rails(_context(30), [_candidate(a, ConnectorStatus.DEGRADED), _candidate(b)], {})
        assert result.recommended_rail.name == "GrabPay"
        assert "slower than usual" in result.alternatives[0].explanation

    def test_unavailable_connector_excluded(self):
        a = _source("tng", "TouchNGo", 100, priority=1)
        b = _source("grab", "GrabPay", 10, priority=2)
        result = score_rails(_context(30), [_candidate(a, ConnectorStatus.UNAVAILABLE), _candidate(b)], {})
        assert result.recommended_rail.name == "GrabPay"
        assert result.alternatives == []

    def test_total_score_within_bounds(self):
        sources = [
            _source("tng", "TouchNGo", 0, priority=9),
            _source("maybank", "Maybank", 10_000, priority=1, type="bank"),
        ]
        result = score_rails(_context(30), [_candidate(s) for s in sources], {"Maybank": 3})
        for rail in [result.recommended_rail, *result.alternatives]:
            assert 0.0 <= rail.total_score <= 100.0

    def test_monotonic_in_balance(self):
        totals = []
        for balance in (0, 10, 25, 49, 50, 500):
            result = score_rails(_context(50), [_candidate(_source("tng", "TouchNGo", balance))], {})
            totals.append(result.recommended_rail.total_score)
        assert totals == sorted(totals)

    def test_deterministic(self):
        candidates = [
            _candidate(_source("tng", "TouchNGo", 20, priority=1)),
            _candidate(_source("maybank", "Maybank", 500, priority=2, type="bank")),
        ]
        context = _context(50, merchant_rails=["TouchNGo"])
        assert score_rails(context, candidates, {}) == score_rails(context, candidates, {})


class TestPayees:
    def test_merchant_list_excludes_other_wallets(self):
        candidates = [
            _candidate(_source("tng", "TouchNGo", 100, priority=1)),
            _candidate(_source("grab", "GrabPay", 100, priority=2)),
        ]
        result = score_rails(_context(30, merchant_rails=["GrabPay"]), candidates, {})
        assert result.recommended_rail.name == "GrabPay"
        assert result.alternatives == []
        assert result.explanation.startswith("Merchant accepts GrabPay")

    def test_recipient_preferred_wallet(self):
        candidates = [
            _candidate(_source("tng", "TouchNGo", 100, priority=1)),
            _candidate(_source("boost", "Boost", 100, priority=2)),
        ]
        context = _context(
            30,
            intent_type=IntentType.SEND_MONEY,
            recipient_wallets=["Boost"],
            recipient_preferred_wallet="Boost",
        )
        result = score_rails(context, candidates, {})
        assert result.recommended_rail.name == "Boost"
        assert "recipient's preferred wallet" in result.explanation

    def test_preferred_wallet_outranks_other_listed_wallet(self):
        candidates = [
            _candidate(_source("tng", "TouchNGo", 100, priority=1)),
            _candidate(_source("boost", "Boost", 100, priority=2)),
        ]
        context = _context(
            30,
            intent_type=IntentType.SEND_MONEY,
            recipient_wallets=["TouchNGo", "Boost"],
            recipient_preferred_wallet="Boost",
        )
        result = score_rails(context, candidates, {})
        assert result.recommended_rail.name == "Boost"
        assert result.recommended_rail.total_score == pytest.approx(89.5)
        assert [(r.name, r.total_score) for r in result.alternatives] == [("TouchNGo", pytest.approx(85.5))]
        assert result.alternatives[0].explanation.startswith("The recipient also uses TouchNGo")

    def test_preferred_wallet_alone_keeps_other_wallets(self):
        candidates = [
            _candidate(_source("tng", "TouchNGo", 0, priority=1)),
            _candidate(_source("grab", "GrabPay", 100, priority=2)),
        ]
        context = _context(30, intent_type=IntentType.SEND_MONEY, recipient_preferred_wallet="TouchNGo")
        result = score_rails(context, candidates, {})
        assert result.success
        assert result.recommended_rail.name == "GrabPay"
        assert result.recommended_rail.total_score == pytest.approx(72.0)
        assert [(r.name, r.total_score) for r in result.alternatives] == [("TouchNGo", pytest.approx(62.5))]

    def test_unknown_preferred_wallet_keeps_universal_rails(self):
        candidates = [
            _candidate(_source("maybank", "Maybank", 500, priority=1, type="bank")),
            _candidate(_source("grab", "GrabPay", 100, priority=2)),
        ]
        context = _context(30, intent_type=IntentType.SEND_MONEY, recipient_preferred_wallet="FooPay")
        result = score_rails(context, candidates, {})
        assert result.success
        assert result.recommended_rail.name == "Maybank"
        assert result.recommended_rail.scores.compatibility == 100.0
        assert [r.name for r in result.alternatives] == ["GrabPay"]

    def test_no_compatible_rail(self):
        result = score_rails(
            _context(30, merchant_rails=["Boost"]),
            [_candidate(_source("tng", "TouchNGo", 100))],
            {},
        )
        assert not result.success
        assert result.error == ResolutionError.NO_COMPATIBLE_RAIL
        assert "This merchant accepts Boost." in result.explanation
        assert result.recommended_rail is None

    def test_string_merchant_rails_rejected(self):
        with pytest.raises(TypeError):
            _context(30, merchant_rails="Boost")


class TestTopUp:
    def test_recommended_rail_needs_top_up(self):
        wallet = _source("tng", "TouchNGo", 20, priority=1)
        bank = _source("maybank", "Maybank", 1000, priority=5, type="bank")
        result = score_rails(
            _context(50, merchant_rails=["TouchNGo"]),
            [_candidate(wallet), _candidate(bank, ConnectorStatus.DEGRADED)],
            {"TouchNGo": 4},
        )

        assert result.success
        assert result.recommended_rail.name == "TouchNGo"
        assert result.recommended_rail.total_score == pytest.approx(77.2)
        assert result.requires_top_up
        assert result.top_up_amount == Decimal("30")
        assert result.top_up_source == "Maybank"
        assert result.top_up_source_id == "maybank"
        assert result.explanation.endswith("Top up RM30.00 from Maybank first.")

    def test_top_up_not_possible_is_explained(self):
        wallet = _source("tng", "TouchNGo", 20, priority=1, max_auto_top_up=Decimal("0"))
        result = score_rails(_context(50), [_candidate(wallet)], {})

        assert result.success
        assert result.requires_top_up
        assert result.top_up_amount == Decimal("30")
        assert result.top_up_source is None
        assert "Automatic top-ups into TouchNGo are turned off." in result.explanation


class TestFailures:
    def test_no_candidates(self):
        result = score_rails(_context(30), [], {})
        assert not result.success
        assert result.error == ResolutionError.NO_FUNDING_SOURCE

    def test_invalid_amount(self):
        result = score_rails(_context(0), [_candidate(_source("tng", "TouchNGo", 100))], {})
        assert result.error == ResolutionError.INVALID_REQUEST


class TestCandidates:
    def test_unlinked_sources_dropped(self):
        sources = [
            _source("tng", "TouchNGo", 100),
            _source("shopee", "ShopeePay", 100, is_linked=False),
        ]
        assert [c.source.id for c in build_candidates(sources, {})] == ["tng"]

    def test_unavailable_source_marked_unavailable(self):
        candidates = build_candidates([_source("tng", "TouchNGo", 100, is_available=False)], {})
        assert candidates[0].status == ConnectorStatus.UNAVAILABLE

    def test_status_matched_by_alias(self):
        candidates = build_candidates([_source("tng", "TouchNGo", 100)], {"Touch 'n Go": ConnectorStatus.DEGRADED})
        assert candidates[0].status == ConnectorStatus.DEGRADED

    def test_missing_status_defaults_to_available(self):
        assert build_candidates([_source("tng", "TouchNGo", 100)], {})[0].status == ConnectorStatus.AVAILABLE


class TestSummary:
    def test_best_match(self):
        result = score_rails(_context(30), [_candidate(_source("maybank", "Maybank", 100, type="bank"))], {})
        assert resolution_summary(result) == "Using Maybank - best match"

    def test_with_top_up(self):
        wallet = _source("tng", "TouchNGo", 20, priority=1)
        bank = _source("maybank", "Maybank", 1000, priority=5, type="bank")
        result = score_rails(
            _context(50, merchant_rails=["TouchNGo"]),
            [_candidate(wallet), _candidate(bank, ConnectorStatus.DEGRADED)],
            {"TouchNGo": 4},
        )
        assert resolution_summary(result) == "Using TouchNGo (top up RM30.00 from Maybank)"

    def test_failure(self):
        result = score_rails(_context(30), [], {})
        assert resolution_summary(result) == result.explanation


class InMemorySources(FundingSourceStore):
    def __init__(self, sources):
        self.sources = list(sources)

    async def get_sources(self, user_id):
        return self.sources

    async def update_balance(self, source_id, balance, synced_at=None):
        raise NotImplementedError

    async def update_linked_status(self, source_id, is_linked):
        raise NotImplementedError


class InMemoryHistory(TransactionHistoryStore):
    def __init__(self, counts):
        self.counts = counts
        self.since = None

    async def successful_payment_counts(self, user_id, since):
        self.since = since
        return self.counts

    async def record_payment(self, *args, **kwargs):
        raise NotImplementedError


class InMemoryHealth(ConnectorHealthStore):
    def __init__(self, statuses):
        self.statuses = statuses

    async def get_statuses(self, user_id):
        return self.statuses

    async def set_status(self, user_id, rail, status):
        raise NotImplementedError


class TestSmartResolve:
    @pytest.mark.asyncio
    async def test_fetches_then_scores(self):
        now = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)
        history = InMemoryHistory({"GrabPay": 5})
        result = await smart_resolve(
            _context(30),
            funding_sources=InMemorySources([
                _source("tng", "TouchNGo", 100, priority=1),
                _source("grab", "GrabPay", 100, priority=1),
                _source("boost", "Boost", 100, priority=1),
            ]),
            history=history,
            health=InMemoryHealth({"Boost": ConnectorStatus.UNAVAILABLE}),
            now=now,
            lookback_days=7,
        )

        assert history.since == now - timedelta(days=7)
        assert result.recommended_rail.name == "GrabPay"
        assert [r.name for r in result.alternatives] == ["TouchNGo"]
