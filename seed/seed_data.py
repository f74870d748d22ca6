"""
Seed the database with realistic sample data.

Creates:
  - A demo user with wallets, banks, a card and a BNPL account
  - Connector health (one degraded, one down)
  - A month of payment history so the history factor has something to rank
  - Guardrail settings for the demo user
  - Edge cases: an unlinked wallet, a second user with a single empty wallet

Run:
    python -m seed.seed_data
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from flow_resolver.database import async_session, init_db
from flow_resolver.models.records import (
    ConnectorRecord,
    FundingSourceRecord,
    TransactionLog,
    UserPaymentSettings,
)


DEMO_USER = "user-demo"
EMPTY_USER = "user-empty"


FUNDING_SOURCES = [
    # Demo user: wallets first, banks as the top-up reservoir
    {"id": "src-tng", "user_id": DEMO_USER, "type": "wallet", "name": "TouchNGo", "balance": Decimal("42.50"), "priority": 1},
    {"id": "src-grab", "user_id": DEMO_USER, "type": "wallet", "name": "GrabPay", "balance": Decimal("15.00"), "priority": 2},
    {"id": "src-boost", "user_id": DEMO_USER, "type": "wallet", "name": "Boost", "balance": Decimal("120.00"), "priority": 3, "max_auto_top_up": Decimal("0")},
    {"id": "src-maybank", "user_id": DEMO_USER, "type": "bank", "name": "Maybank", "balance": Decimal("3250.00"), "priority": 4},
    {"id": "src-cimb", "user_id": DEMO_USER, "type": "bank", "name": "CIMB", "balance": Decimal("800.00"), "priority": 5, "require_confirm_above": Decimal("300")},
    {"id": "src-card", "user_id": DEMO_USER, "type": "card", "name": "VisaMastercard", "balance": Decimal("5000.00"), "priority": 6},
    {"id": "src-atome", "user_id": DEMO_USER, "type": "bnpl", "name": "Atome", "balance": Decimal("1500.00"), "priority": 7},

    # ─── Edge cases ────────────────────────────────────────────────────

    # Consent revoked → never chosen
    {"id": "src-shopee", "user_id": DEMO_USER, "type": "wallet", "name": "ShopeePay", "balance": Decimal("999.00"), "priority": 2, "is_linked": False},

    # Only an empty wallet → every payment is insufficient_funds
    {"id": "src-empty-tng", "user_id": EMPTY_USER, "type": "wallet", "name": "TouchNGo", "balance": Decimal("0"), "priority": 1},
]


CONNECTORS = [
    {"user_id": DEMO_USER, "name": "TouchNGo", "status": "available"},
    {"user_id": DEMO_USER, "name": "GrabPay", "status": "degraded"},
    {"user_id": DEMO_USER, "name": "Boost", "status": "available"},
    {"user_id": DEMO_USER, "name": "Maybank", "status": "available"},
    {"user_id": DEMO_USER, "name": "CIMB", "status": "unavailable"},
]


# (rail, days ago, amount, status)
HISTORY = [
    ("TouchNGo", 1, "12.40", "success"),
    ("TouchNGo", 2, "8.90", "success"),
    ("TouchNGo", 4, "23.00", "success"),
    ("TouchNGo", 6, "5.50", "success"),
    ("TouchNGo", 9, "17.20", "failed"),
    ("GrabPay", 3, "31.00", "success"),
    ("GrabPay", 12, "14.60", "success"),
    ("Maybank", 5, "420.00", "success"),
    ("Maybank", 20, "1200.00", "success"),
    ("VisaMastercard", 45, "89.00", "success"),  # Outside the default 30-day window
]


SETTINGS = [
    {
        "user_id": DEMO_USER,
        "fallback_preference": "top_up_wallet",
        "max_auto_top_up_amount": Decimal("150"),
        "daily_auto_limit": Decimal("250"),
    },
]


async def seed():
    """Seed the database with sample data."""
    await init_db()

    async with async_session() as session:
        # Check if already seeded
        existing = await session.get(FundingSourceRecord, "src-tng")
        if existing:
            print("Database already seeded. Skipping.")
            return

        for source_data in FUNDING_SOURCES:
            session.add(FundingSourceRecord(currency="MYR", **source_data))

        for connector_data in CONNECTORS:
            session.add(ConnectorRecord(**connector_data))

        now = datetime.now(timezone.utc)
        for i, (rail, days_ago, amount, status) in enumerate(HISTORY, start=1):
            session.add(TransactionLog(
                user_id=DEMO_USER,
                intent_id=f"seed-intent-{i:03d}",
                rail_used=rail,
                amount=Decimal(amount),
                status=status,
                auto_approved=Decimal(amount) <= Decimal("50"),
                created_at=now - timedelta(days=days_ago),
            ))

        for settings_data in SETTINGS:
            session.add(UserPaymentSettings(**settings_data))

        await session.commit()
        print(
            f"Seeded {len(FUNDING_SOURCES)} funding sources, {len(CONNECTORS)} connectors "
            f"and {len(HISTORY)} past payments."
        )


if __name__ == "__main__":
    asyncio.run(seed())
