"""Shared test fixtures."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from flow_resolver.models.domain import FundingSource
from flow_resolver.models.records import (
    Base,
    ConnectorRecord,
    FundingSourceRecord,
    TransactionLog,
    UserPaymentSettings,
)


def make_source(
    id: str,
    name: str,
    balance,
    priority: int = 1,
    type: str = "wallet",
    **kwargs,
) -> FundingSource:
    return FundingSource(id=id, type=type, name=name, balance=Decimal(str(balance)), priority=priority, **kwargs)


@pytest.fixture
def wallet_and_bank():
    """A low-balance wallet the user prefers and a well-funded bank behind it."""
    return (
        make_source("tng", "TouchNGo", "20.00", priority=1),
        make_source("maybank", "Maybank", "40.00", priority=2, type="bank"),
    )


@pytest_asyncio.fixture
async def db_session():
    """Create a fresh in-memory database for each test."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def seeded_session(db_session: AsyncSession):
    """Database session pre-loaded with one user's sources, connectors, history and settings."""
    now = datetime.now(timezone.utc)
    sources = [
        FundingSourceRecord(id="src-tng", user_id="u1", type="wallet", name="TouchNGo", balance=Decimal("20.00"), priority=1),
        FundingSourceRecord(id="src-grab", user_id="u1", type="wallet", name="GrabPay", balance=Decimal("300.00"), priority=2),
        FundingSourceRecord(id="src-maybank", user_id="u1", type="bank", name="Maybank", balance=Decimal("1000.00"), priority=3),
        FundingSourceRecord(id="src-shopee", user_id="u1", type="wallet", name="ShopeePay", balance=Decimal("999.00"), priority=1, is_linked=False),
        FundingSourceRecord(id="src-other", user_id="u2", type="wallet", name="TouchNGo", balance=Decimal("5.00"), priority=1),
    ]
    for source in sources:
        db_session.add(source)

    db_session.add(ConnectorRecord(user_id="u1", name="GrabPay", status="degraded"))

    history = [
        ("h1", "TouchNGo", "success", 1),
        ("h2", "TouchNGo", "success", 3),
        ("h3", "Touch 'n Go", "success", 5),
        ("h4", "GrabPay", "failed", 2),
        ("h5", "Maybank", "success", 60),
    ]
    for intent_id, rail, status, days_ago in history:
        db_session.add(TransactionLog(
            user_id="u1",
            intent_id=intent_id,
            rail_used=rail,
            amount=Decimal("10.00"),
            status=status,
            created_at=now - timedelta(days=days_ago),
        ))

    db_session.add(UserPaymentSettings(user_id="u1", daily_auto_limit=Decimal("100")))
    await db_session.commit()

    yield db_session
