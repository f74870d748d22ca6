"""
SQLAlchemy-backed collaborator stores.

Each store wraps an AsyncSession and only flushes; committing is left to
the caller so one request's reads and writes share a transaction.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from flow_resolver.config import settings
from flow_resolver.engine.guardrails import DEFAULT_GUARDRAILS
from flow_resolver.models.domain import FundingSource, GuardrailConfig, UserPaymentState, to_decimal
from flow_resolver.models.enums import ConnectorStatus, FallbackPreference, PaymentStatus, RailType
from flow_resolver.models.records import (
    ConnectorRecord,
    FundingSourceRecord,
    TransactionLog,
    UserPaymentSettings,
)
from flow_resolver.stores.base import (
    ConnectorHealthStore,
    FundingSourceStore,
    PaymentSettingsStore,
    SourceNotFoundError,
    TransactionHistoryStore,
)

logger = logging.getLogger("flow_resolver.stores")


def _aware(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes; everything is stored in UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _optional_money(value) -> Optional[Decimal]:
    return to_decimal(value, "amount") if value is not None else None


def to_funding_source(record: FundingSourceRecord) -> FundingSource:
    return FundingSource(
        id=record.id,
        type=RailType(record.type),
        name=record.name,
        balance=to_decimal(record.balance or 0, "balance"),
        is_linked=bool(record.is_linked),
        is_available=bool(record.is_available),
        priority=record.priority,
        max_auto_top_up=_optional_money(record.max_auto_top_up),
        require_confirm_above=_optional_money(record.require_confirm_above),
        currency=record.currency or "MYR",
    )


class SqlFundingSourceStore(FundingSourceStore):
    def __init__(self, session: AsyncSession, cache_ttl_seconds: Optional[int] = None):
        self._session = session
        self._ttl = cache_ttl_seconds if cache_ttl_seconds is not None else settings.balance_cache_ttl_seconds

    async def get_sources(self, user_id: str) -> list[FundingSource]:
        result = await self._session.execute(
            select(FundingSourceRecord)
            .where(FundingSourceRecord.user_id == user_id)
            .order_by(FundingSourceRecord.priority, FundingSourceRecord.id)
        )
        records = result.scalars().all()

        now = datetime.now(timezone.utc)
        stale = [
            r.name for r in records
            if r.is_linked and r.balance_synced_at is not None
            and (now - _aware(r.balance_synced_at)).total_seconds() > self._ttl
        ]
        if stale:
            logger.warning(
                "User %s: balances older than %ds for %s",
                user_id,
                self._ttl,
                ", ".join(stale),
            )

        return [to_funding_source(r) for r in records]

    async def _get(self, source_id: str) -> FundingSourceRecord:
        record = await self._session.get(FundingSourceRecord, source_id)
        if record is None:
            raise SourceNotFoundError(source_id)
        return record

    async def update_balance(
        self,
        source_id: str,
        balance: Decimal,
        synced_at: Optional[datetime] = None,
    ) -> FundingSource:
        balance = to_decimal(balance, "balance")
        if balance < 0:
            raise ValueError(f"Balance must be >= 0, got {balance}")

        record = await self._get(source_id)
        record.balance = balance
        record.balance_synced_at = synced_at or datetime.now(timezone.utc)
        await self._session.flush()
        logger.info("Source %s balance synced: %s", source_id, balance)
        return to_funding_source(record)

    async def update_linked_status(self, source_id: str, is_linked: bool) -> FundingSource:
        record = await self._get(source_id)
        record.is_linked = is_linked
        await self._session.flush()
        logger.info("Source %s %s", source_id, "linked" if is_linked else "unlinked")
        return to_funding_source(record)


class SqlTransactionHistoryStore(TransactionHistoryStore):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def successful_payment_counts(self, user_id: str, since: datetime) -> dict[str, int]:
        result = await self._session.execute(
            select(TransactionLog.rail_used, func.count(TransactionLog.id))
            .where(
                TransactionLog.user_id == user_id,
                TransactionLog.status == PaymentStatus.SUCCESS.value,
                TransactionLog.created_at >= since,
                TransactionLog.rail_used.is_not(None),
            )
            .group_by(TransactionLog.rail_used)
        )
        return {rail: count for rail, count in result.all()}

    async def record_payment(
        self,
        user_id: str,
        intent_id: str,
        rail: str,
        amount: Decimal,
        status: PaymentStatus,
        auto_approved: bool = False,
        currency: str = "MYR",
    ) -> None:
        self._session.add(TransactionLog(
            user_id=user_id,
            intent_id=intent_id,
            rail_used=rail,
            amount=to_decimal(amount, "amount"),
            currency=currency,
            status=PaymentStatus(status).value,
            auto_approved=auto_approved,
            created_at=datetime.now(timezone.utc),
        ))
        await self._session.flush()


class SqlConnectorHealthStore(ConnectorHealthStore):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_statuses(self, user_id: str) -> dict[str, ConnectorStatus]:
        result = await self._session.execute(
            select(ConnectorRecord).where(ConnectorRecord.user_id == user_id)
        )
        return {c.name: ConnectorStatus(c.status) for c in result.scalars().all()}

    async def set_status(self, user_id: str, rail: str, status: ConnectorStatus) -> None:
        result = await self._session.execute(
            select(ConnectorRecord).where(
                ConnectorRecord.user_id == user_id,
                ConnectorRecord.name == rail,
            )
        )
        record = result.scalar_one_or_none()
        if record is None:
            record = ConnectorRecord(user_id=user_id, name=rail)
            self._session.add(record)
        record.status = ConnectorStatus(status).value
        await self._session.flush()


class SqlPaymentSettingsStore(PaymentSettingsStore):
    """
    Settings and daily state live in one row per user.

    The row carries a version column, so two requests updating the same
    user's daily counter concurrently cannot silently overwrite each other:
    the second flush raises StaleDataError.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def _row(self, user_id: str) -> Optional[UserPaymentSettings]:
        return await self._session.get(UserPaymentSettings, user_id)

    async def get_config(self, user_id: str) -> GuardrailConfig:
        row = await self._row(user_id)
        if row is None:
            return DEFAULT_GUARDRAILS

        def pick(value, default: Decimal) -> Decimal:
            return to_decimal(value, "guardrail") if value is not None else default

        return GuardrailConfig(
            max_auto_top_up_amount=pick(row.max_auto_top_up_amount, DEFAULT_GUARDRAILS.max_auto_top_up_amount),
            max_single_payment_auto=pick(row.max_single_payment_auto, DEFAULT_GUARDRAILS.max_single_payment_auto),
            require_confirmation_above=pick(
                row.require_confirmation_above, DEFAULT_GUARDRAILS.require_confirmation_above
            ),
            daily_auto_limit=pick(row.daily_auto_limit, DEFAULT_GUARDRAILS.daily_auto_limit),
        )

    async def get_fallback_preference(self, user_id: str) -> FallbackPreference:
        row = await self._row(user_id)
        if row is None or not row.fallback_preference:
            return FallbackPreference.TOP_UP_WALLET
        return FallbackPreference(row.fallback_preference)

    async def get_state(self, user_id: str) -> Optional[UserPaymentState]:
        row = await self._row(user_id)
        if row is None or not row.last_reset_date:
            return None
        return UserPaymentState(
            daily_auto_approved=to_decimal(row.daily_auto_approved or 0, "daily_auto_approved"),
            last_reset_date=row.last_reset_date,
        )

    async def save_state(self, user_id: str, state: UserPaymentState) -> None:
        row = await self._row(user_id)
        if row is None:
            row = UserPaymentSettings(user_id=user_id)
            self._session.add(row)
        row.daily_auto_approved = state.daily_auto_approved
        row.last_reset_date = state.last_reset_date
        await self._session.flush()
