"""SQLAlchemy models for the collaborator stores."""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex[:12]


Money = Numeric(12, 2, asdecimal=True)


class FundingSourceRecord(Base):
    """
    A user's linked instance of a payment rail.

    Balances are cached copies refreshed by sync jobs; balance_synced_at tells
    readers how stale the snapshot is.
    """

    __tablename__ = "funding_sources"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_user_source_name"),
    )

    id = Column(String(12), primary_key=True, default=_new_id)
    user_id = Column(String(50), nullable=False, index=True)
    type = Column(String(10), nullable=False)  # wallet, bank, card, bnpl
    name = Column(String(50), nullable=False)  # e.g. "TouchNGo", "Maybank"
    balance = Column(Money, nullable=False, default=0)
    currency = Column(String(3), default="MYR")
    is_linked = Column(Boolean, nullable=False, default=True)
    is_available = Column(Boolean, nullable=False, default=True)
    priority = Column(Integer, nullable=False, default=1)
    max_auto_top_up = Column(Money, nullable=True)
    require_confirm_above = Column(Money, nullable=True)
    balance_synced_at = Column(DateTime(timezone=True), default=_utcnow)
    created_at = Column(DateTime(timezone=True), default=_utcnow)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class ConnectorRecord(Base):
    """Last known health of the connection to a rail, per user."""

    __tablename__ = "connectors"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_user_connector"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(50), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    status = Column(String(20), nullable=False, default="available")
    checked_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class TransactionLog(Base):
    """
    A payment the user actually made, reported after execution.

    Successful rows feed the history factor of the smart resolver.
    """

    __tablename__ = "transaction_logs"

    id = Column(String(12), primary_key=True, default=_new_id)
    user_id = Column(String(50), nullable=False, index=True)
    intent_id = Column(String(100), nullable=True, unique=True)
    rail_used = Column(String(50), nullable=True)
    amount = Column(Money, nullable=False)
    currency = Column(String(3), default="MYR")
    status = Column(String(20), nullable=False)  # success, failed
    auto_approved = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)


class UserPaymentSettings(Base):
    """
    Per-user guardrails, fallback preference and the daily auto-approval counter.

    Guardrail columns left NULL fall back to the application defaults.
    """

    __tablename__ = "user_payment_settings"

    user_id = Column(String(50), primary_key=True)
    fallback_preference = Column(String(20), nullable=False, default="top_up_wallet")
    max_auto_top_up_amount = Column(Money, nullable=True)
    max_single_payment_auto = Column(Money, nullable=True)
    require_confirmation_above = Column(Money, nullable=True)
    daily_auto_limit = Column(Money, nullable=True)
    daily_auto_approved = Column(Money, nullable=False, default=0)
    last_reset_date = Column(String(10), nullable=True)  # YYYY-MM-DD
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __mapper_args__ = {"version_id_col": version}


class AuditLog(Base):
    """
    Immutable audit trail entry.

    Every resolution decision and every reported payment outcome gets an
    entry. These are append-only and never modified.
    """

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(50), nullable=True, index=True)
    intent_id = Column(String(100), nullable=True, index=True)
    action = Column(String(50), nullable=False)
    details = Column(Text, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=_utcnow)
