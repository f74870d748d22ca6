"""
Abstract collaborator stores.

The resolvers never touch storage. Whatever feeds them implements these
interfaces: funding-source snapshots, payment history for the history
factor, connector health for the health factor, and per-user payment
settings. `flow_resolver.stores.sql` provides SQLAlchemy implementations.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal
from typing import Optional

from flow_resolver.models.domain import FundingSource, GuardrailConfig, UserPaymentState
from flow_resolver.models.enums import ConnectorStatus, FallbackPreference, PaymentStatus


class StoreError(Exception):
    """Base exception for collaborator store errors."""


class SourceNotFoundError(StoreError):
    """The funding source does not exist for this user."""

    def __init__(self, source_id: str):
        super().__init__(f"Funding source not found: {source_id}")
        self.source_id = source_id


class FundingSourceStore(ABC):
    """Provides the user's funding-source snapshot and applies sync updates."""

    @abstractmethod
    async def get_sources(self, user_id: str) -> list[FundingSource]:
        """Every funding source of the user, linked or not, ordered by priority."""
        ...

    @abstractmethod
    async def update_balance(
        self,
        source_id: str,
        balance: Decimal,
        synced_at: Optional[datetime] = None,
    ) -> FundingSource:
        """
        Record a freshly synced balance.

        Raises:
            SourceNotFoundError: If the source does not exist.
        """
        ...

    @abstractmethod
    async def update_linked_status(self, source_id: str, is_linked: bool) -> FundingSource:
        """
        Mark a source linked (consent granted) or unlinked (consent revoked).

        Raises:
            SourceNotFoundError: If the source does not exist.
        """
        ...


class TransactionHistoryStore(ABC):
    """Recent payment outcomes per rail."""

    @abstractmethod
    async def successful_payment_counts(self, user_id: str, since: datetime) -> dict[str, int]:
        """Count of successful payments per rail name since `since`."""
        ...

    @abstractmethod
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
        ...


class ConnectorHealthStore(ABC):
    """Last known connector status per rail."""

    @abstractmethod
    async def get_statuses(self, user_id: str) -> dict[str, ConnectorStatus]:
        ...

    @abstractmethod
    async def set_status(self, user_id: str, rail: str, status: ConnectorStatus) -> None:
        ...


class PaymentSettingsStore(ABC):
    """Per-user guardrails, fallback preference and daily auto-approval state."""

    @abstractmethod
    async def get_config(self, user_id: str) -> GuardrailConfig:
        """The user's guardrails, falling back to the defaults for unset values."""
        ...

    @abstractmethod
    async def get_fallback_preference(self, user_id: str) -> FallbackPreference:
        ...

    @abstractmethod
    async def get_state(self, user_id: str) -> Optional[UserPaymentState]:
        """Stored daily state as is (not reset). None if the user has none yet."""
        ...

    @abstractmethod
    async def save_state(self, user_id: str, state: UserPaymentState) -> None:
        ...
