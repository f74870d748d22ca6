from flow_resolver.stores.base import (
    ConnectorHealthStore,
    FundingSourceStore,
    PaymentSettingsStore,
    SourceNotFoundError,
    StoreError,
    TransactionHistoryStore,
)

__all__ = [
    "ConnectorHealthStore",
    "FundingSourceStore",
    "PaymentSettingsStore",
    "SourceNotFoundError",
    "StoreError",
    "TransactionHistoryStore",
]
