from flow_resolver.models.enums import (
    ConnectorStatus,
    FallbackPreference,
    IntentType,
    PaymentStatus,
    Rail,
    RailType,
    ReasonCode,
    ResolutionError,
    RiskLevel,
    StepAction,
)
from flow_resolver.models.records import (
    AuditLog,
    Base,
    ConnectorRecord,
    FundingSourceRecord,
    TransactionLog,
    UserPaymentSettings,
)

__all__ = [
    "Base",
    "AuditLog",
    "ConnectorRecord",
    "FundingSourceRecord",
    "TransactionLog",
    "UserPaymentSettings",
    "ConnectorStatus",
    "FallbackPreference",
    "IntentType",
    "PaymentStatus",
    "Rail",
    "RailType",
    "ReasonCode",
    "ResolutionError",
    "RiskLevel",
    "StepAction",
]
