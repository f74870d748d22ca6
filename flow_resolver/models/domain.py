"""
Immutable value objects for payment resolution.

These are snapshots: the resolvers read them and return new values, they
never mutate them. Shape violations (negative balance, unparseable amount)
raise immediately because they are programmer errors, not business outcomes.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from flow_resolver.models.enums import (
    FallbackPreference,
    Rail,
    RailType,
    ReasonCode,
    ResolutionError,
    RiskLevel,
    StepAction,
)
from flow_resolver.routing.rail_catalog import lookup_rail


def to_decimal(value: Any, field_name: str) -> Decimal:
    """Convert a money value to Decimal, rejecting floats' binary noise via str()."""
    if isinstance(value, bool):
        raise TypeError(f"{field_name} must be a number, got bool")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float, str)):
        try:
            result = Decimal(str(value))
        except InvalidOperation as e:
            raise ValueError(f"{field_name} is not a valid amount: {value!r}") from e
    else:
        raise TypeError(f"{field_name} must be a number, got {type(value).__name__}")
    if not result.is_finite():
        raise ValueError(f"{field_name} must be finite, got {value!r}")
    return result


def _optional_limit(value: Any, field_name: str) -> Optional[Decimal]:
    if value is None:
        return None
    limit = to_decimal(value, field_name)
    if limit < 0:
        raise ValueError(f"{field_name} must be >= 0, got {limit}")
    return limit


@dataclass(frozen=True)
class FundingSource:
    """One linked payment instrument as of the snapshot time."""

    id: str
    type: RailType
    name: str  # Rail display name, e.g. "TouchNGo", "Maybank"
    balance: Decimal
    is_linked: bool = True
    is_available: bool = True
    priority: int = 1  # Lower = more preferred
    max_auto_top_up: Optional[Decimal] = None  # None = only the global cap applies
    require_confirm_above: Optional[Decimal] = None  # None = only the global threshold applies
    currency: str = "MYR"

    def __post_init__(self):
        if not self.id:
            raise ValueError("FundingSource.id is required")
        object.__setattr__(self, "type", RailType(self.type))
        balance = to_decimal(self.balance, "balance")
        if balance < 0:
            raise ValueError(f"Balance of {self.id} must be >= 0, got {balance}")
        object.__setattr__(self, "balance", balance)
        if isinstance(self.priority, bool) or not isinstance(self.priority, int) or self.priority < 1:
            raise ValueError(f"Priority of {self.id} must be a positive integer, got {self.priority!r}")
        object.__setattr__(self, "max_auto_top_up", _optional_limit(self.max_auto_top_up, "max_auto_top_up"))
        object.__setattr__(
            self, "require_confirm_above", _optional_limit(self.require_confirm_above, "require_confirm_above")
        )

    @property
    def rail(self) -> Optional[Rail]:
        return lookup_rail(self.name)

    @property
    def is_usable(self) -> bool:
        return self.is_linked and self.is_available


@dataclass(frozen=True)
class PaymentRequest:
    """
    A single payment to resolve.

    A non-positive amount is accepted here and reported by the resolvers as
    an invalid request, so the caller gets a renderable result.
    """

    amount: Decimal
    intent_id: str
    currency: str = "MYR"
    merchant_id: Optional[str] = None
    merchant_rails: Optional[tuple[str, ...]] = None  # None = accepts anything

    def __post_init__(self):
        object.__setattr__(self, "amount", to_decimal(self.amount, "amount"))
        if self.merchant_rails is not None:
            if isinstance(self.merchant_rails, str):
                raise TypeError("merchant_rails must be a collection of rail names, not a string")
            object.__setattr__(self, "merchant_rails", tuple(self.merchant_rails))


@dataclass(frozen=True)
class GuardrailConfig:
    """User-level policy for what may happen without asking."""

    max_auto_top_up_amount: Decimal = Decimal("100")
    max_single_payment_auto: Decimal = Decimal("50")
    require_confirmation_above: Decimal = Decimal("500")
    daily_auto_limit: Decimal = Decimal("200")
    # Reserved: a payment is always made from a single source.
    allow_split_payments: bool = False

    def __post_init__(self):
        for name in (
            "max_auto_top_up_amount",
            "max_single_payment_auto",
            "require_confirmation_above",
            "daily_auto_limit",
        ):
            value = to_decimal(getattr(self, name), name)
            if value < 0:
                raise ValueError(f"{name} must be >= 0, got {value}")
            object.__setattr__(self, name, value)
        if self.allow_split_payments:
            raise ValueError("Split payments are not supported")


@dataclass(frozen=True)
class UserPaymentState:
    """Rolling daily counter of auto-approved spend."""

    daily_auto_approved: Decimal = Decimal("0")
    last_reset_date: str = ""  # YYYY-MM-DD

    def __post_init__(self):
        amount = to_decimal(self.daily_auto_approved, "daily_auto_approved")
        if amount < 0:
            raise ValueError(f"daily_auto_approved must be >= 0, got {amount}")
        object.__setattr__(self, "daily_auto_approved", amount)


@dataclass(frozen=True)
class ResolutionStep:
    action: StepAction
    source_id: str
    amount: Decimal


@dataclass(frozen=True)
class PaymentResolution:
    """The resolver's plan for one payment. Built fresh per call, never persisted here."""

    success: bool
    total_amount: Decimal
    explanation: str
    error: Optional[ResolutionError] = None
    steps: tuple[ResolutionStep, ...] = ()
    chosen_rail: Optional[str] = None
    chosen_source_id: Optional[str] = None
    fallback_rail: Optional[str] = None
    topup_needed: bool = False
    topup_amount: Decimal = Decimal("0")
    topup_source_id: Optional[str] = None
    risk_level: RiskLevel = RiskLevel.LOW
    requires_confirmation: bool = False
    reason_codes: tuple[ReasonCode, ...] = field(default_factory=tuple)

    @property
    def guardrail_exceeded(self) -> bool:
        return ReasonCode.DAILY_LIMIT_EXCEEDED in self.reason_codes


@dataclass(frozen=True)
class ResolverContext:
    """Everything `resolve_payment` needs besides the request itself."""

    sources: tuple[FundingSource, ...]
    config: GuardrailConfig = field(default_factory=GuardrailConfig)
    user_state: Optional[UserPaymentState] = None
    fallback_preference: FallbackPreference = FallbackPreference.TOP_UP_WALLET
    today: Optional[str] = None  # YYYY-MM-DD; defaults to the configured clock

    def __post_init__(self):
        object.__setattr__(self, "sources", tuple(self.sources))
        object.__setattr__(self, "fallback_preference", FallbackPreference(self.fallback_preference))
