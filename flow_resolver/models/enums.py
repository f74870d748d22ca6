"""Enumerations for the payment resolution domain model."""

from enum import Enum


class RailType(str, Enum):
    """Kinds of payment instrument a funding source can be."""

    WALLET = "wallet"
    BANK = "bank"
    CARD = "card"
    BNPL = "bnpl"


class Rail(str, Enum):
    """Supported payment rails, keyed by a stable identifier."""

    TOUCH_N_GO = "TouchNGo"
    GRABPAY = "GrabPay"
    BOOST = "Boost"
    SHOPEEPAY = "ShopeePay"
    DUITNOW = "DuitNow"
    MAYBANK = "Maybank"
    CIMB = "CIMB"
    BANK_TRANSFER = "BankTransfer"
    CARD = "VisaMastercard"
    ATOME = "Atome"
    SPAYLATER = "SPayLater"


class Capability(str, Enum):
    """What a rail can be used for."""

    PAY_QR = "can_pay_qr"
    P2P = "can_p2p"
    RECEIVE = "can_receive"
    PAY = "can_pay"
    TOP_UP = "can_topup"
    FUND_TOP_UP = "can_fund_topup"


class IntentType(str, Enum):
    """What the user is trying to do."""

    PAY_MERCHANT = "PayMerchant"
    SEND_MONEY = "SendMoney"
    REQUEST_MONEY = "RequestMoney"
    PAY_BILL = "PayBill"


class ConnectorStatus(str, Enum):
    """Health of the connection to a rail."""

    AVAILABLE = "available"
    DEGRADED = "degraded"
    UNAVAILABLE = "unavailable"


class FallbackPreference(str, Enum):
    """What to do when the chosen source cannot cover the amount on its own."""

    TOP_UP_WALLET = "top_up_wallet"
    USE_NEXT_SOURCE = "use_next_source"
    ASK_EACH_TIME = "ask_each_time"


class StepAction(str, Enum):
    TOP_UP = "top_up"
    PAY = "pay"


class RiskLevel(str, Enum):
    LOW = "low"
    HIGH = "high"


class ResolutionError(str, Enum):
    """Categorized reasons a resolution could not produce a plan."""

    NO_FUNDING_SOURCE = "no_funding_source"
    NO_COMPATIBLE_RAIL = "no_compatible_rail"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    INVALID_REQUEST = "invalid_request"
    GUARDRAIL_EXCEEDED = "guardrail_exceeded"


class ReasonCode(str, Enum):
    """Flags attached to a successful resolution."""

    TOPUP_REQUIRED = "TOPUP_REQUIRED"
    HIGH_VALUE = "HIGH_VALUE"
    CONFIRMATION_REQUIRED = "CONFIRMATION_REQUIRED"
    DAILY_LIMIT_EXCEEDED = "DAILY_LIMIT_EXCEEDED"
    SINGLE_PAYMENT_LIMIT = "SINGLE_PAYMENT_LIMIT"
    ASK_BEFORE_TOP_UP = "ASK_BEFORE_TOP_UP"


class PaymentStatus(str, Enum):
    """Outcome of an executed payment, as reported back by the caller."""

    SUCCESS = "success"
    FAILED = "failed"
