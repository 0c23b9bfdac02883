from enum import Enum

# Stored as strings (native enums disabled for easier evolution).


class AffiliateStatusEnum(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"


class TouchTypeEnum(str, Enum):
    CLICK = "click"
    IMPRESSION = "impression"
    POSTBACK = "postback"


class CommissionPlanTypeEnum(str, Enum):
    FLAT = "flat"
    PERCENT = "percent"


class CommissionAppliesToEnum(str, Enum):
    ALL_PAYMENTS = "all_payments"
    FIRST_PAYMENT_ONLY = "first_payment_only"
    RECURRING_ONLY = "recurring_only"


class CommissionStatusEnum(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    PAID = "paid"
    REVERSED = "reversed"


class PayoutMethodTypeEnum(str, Enum):
    STRIPE_CONNECT = "stripe_connect"
    PAYPAL = "paypal"
    BANK_WIRE = "bank_wire"
    CHECK = "check"
    MANUAL = "manual"


class PayoutStatusEnum(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    AWAITING_APPROVAL = "awaiting_approval"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TaxDocumentTypeEnum(str, Enum):
    W9 = "w9"
    W8BEN = "w8ben"
    W8BENE = "w8bene"


class TaxDocumentStatusEnum(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    VERIFIED = "verified"
    REJECTED = "rejected"
    EXPIRED = "expired"


class FraudSeverityEnum(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FraudAlertStatusEnum(str, Enum):
    OPEN = "open"
    INVESTIGATING = "investigating"
    DISMISSED = "dismissed"
    FALSE_POSITIVE = "false_positive"
    CONFIRMED_FRAUD = "confirmed_fraud"


class FraudResolutionActionEnum(str, Enum):
    NO_ACTION = "no_action"
    WARNING_ISSUED = "warning_issued"
    COMMISSION_REVERSED = "commission_reversed"
    AFFILIATE_SUSPENDED = "affiliate_suspended"
    AFFILIATE_TERMINATED = "affiliate_terminated"
