from .affiliates import (
    Affiliate,
    AffiliateProgram,
    PayoutMethod,
    ReferralCode,
    TaxDocument,
    Touch,
)
from .commissions import CommissionEvent, CommissionPlan, PlanAssignment
from .payouts import Payout
from .fraud_alerts import FraudAlert
