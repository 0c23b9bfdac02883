"""
Closed transition tables for the commission, payout and fraud-alert state
machines. Every status write in the engine goes through ``ensure_transition``
so a terminal row can never be silently overwritten.
"""

from __future__ import annotations

from enum import Enum

from settlement.core.errors import InvalidTransition
from settlement.models.enums import (
    CommissionStatusEnum,
    FraudAlertStatusEnum,
    PayoutStatusEnum,
)


COMMISSION_TRANSITIONS: dict[CommissionStatusEnum, frozenset[CommissionStatusEnum]] = {
    CommissionStatusEnum.PENDING: frozenset(
        {CommissionStatusEnum.APPROVED, CommissionStatusEnum.REVERSED}
    ),
    CommissionStatusEnum.APPROVED: frozenset(
        {CommissionStatusEnum.PAID, CommissionStatusEnum.REVERSED}
    ),
    CommissionStatusEnum.PAID: frozenset(),
    CommissionStatusEnum.REVERSED: frozenset(),
}

PAYOUT_TRANSITIONS: dict[PayoutStatusEnum, frozenset[PayoutStatusEnum]] = {
    PayoutStatusEnum.PENDING: frozenset(
        {
            PayoutStatusEnum.PROCESSING,
            PayoutStatusEnum.AWAITING_APPROVAL,
            PayoutStatusEnum.COMPLETED,
            PayoutStatusEnum.CANCELLED,
        }
    ),
    PayoutStatusEnum.PROCESSING: frozenset(
        {
            PayoutStatusEnum.AWAITING_APPROVAL,
            PayoutStatusEnum.COMPLETED,
            PayoutStatusEnum.FAILED,
        }
    ),
    PayoutStatusEnum.AWAITING_APPROVAL: frozenset(
        {PayoutStatusEnum.COMPLETED, PayoutStatusEnum.CANCELLED}
    ),
    PayoutStatusEnum.COMPLETED: frozenset(),
    PayoutStatusEnum.FAILED: frozenset(),
    PayoutStatusEnum.CANCELLED: frozenset(),
}

FRAUD_ALERT_TRANSITIONS: dict[FraudAlertStatusEnum, frozenset[FraudAlertStatusEnum]] = {
    FraudAlertStatusEnum.OPEN: frozenset(
        {
            FraudAlertStatusEnum.INVESTIGATING,
            FraudAlertStatusEnum.DISMISSED,
            FraudAlertStatusEnum.FALSE_POSITIVE,
            FraudAlertStatusEnum.CONFIRMED_FRAUD,
        }
    ),
    FraudAlertStatusEnum.INVESTIGATING: frozenset(
        {
            FraudAlertStatusEnum.DISMISSED,
            FraudAlertStatusEnum.FALSE_POSITIVE,
            FraudAlertStatusEnum.CONFIRMED_FRAUD,
        }
    ),
    FraudAlertStatusEnum.DISMISSED: frozenset(),
    FraudAlertStatusEnum.FALSE_POSITIVE: frozenset(),
    FraudAlertStatusEnum.CONFIRMED_FRAUD: frozenset(),
}

_TABLES = {
    CommissionStatusEnum: ("Commission", COMMISSION_TRANSITIONS),
    PayoutStatusEnum: ("Payout", PAYOUT_TRANSITIONS),
    FraudAlertStatusEnum: ("Fraud alert", FRAUD_ALERT_TRANSITIONS),
}


def can_transition(current: Enum, target: Enum) -> bool:
    label_table = _TABLES.get(type(current))
    if label_table is None or type(target) is not type(current):
        return False
    _label, table = label_table
    return target in table.get(current, frozenset())


def is_terminal(status: Enum) -> bool:
    label_table = _TABLES.get(type(status))
    if label_table is None:
        return False
    _label, table = label_table
    return not table.get(status)


def ensure_transition(current: Enum, target: Enum) -> None:
    if can_transition(current, target):
        return
    label = _TABLES.get(type(current), ("Record", {}))[0]
    raise InvalidTransition(f"{label} cannot move from {current.value} to {target.value}")
