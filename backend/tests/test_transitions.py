import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./settlement_test.db")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("SKIP_MIGRATIONS", "1")

import pytest  # noqa: E402

from settlement.core.errors import InvalidTransition  # noqa: E402
from settlement.core.transitions import can_transition, ensure_transition, is_terminal  # noqa: E402
from settlement.models.enums import (  # noqa: E402
    CommissionStatusEnum,
    FraudAlertStatusEnum,
    PayoutStatusEnum,
)


def test_commission_lifecycle_allows_only_forward_moves():
    assert can_transition(CommissionStatusEnum.PENDING, CommissionStatusEnum.APPROVED)
    assert can_transition(CommissionStatusEnum.APPROVED, CommissionStatusEnum.PAID)
    assert can_transition(CommissionStatusEnum.PENDING, CommissionStatusEnum.REVERSED)
    assert not can_transition(CommissionStatusEnum.PENDING, CommissionStatusEnum.PAID)
    assert not can_transition(CommissionStatusEnum.PAID, CommissionStatusEnum.REVERSED)
    assert not can_transition(CommissionStatusEnum.REVERSED, CommissionStatusEnum.APPROVED)


def test_terminal_states_reject_every_write():
    for status in (PayoutStatusEnum.COMPLETED, PayoutStatusEnum.FAILED, PayoutStatusEnum.CANCELLED):
        assert is_terminal(status)
        for target in PayoutStatusEnum:
            assert not can_transition(status, target)
    assert not is_terminal(PayoutStatusEnum.PROCESSING)
    assert is_terminal(FraudAlertStatusEnum.CONFIRMED_FRAUD)


def test_processing_payout_cannot_be_cancelled():
    with pytest.raises(InvalidTransition) as exc:
        ensure_transition(PayoutStatusEnum.PROCESSING, PayoutStatusEnum.CANCELLED)
    assert exc.value.code == "invalid_transition"
    assert exc.value.status_code == 409
    assert "processing" in exc.value.message


def test_mixed_enum_types_never_transition():
    assert not can_transition(PayoutStatusEnum.PENDING, CommissionStatusEnum.APPROVED)
