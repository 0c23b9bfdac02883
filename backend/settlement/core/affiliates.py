from __future__ import annotations

import re
import secrets

from sqlalchemy.orm import Session

from settlement.core.config import settings
from settlement.core.errors import NotFound, ValidationFailed
from settlement.crud.affiliates import (
    count_referral_codes,
    create_referral_code,
    create_touch,
    get_affiliate,
    get_referral_code,
)
from settlement.models.affiliates import ReferralCode, Touch
from settlement.models.enums import AffiliateStatusEnum, TouchTypeEnum


CODE_PATTERN = re.compile(r"^[a-z0-9_-]{3,40}$")
MAX_CODE_ATTEMPTS = 5


def generate_referral_code() -> str:
    token = secrets.token_urlsafe(6).replace("-", "").replace("_", "")
    return f"aff_{token.lower()}"


def normalize_referral_code(code: str | None) -> str:
    return (code or "").strip().lower()


def issue_referral_code(
    db: Session,
    *,
    tenant_id: int,
    affiliate_id: int,
    code: str | None = None,
) -> ReferralCode:
    affiliate = get_affiliate(db, affiliate_id=affiliate_id, tenant_id=tenant_id)
    if not affiliate:
        raise NotFound("Affiliate not found")
    if affiliate.status != AffiliateStatusEnum.ACTIVE:
        raise ValidationFailed("Affiliate is not active.")
    if count_referral_codes(db, affiliate_id=affiliate_id) >= settings.AFFILIATE_MAX_REFERRAL_CODES:
        raise ValidationFailed(
            f"Affiliate already has the maximum of {settings.AFFILIATE_MAX_REFERRAL_CODES} referral codes."
        )

    if code:
        normalized = normalize_referral_code(code)
        if not CODE_PATTERN.match(normalized):
            raise ValidationFailed("Referral code must be 3-40 letters, digits, '-' or '_'.")
        try:
            return create_referral_code(db, tenant_id=tenant_id, affiliate_id=affiliate_id, code=normalized)
        except ValueError as exc:
            raise ValidationFailed(str(exc)) from exc

    for _ in range(MAX_CODE_ATTEMPTS):
        try:
            return create_referral_code(
                db,
                tenant_id=tenant_id,
                affiliate_id=affiliate_id,
                code=generate_referral_code(),
            )
        except ValueError:
            continue
    raise ValidationFailed("Could not generate a unique referral code.")


def record_touch(
    db: Session,
    *,
    tenant_id: int,
    ref_code: str,
    touch_type: TouchTypeEnum = TouchTypeEnum.CLICK,
    visitor_fingerprint: str | None = None,
) -> Touch | None:
    referral = get_referral_code(db, tenant_id=tenant_id, code=normalize_referral_code(ref_code))
    if not referral or not referral.is_active:
        return None
    return create_touch(
        db,
        tenant_id=tenant_id,
        affiliate_id=referral.affiliate_id,
        ref_code=referral.code,
        touch_type=touch_type,
        visitor_fingerprint=visitor_fingerprint,
    )
