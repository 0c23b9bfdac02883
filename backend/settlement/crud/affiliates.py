from __future__ import annotations

from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from settlement.core.time import utcnow
from settlement.models.affiliates import (
    Affiliate,
    AffiliateProgram,
    PayoutMethod,
    ReferralCode,
    TaxDocument,
    Touch,
)
from settlement.models.enums import (
    AffiliateStatusEnum,
    PayoutMethodTypeEnum,
    TaxDocumentStatusEnum,
    TaxDocumentTypeEnum,
    TouchTypeEnum,
)


def create_affiliate(
    db: Session,
    *,
    tenant_id: int,
    display_name: str,
    email: str | None = None,
    status: AffiliateStatusEnum = AffiliateStatusEnum.ACTIVE,
) -> Affiliate:
    affiliate = Affiliate(
        tenant_id=tenant_id,
        display_name=display_name,
        email=email,
        status=status,
        lifetime_conversions=0,
        lifetime_revenue_cents=0,
    )
    db.add(affiliate)
    db.commit()
    db.refresh(affiliate)
    return affiliate


def get_affiliate(db: Session, *, affiliate_id: int, tenant_id: int | None = None) -> Affiliate | None:
    query = db.query(Affiliate).filter(Affiliate.id == affiliate_id)
    if tenant_id is not None:
        query = query.filter(Affiliate.tenant_id == tenant_id)
    return query.first()


def list_affiliates(db: Session, *, tenant_id: int) -> list[Affiliate]:
    return (
        db.query(Affiliate)
        .filter(Affiliate.tenant_id == tenant_id)
        .order_by(Affiliate.created_at.desc())
        .all()
    )


def get_program(db: Session, *, tenant_id: int) -> AffiliateProgram | None:
    return db.query(AffiliateProgram).filter(AffiliateProgram.tenant_id == tenant_id).first()


def upsert_program(db: Session, *, tenant_id: int, updates: dict) -> AffiliateProgram:
    program = get_program(db, tenant_id=tenant_id)
    if not program:
        program = AffiliateProgram(tenant_id=tenant_id, **updates)
        db.add(program)
    else:
        for key, value in updates.items():
            setattr(program, key, value)
    db.commit()
    db.refresh(program)
    return program


def count_referral_codes(db: Session, *, affiliate_id: int) -> int:
    return db.query(ReferralCode).filter(ReferralCode.affiliate_id == affiliate_id).count()


def create_referral_code(
    db: Session,
    *,
    tenant_id: int,
    affiliate_id: int,
    code: str,
) -> ReferralCode:
    referral_code = ReferralCode(
        tenant_id=tenant_id,
        affiliate_id=affiliate_id,
        code=code,
        is_active=True,
    )
    db.add(referral_code)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValueError("Referral code already exists.") from exc
    db.refresh(referral_code)
    return referral_code


def get_referral_code(db: Session, *, tenant_id: int, code: str) -> ReferralCode | None:
    return (
        db.query(ReferralCode)
        .filter(ReferralCode.tenant_id == tenant_id, ReferralCode.code == code)
        .first()
    )


def create_touch(
    db: Session,
    *,
    tenant_id: int,
    affiliate_id: int,
    ref_code: str,
    touch_type: TouchTypeEnum,
    visitor_fingerprint: str | None,
) -> Touch:
    touch = Touch(
        created_at=utcnow(),
        tenant_id=tenant_id,
        affiliate_id=affiliate_id,
        ref_code=ref_code,
        touch_type=touch_type,
        visitor_fingerprint=visitor_fingerprint,
    )
    db.add(touch)
    db.commit()
    db.refresh(touch)
    return touch


def mark_touch_converted(db: Session, *, touch_id: int, converted_at: datetime) -> bool:
    # Only the first conversion sticks; touches are otherwise immutable.
    updated = (
        db.query(Touch)
        .filter(Touch.id == touch_id, Touch.converted_at.is_(None))
        .update({Touch.converted_at: converted_at}, synchronize_session=False)
    )
    db.commit()
    return bool(updated)


def count_touches(db: Session, *, affiliate_id: int, touch_type: TouchTypeEnum | None = None) -> int:
    query = db.query(Touch).filter(Touch.affiliate_id == affiliate_id)
    if touch_type is not None:
        query = query.filter(Touch.touch_type == touch_type)
    return query.count()


def upsert_payout_method(
    db: Session,
    *,
    affiliate_id: int,
    method_type: PayoutMethodTypeEnum,
    details: dict,
) -> PayoutMethod:
    method = get_payout_method(db, affiliate_id=affiliate_id, method_type=method_type)
    if method:
        for key, value in details.items():
            setattr(method, key, value)
        # Any destination change needs re-verification.
        method.is_verified = False
        method.verified_at = None
    else:
        method = PayoutMethod(
            affiliate_id=affiliate_id,
            method_type=method_type,
            is_verified=False,
            **details,
        )
        db.add(method)
    db.commit()
    db.refresh(method)
    return method


def get_payout_method(
    db: Session,
    *,
    affiliate_id: int,
    method_type: PayoutMethodTypeEnum,
) -> PayoutMethod | None:
    return (
        db.query(PayoutMethod)
        .filter(PayoutMethod.affiliate_id == affiliate_id, PayoutMethod.method_type == method_type)
        .first()
    )


def get_verified_payout_method(
    db: Session,
    *,
    affiliate_id: int,
    method_type: PayoutMethodTypeEnum,
) -> PayoutMethod | None:
    return (
        db.query(PayoutMethod)
        .filter(
            PayoutMethod.affiliate_id == affiliate_id,
            PayoutMethod.method_type == method_type,
            PayoutMethod.is_verified.is_(True),
        )
        .first()
    )


def has_verified_payout_method(db: Session, *, affiliate_id: int) -> bool:
    return (
        db.query(PayoutMethod.id)
        .filter(PayoutMethod.affiliate_id == affiliate_id, PayoutMethod.is_verified.is_(True))
        .first()
        is not None
    )


def verify_payout_method(db: Session, *, method: PayoutMethod) -> PayoutMethod:
    method.is_verified = True
    method.verified_at = utcnow()
    db.commit()
    db.refresh(method)
    return method


def create_tax_document(
    db: Session,
    *,
    affiliate_id: int,
    document_type: TaxDocumentTypeEnum,
    tax_year: int,
) -> TaxDocument:
    document = TaxDocument(
        affiliate_id=affiliate_id,
        document_type=document_type,
        tax_year=tax_year,
        status=TaxDocumentStatusEnum.SUBMITTED,
        submitted_at=utcnow(),
    )
    db.add(document)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ValueError("Tax document already submitted for this year.") from exc
    db.refresh(document)
    return document


def get_tax_document(db: Session, *, document_id: int) -> TaxDocument | None:
    return db.query(TaxDocument).filter(TaxDocument.id == document_id).first()


def verify_tax_document(db: Session, *, document: TaxDocument, verified_by: int | None) -> TaxDocument:
    document.status = TaxDocumentStatusEnum.VERIFIED
    document.verified_at = utcnow()
    document.verified_by = verified_by
    db.commit()
    db.refresh(document)
    return document


def has_verified_tax_document(db: Session, *, affiliate_id: int, tax_year: int) -> bool:
    return (
        db.query(TaxDocument.id)
        .filter(
            TaxDocument.affiliate_id == affiliate_id,
            TaxDocument.tax_year == tax_year,
            TaxDocument.status == TaxDocumentStatusEnum.VERIFIED,
        )
        .first()
        is not None
    )
