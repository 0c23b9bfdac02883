from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from settlement.api.dependencies import Reviewer, require_reviewer
from settlement.core.affiliates import issue_referral_code
from settlement.core.db import get_db
from settlement.core.errors import NotFound, ValidationFailed
from settlement.crud.affiliates import (
    create_affiliate,
    create_tax_document,
    get_affiliate,
    get_payout_method,
    get_tax_document,
    list_affiliates,
    upsert_payout_method,
    upsert_program,
    verify_payout_method,
    verify_tax_document,
)
from settlement.models.enums import PayoutMethodTypeEnum
from settlement.schemas.affiliates import (
    AffiliateCreate,
    AffiliateProgramRead,
    AffiliateProgramUpdate,
    AffiliateRead,
    PayoutMethodRead,
    PayoutMethodUpsert,
    ReferralCodeCreate,
    ReferralCodeRead,
    TaxDocumentCreate,
    TaxDocumentRead,
)


router = APIRouter(prefix="/admin/affiliates", tags=["affiliates"])

ADMIN_ROLES = {"admin"}
REQUIRED_DESTINATION = {
    PayoutMethodTypeEnum.STRIPE_CONNECT: "stripe_account_id",
    PayoutMethodTypeEnum.PAYPAL: "paypal_email",
}


def _require_affiliate(db: Session, *, affiliate_id: int, tenant_id: int):
    affiliate = get_affiliate(db, affiliate_id=affiliate_id, tenant_id=tenant_id)
    if not affiliate:
        raise NotFound("Affiliate not found")
    return affiliate


@router.get("", response_model=list[AffiliateRead])
def get_affiliates(
    tenant_id: int = Query(...),
    db: Session = Depends(get_db),
    _reviewer: Reviewer = Depends(require_reviewer()),
):
    return [AffiliateRead.model_validate(row) for row in list_affiliates(db, tenant_id=tenant_id)]


@router.post("", response_model=AffiliateRead, status_code=status.HTTP_201_CREATED)
def post_affiliate(
    payload: AffiliateCreate,
    db: Session = Depends(get_db),
    _reviewer: Reviewer = Depends(require_reviewer(ADMIN_ROLES)),
):
    affiliate = create_affiliate(
        db,
        tenant_id=payload.tenant_id,
        display_name=payload.display_name.strip(),
        email=payload.email,
    )
    return AffiliateRead.model_validate(affiliate)


@router.put("/program", response_model=AffiliateProgramRead)
def put_program(
    payload: AffiliateProgramUpdate,
    tenant_id: int = Query(...),
    db: Session = Depends(get_db),
    _reviewer: Reviewer = Depends(require_reviewer(ADMIN_ROLES)),
):
    updates = payload.model_dump(exclude_unset=True)
    if "currency" in updates and updates["currency"]:
        updates["currency"] = updates["currency"].upper()
    program = upsert_program(db, tenant_id=tenant_id, updates=updates)
    return AffiliateProgramRead.model_validate(program)


@router.post(
    "/{affiliate_id}/referral-codes",
    response_model=ReferralCodeRead,
    status_code=status.HTTP_201_CREATED,
)
def post_referral_code(
    affiliate_id: int,
    payload: ReferralCodeCreate,
    db: Session = Depends(get_db),
    _reviewer: Reviewer = Depends(require_reviewer(ADMIN_ROLES)),
):
    referral_code = issue_referral_code(
        db,
        tenant_id=payload.tenant_id,
        affiliate_id=affiliate_id,
        code=payload.code,
    )
    return ReferralCodeRead.model_validate(referral_code)


@router.put("/{affiliate_id}/payout-methods", response_model=PayoutMethodRead)
def put_payout_method(
    affiliate_id: int,
    payload: PayoutMethodUpsert,
    db: Session = Depends(get_db),
    _reviewer: Reviewer = Depends(require_reviewer(ADMIN_ROLES)),
):
    _require_affiliate(db, affiliate_id=affiliate_id, tenant_id=payload.tenant_id)
    details = payload.model_dump(exclude={"tenant_id", "method_type"}, exclude_unset=True)
    required = REQUIRED_DESTINATION.get(payload.method_type)
    if required and not details.get(required):
        raise ValidationFailed(f"{required} is required for {payload.method_type.value}.")
    method = upsert_payout_method(
        db,
        affiliate_id=affiliate_id,
        method_type=payload.method_type,
        details=details,
    )
    return PayoutMethodRead.model_validate(method)


@router.post(
    "/{affiliate_id}/payout-methods/{method_type}/verify",
    response_model=PayoutMethodRead,
)
def post_verify_payout_method(
    affiliate_id: int,
    method_type: PayoutMethodTypeEnum,
    tenant_id: int = Query(...),
    db: Session = Depends(get_db),
    _reviewer: Reviewer = Depends(require_reviewer({"admin", "finance"})),
):
    _require_affiliate(db, affiliate_id=affiliate_id, tenant_id=tenant_id)
    method = get_payout_method(db, affiliate_id=affiliate_id, method_type=method_type)
    if not method:
        raise NotFound("Payout method not found")
    return PayoutMethodRead.model_validate(verify_payout_method(db, method=method))


@router.post(
    "/{affiliate_id}/tax-documents",
    response_model=TaxDocumentRead,
    status_code=status.HTTP_201_CREATED,
)
def post_tax_document(
    affiliate_id: int,
    payload: TaxDocumentCreate,
    db: Session = Depends(get_db),
    _reviewer: Reviewer = Depends(require_reviewer({"admin", "finance"})),
):
    _require_affiliate(db, affiliate_id=affiliate_id, tenant_id=payload.tenant_id)
    try:
        document = create_tax_document(
            db,
            affiliate_id=affiliate_id,
            document_type=payload.document_type,
            tax_year=payload.tax_year,
        )
    except ValueError as exc:
        raise ValidationFailed(str(exc)) from exc
    return TaxDocumentRead.model_validate(document)


@router.post(
    "/{affiliate_id}/tax-documents/{document_id}/verify",
    response_model=TaxDocumentRead,
)
def post_verify_tax_document(
    affiliate_id: int,
    document_id: int,
    tenant_id: int = Query(...),
    db: Session = Depends(get_db),
    reviewer: Reviewer = Depends(require_reviewer({"admin", "finance"})),
):
    _require_affiliate(db, affiliate_id=affiliate_id, tenant_id=tenant_id)
    document = get_tax_document(db, document_id=document_id)
    if not document or document.affiliate_id != affiliate_id:
        raise NotFound("Tax document not found")
    document = verify_tax_document(db, document=document, verified_by=reviewer.user_id)
    return TaxDocumentRead.model_validate(document)
