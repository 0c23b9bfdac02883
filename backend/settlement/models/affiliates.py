from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from settlement.core.db import Base
from settlement.models.enums import (
    AffiliateStatusEnum,
    PayoutMethodTypeEnum,
    TaxDocumentStatusEnum,
    TaxDocumentTypeEnum,
    TouchTypeEnum,
)
from settlement.models.mixins import TimestampMixin


class AffiliateProgram(TimestampMixin, Base):
    __tablename__ = "affiliate_programs"
    __table_args__ = (UniqueConstraint("tenant_id", name="uq_affiliate_programs_tenant"),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    minimum_payout_cents = Column(Integer, nullable=True)
    currency = Column(String, nullable=False, default="USD")


class Affiliate(TimestampMixin, Base):
    __tablename__ = "affiliates"
    __table_args__ = (
        Index("ix_affiliates_tenant_status", "tenant_id", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=False, index=True)
    display_name = Column(String, nullable=False)
    email = Column(String, nullable=True)
    status = Column(
        Enum(
            AffiliateStatusEnum,
            name="affiliate_status_enum",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default=AffiliateStatusEnum.ACTIVE,
    )
    lifetime_conversions = Column(Integer, nullable=False, default=0)
    lifetime_revenue_cents = Column(BigInteger, nullable=False, default=0)

    referral_codes = relationship("ReferralCode", back_populates="affiliate", lazy="selectin")
    payout_methods = relationship("PayoutMethod", back_populates="affiliate", lazy="selectin")


class ReferralCode(TimestampMixin, Base):
    __tablename__ = "affiliate_referral_codes"
    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_affiliate_referral_codes_tenant_code"),
        Index("ix_affiliate_referral_codes_affiliate", "affiliate_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=False)
    affiliate_id = Column(Integer, ForeignKey("affiliates.id", ondelete="RESTRICT"), nullable=False)
    code = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)

    affiliate = relationship("Affiliate", back_populates="referral_codes", lazy="selectin")


class Touch(Base):
    # Append-only; rows carry created_at but never updated_at.
    __tablename__ = "affiliate_touches"
    __table_args__ = (
        Index("ix_affiliate_touches_tenant_fingerprint", "tenant_id", "visitor_fingerprint"),
        Index("ix_affiliate_touches_affiliate", "affiliate_id"),
        Index("ix_affiliate_touches_ref_code", "ref_code"),
    )

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, nullable=False)
    tenant_id = Column(Integer, nullable=False)
    affiliate_id = Column(Integer, ForeignKey("affiliates.id", ondelete="RESTRICT"), nullable=False)
    ref_code = Column(String, nullable=False)
    touch_type = Column(
        Enum(
            TouchTypeEnum,
            name="affiliate_touch_type_enum",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default=TouchTypeEnum.CLICK,
    )
    visitor_fingerprint = Column(String, nullable=True)
    converted_at = Column(DateTime, nullable=True)


class PayoutMethod(TimestampMixin, Base):
    __tablename__ = "affiliate_payout_methods"
    __table_args__ = (
        UniqueConstraint("affiliate_id", "method_type", name="uq_affiliate_payout_methods_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    affiliate_id = Column(Integer, ForeignKey("affiliates.id", ondelete="RESTRICT"), nullable=False, index=True)
    method_type = Column(
        Enum(
            PayoutMethodTypeEnum,
            name="payout_method_type_enum",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
    )
    is_default = Column(Boolean, nullable=False, default=False)
    is_verified = Column(Boolean, nullable=False, default=False)
    verified_at = Column(DateTime, nullable=True)
    stripe_account_id = Column(String, nullable=True)
    paypal_email = Column(String, nullable=True)
    bank_name = Column(String, nullable=True)
    bank_account_last4 = Column(String, nullable=True)
    mailing_address_line1 = Column(String, nullable=True)
    mailing_city = Column(String, nullable=True)
    mailing_state = Column(String, nullable=True)
    mailing_zip = Column(String, nullable=True)
    mailing_country = Column(String, nullable=True)

    affiliate = relationship("Affiliate", back_populates="payout_methods", lazy="selectin")

    @property
    def destination(self) -> str | None:
        if self.method_type == PayoutMethodTypeEnum.STRIPE_CONNECT:
            return self.stripe_account_id
        if self.method_type == PayoutMethodTypeEnum.PAYPAL:
            return self.paypal_email
        return None


class TaxDocument(TimestampMixin, Base):
    __tablename__ = "affiliate_tax_documents"
    __table_args__ = (
        UniqueConstraint(
            "affiliate_id",
            "document_type",
            "tax_year",
            name="uq_affiliate_tax_documents_year",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    affiliate_id = Column(Integer, ForeignKey("affiliates.id", ondelete="RESTRICT"), nullable=False, index=True)
    document_type = Column(
        Enum(
            TaxDocumentTypeEnum,
            name="tax_document_type_enum",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
    )
    tax_year = Column(Integer, nullable=False)
    status = Column(
        Enum(
            TaxDocumentStatusEnum,
            name="tax_document_status_enum",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default=TaxDocumentStatusEnum.PENDING,
    )
    submitted_at = Column(DateTime, nullable=True)
    verified_at = Column(DateTime, nullable=True)
    verified_by = Column(Integer, nullable=True)
