import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from saferental.core.date_helper import utcnow
from saferental.core.get_db import Base

from .enums import ContactType, DeliveryStatus, UserType


class Agreement(Base):
    __tablename__ = "agreements"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    agreement_number: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False
    )

    tenant_full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    tenant_email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    tenant_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    tenant_dob: Mapped[date] = mapped_column(Date, nullable=False)
    tenant_address: Mapped[str] = mapped_column(Text, nullable=False)
    tenant_id_proof_url: Mapped[Optional[str]] = mapped_column(
        String(512), nullable=True
    )

    landlord_full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    landlord_email: Mapped[str] = mapped_column(
        String(255), nullable=False, index=True
    )
    landlord_phone: Mapped[str] = mapped_column(String(32), nullable=False)
    landlord_address: Mapped[str] = mapped_column(Text, nullable=False)
    landlord_id_proof_url: Mapped[Optional[str]] = mapped_column(
        String(512), nullable=True
    )

    property_address: Mapped[str] = mapped_column(Text, nullable=False)
    monthly_rent: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    security_deposit: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(12, 2), nullable=True
    )
    lease_duration: Mapped[str] = mapped_column(String(100), nullable=False)
    lease_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    lease_end_date: Mapped[date] = mapped_column(Date, nullable=False)

    tenant_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    landlord_verified: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    pdf_url: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)
    delivery_status: Mapped[DeliveryStatus] = mapped_column(
        Enum(DeliveryStatus, native_enum=False),
        nullable=False,
        default=DeliveryStatus.PENDING,
        index=True,
    )
    delivery_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    delivery_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False, index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    otp_verifications: Mapped[list["OtpVerification"]] = relationship(
        "OtpVerification", back_populates="agreement", cascade="all, delete-orphan"
    )

    @property
    def fully_verified(self) -> bool:
        return bool(self.tenant_verified and self.landlord_verified)

    def email_for(self, user_type: UserType) -> str:
        if user_type == UserType.TENANT:
            return self.tenant_email
        return self.landlord_email

    def phone_for(self, user_type: UserType) -> str:
        if user_type == UserType.TENANT:
            return self.tenant_phone
        return self.landlord_phone

    def id_proof_for(self, user_type: UserType) -> Optional[str]:
        if user_type == UserType.TENANT:
            return self.tenant_id_proof_url
        return self.landlord_id_proof_url

    def __repr__(self) -> str:
        return f"<Agreement number={self.agreement_number} id={self.id}>"


class OtpVerification(Base):
    __tablename__ = "otp_verifications"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    agreement_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("agreements.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    agreement: Mapped["Agreement"] = relationship(
        "Agreement", back_populates="otp_verifications"
    )

    contact_info: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_type: Mapped[ContactType] = mapped_column(
        Enum(ContactType, native_enum=False), nullable=False
    )
    user_type: Mapped[UserType] = mapped_column(
        Enum(UserType, native_enum=False), nullable=False
    )
    otp_code: Mapped[str] = mapped_column(String(6), nullable=False)
    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    __table_args__ = (
        Index(
            "ix_otp_verifications_binding",
            "agreement_id",
            "contact_info",
            "user_type",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<OtpVerification id={self.id} agreement_id={self.agreement_id} "
            f"user_type={self.user_type.value} verified={self.verified}>"
        )


class AgreementCounter(Base):
    __tablename__ = "agreement_counters"

    year: Mapped[str] = mapped_column(String(4), primary_key=True)
    seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    def __repr__(self) -> str:
        return f"<AgreementCounter year={self.year} seq={self.seq}>"
