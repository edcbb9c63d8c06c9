from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from saferental.core.date_helper import as_utc
from saferental.core.validators import normalize_phone
from saferental.models.enums import ContactType, DeliveryStatus, FileRole, UserType

CAMEL_CONFIG = {
    "alias_generator": to_camel,
    "populate_by_name": True,
    "from_attributes": True,
}


class CamelModel(BaseModel):
    model_config = CAMEL_CONFIG


class AgreementCreate(CamelModel):
    tenant_full_name: str = Field(..., min_length=1, max_length=200)
    tenant_email: EmailStr
    tenant_phone: str
    tenant_dob: date
    tenant_address: str = Field(..., min_length=1)

    landlord_full_name: str = Field(..., min_length=1, max_length=200)
    landlord_email: EmailStr
    landlord_phone: str
    landlord_address: str = Field(..., min_length=1)

    property_address: str = Field(..., min_length=1)
    monthly_rent: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    security_deposit: Optional[Decimal] = Field(
        None, ge=0, max_digits=12, decimal_places=2
    )
    lease_duration: str = Field(..., min_length=1, max_length=100)
    lease_start_date: date
    lease_end_date: date

    @field_validator(
        "tenant_full_name",
        "tenant_address",
        "landlord_full_name",
        "landlord_address",
        "property_address",
        "lease_duration",
        mode="before",
    )
    @classmethod
    def strip_text(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("tenant_email", "landlord_email", mode="before")
    @classmethod
    def strip_email(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("tenant_phone", "landlord_phone")
    @classmethod
    def validate_phone(cls, value: str, info: ValidationInfo):
        region = (info.context or {}).get("phone_region")
        return normalize_phone(value, region)

    @field_validator("security_deposit", mode="before")
    @classmethod
    def blank_deposit(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class AgreementOut(CamelModel):
    id: uuid.UUID
    agreement_number: str

    tenant_full_name: str
    tenant_email: str
    tenant_phone: str
    tenant_dob: date
    tenant_address: str
    tenant_id_proof_url: Optional[str] = None

    landlord_full_name: str
    landlord_email: str
    landlord_phone: str
    landlord_address: str
    landlord_id_proof_url: Optional[str] = None

    property_address: str
    monthly_rent: Decimal
    security_deposit: Optional[Decimal] = None
    lease_duration: str
    lease_start_date: date
    lease_end_date: date

    tenant_verified: bool
    landlord_verified: bool
    is_active: bool
    pdf_url: Optional[str] = None
    delivery_status: DeliveryStatus
    delivery_attempts: int
    delivered_at: Optional[datetime] = None

    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at", "delivered_at")
    @classmethod
    def ensure_utc(cls, value: Optional[datetime]):
        return as_utc(value) if value is not None else None


class PublicAgreementSummary(CamelModel):
    agreement_number: str
    tenant_name: str
    landlord_name: str
    property_address: str
    monthly_rent: Decimal
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, value: datetime):
        return as_utc(value)


class VerifyAgreementOut(CamelModel):
    verified: bool = True
    agreement: PublicAgreementSummary


class OtpSendRequest(CamelModel):
    agreement_id: str = Field(..., min_length=1)
    contact_info: str = Field(..., min_length=1)
    contact_type: ContactType
    user_type: UserType

    @field_validator("contact_info", mode="before")
    @classmethod
    def strip_contact(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value


class OtpSendResponse(CamelModel):
    otp_id: uuid.UUID


class OtpVerifyRequest(CamelModel):
    otp_id: str = Field(..., min_length=1)
    otp_code: str = Field(..., min_length=1)

    @field_validator("otp_code", mode="before")
    @classmethod
    def code_as_text(cls, value):
        # clients sometimes post the code as a number
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return value


class OtpVerifyResponse(CamelModel):
    verified: bool = True


class FileUrlRequest(CamelModel):
    agreement_id: str = Field(..., min_length=1)
    file_type: FileRole
    email: str = Field(..., min_length=1)


class SignedUrlOut(CamelModel):
    signed_url: str
    expires_at: datetime


class HealthOut(BaseModel):
    status: str
    database: str


