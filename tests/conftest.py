"""Shared fixtures: a throwaway SQLite database per test, recording stand-ins
for the mailer and PDF renderer, and an app wired to both."""

import asyncio
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from saferental.app import create_app
from saferental.core.get_db import Database
from saferental.core.settings import Settings
from saferental.documents.pdf_generate import GeneratedDocument
from saferental.models.enums import ContactType
from saferental.repos.agreement_repo import AgreementRepo
from saferental.services.delivery_service import AgreementDeliveryService
from saferental.services.verification_service import VerificationService
from saferental.sms_notify.sms_service import (
    EmailOtpTransport,
    PhoneOtpTransport,
    TransportResolver,
)

SIGNING_SECRET = "test-signing-secret"

TENANT_EMAIL = "tenant@example.com"
LANDLORD_EMAIL = "landlord@example.com"
TENANT_PHONE = "+2348012345678"
LANDLORD_PHONE = "+2348023456789"


class RecordingEmailService:
    def __init__(self):
        self.otp_emails = []
        self.agreement_emails = []
        self.fail_otp = False
        self.fail_agreement = False

    async def send_otp_email(self, email, otp):
        if self.fail_otp:
            raise ConnectionError("smtp unreachable")
        self.otp_emails.append((email, otp))

    async def send_agreement_pdf(self, tenant_email, landlord_email, agreement_number, pdf_bytes):
        await asyncio.sleep(0)
        if self.fail_agreement:
            raise ConnectionError("smtp unreachable")
        self.agreement_emails.append(
            {
                "recipients": (tenant_email, landlord_email),
                "agreement_number": agreement_number,
                "size": len(pdf_bytes),
            }
        )

    def last_code_for(self, email):
        for recipient, code in reversed(self.otp_emails):
            if recipient == email:
                return code
        raise AssertionError(f"no OTP email sent to {email}")


class RecordingPdfGenerator:
    def __init__(self, output_dir: Path):
        self.output_dir = output_dir
        self.generated = []

    async def generate(self, agreement):
        await asyncio.sleep(0)
        self.generated.append(agreement.agreement_number)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / f"rental-agreement-{agreement.agreement_number}.pdf"
        pdf_bytes = b"%PDF-1.4 test document"
        path.write_bytes(pdf_bytes)
        return GeneratedDocument(pdf_bytes=pdf_bytes, path=path)


def agreement_fields(**overrides):
    fields = {
        "tenant_full_name": "Ada Tenant",
        "tenant_email": TENANT_EMAIL,
        "tenant_phone": TENANT_PHONE,
        "tenant_dob": date(1994, 5, 17),
        "tenant_address": "12 Allen Avenue, Ikeja",
        "tenant_id_proof_url": "/uploads/tenantIdProof-test.png",
        "landlord_full_name": "Bola Landlord",
        "landlord_email": LANDLORD_EMAIL,
        "landlord_phone": LANDLORD_PHONE,
        "landlord_address": "4 Awolowo Road, Ikoyi",
        "landlord_id_proof_url": "/uploads/landlordIdProof-test.pdf",
        "property_address": "7 Admiralty Way, Lekki",
        "monthly_rent": Decimal("1500.00"),
        "security_deposit": Decimal("3000.00"),
        "lease_duration": "12 months",
        "lease_start_date": date(2026, 11, 1),
        "lease_end_date": date(2027, 10, 31),
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path / 'saferental-test.db'}",
        FILE_SIGNING_SECRET=SIGNING_SECRET,
        UPLOAD_DIR=tmp_path / "uploads",
        AGREEMENTS_DIR=tmp_path / "agreements",
        EMAIL_SERVER=None,
        DEFAULT_PHONE_REGION=None,
        PARTY_EMAIL_CASE_SENSITIVE=True,
        CREATE_TABLES_ON_STARTUP=True,
        PURGE_EXPIRED_OTPS_ON_STARTUP=False,
        RETRY_FAILED_DELIVERIES_ON_STARTUP=False,
        ALLOWED_HOSTS_RAW="",
    )


@pytest_asyncio.fixture
async def database(settings):
    db = Database(settings.DATABASE_URL)
    await db.connect()
    await db.create_all()
    yield db
    await db.close()


@pytest_asyncio.fixture
async def session(database):
    async with database.session() as db:
        yield db


@pytest.fixture
def email_service():
    return RecordingEmailService()


@pytest.fixture
def pdf_generator(tmp_path):
    return RecordingPdfGenerator(tmp_path / "agreements")


@pytest.fixture
def transports(email_service):
    return TransportResolver(
        {
            ContactType.EMAIL: EmailOtpTransport(email_service),
            ContactType.PHONE: PhoneOtpTransport(),
        }
    )


@pytest.fixture
def delivery(pdf_generator, email_service):
    return AgreementDeliveryService(pdf_generator=pdf_generator, email_service=email_service)


@pytest.fixture
def make_verification_service(settings, transports, delivery):
    def factory(db):
        return VerificationService(db, settings=settings, transports=transports, delivery=delivery)

    return factory


@pytest_asyncio.fixture
async def make_agreement(session):
    counter = {"seq": 0}

    async def factory(**overrides):
        counter["seq"] += 1
        overrides.setdefault("agreement_number", f"SR-2026-{counter['seq']:06d}")
        return await AgreementRepo(session).create(agreement_fields(**overrides))

    return factory


@pytest.fixture
def client(settings, email_service, transports, delivery):
    app = create_app(
        settings,
        email_service=email_service,
        transports=transports,
        delivery=delivery,
    )
    with TestClient(app) as test_client:
        yield test_client
