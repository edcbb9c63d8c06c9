import logging
import re
import uuid
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from fastapi import UploadFile
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from saferental.core.date_helper import utcnow
from saferental.core.exceptions import (
    AllocationError,
    NotFound,
    NotFullyVerified,
    ValidationError,
)
from saferental.core.settings import Settings
from saferental.core.threads import run_in_thread
from saferental.core.validators import parse_uuid
from saferental.models.models import Agreement
from saferental.repos.agreement_repo import AgreementRepo
from saferental.repos.counter_repo import AgreementCounterRepo
from saferental.schemas.schema import AgreementCreate, PublicAgreementSummary
from saferental.security.security_generate import generate_upload_name
from saferental.security.signed_url import UPLOAD_URL_PREFIX

logger = logging.getLogger(__name__)

UPLOAD_FIELDS = {
    "tenant_id_proof_url": "tenantIdProof",
    "landlord_id_proof_url": "landlordIdProof",
}

ALLOWED_UPLOAD_MIME = re.compile(r"jpeg|jpg|png|pdf")


def format_agreement_number(year: int | str, seq: int) -> str:
    return f"SR-{year}-{seq:06d}"


def describe_validation_error(error: PydanticValidationError) -> str:
    problems = []
    for err in error.errors():
        field = ".".join(str(part) for part in err.get("loc", ())) or "request"
        problems.append(f"{field}: {err.get('msg')}")
    return "Invalid agreement data. " + "; ".join(problems)


class AgreementService:
    def __init__(self, db, settings: Settings):
        self.repo: AgreementRepo = AgreementRepo(db)
        self.counter_repo: AgreementCounterRepo = AgreementCounterRepo(db)
        self.settings = settings

    async def next_agreement_number(self, now: Optional[datetime] = None) -> str:
        year = (now or utcnow()).year
        try:
            seq = await self.counter_repo.increment(str(year))
        except SQLAlchemyError as e:
            logger.exception(f"Agreement number allocation failed for {year}")
            raise AllocationError() from e
        return format_agreement_number(year, seq)

    def validate_fields(self, fields: dict) -> AgreementCreate:
        try:
            return AgreementCreate.model_validate(
                fields, context={"phone_region": self.settings.DEFAULT_PHONE_REGION}
            )
        except PydanticValidationError as e:
            raise ValidationError(describe_validation_error(e))

    async def read_upload(self, field: str, upload: Optional[UploadFile]) -> tuple[str, bytes]:
        if upload is None or not upload.filename:
            raise ValidationError(
                "Both tenant and landlord ID proof files are required "
                f"({field} is missing)"
            )

        extension = Path(upload.filename).suffix.lower()
        if extension not in self.settings.ALLOWED_UPLOAD_EXTENSIONS:
            raise ValidationError(
                f"{field}: only {', '.join(self.settings.ALLOWED_UPLOAD_EXTENSIONS)} "
                "files are allowed"
            )
        if not ALLOWED_UPLOAD_MIME.search(upload.content_type or ""):
            raise ValidationError(
                f"{field}: content type {upload.content_type or 'unknown'} is not an image or PDF"
            )

        content = await upload.read(self.settings.MAX_UPLOAD_BYTES + 1)
        if len(content) > self.settings.MAX_UPLOAD_BYTES:
            raise ValidationError(
                f"{field}: file exceeds {self.settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB"
            )
        if not content:
            raise ValidationError(f"{field}: file is empty")
        return extension, content

    def _store_upload(self, field: str, extension: str, content: bytes) -> Path:
        upload_dir = Path(self.settings.UPLOAD_DIR)
        upload_dir.mkdir(parents=True, exist_ok=True)
        path = upload_dir / generate_upload_name(field, extension)
        path.write_bytes(content)
        return path

    async def create(
        self,
        fields: dict,
        tenant_id_proof: Optional[UploadFile],
        landlord_id_proof: Optional[UploadFile],
    ) -> Agreement:
        data = self.validate_fields(fields)
        files = {
            "tenant_id_proof_url": await self.read_upload(
                UPLOAD_FIELDS["tenant_id_proof_url"], tenant_id_proof
            ),
            "landlord_id_proof_url": await self.read_upload(
                UPLOAD_FIELDS["landlord_id_proof_url"], landlord_id_proof
            ),
        }

        agreement_number = await self.next_agreement_number()

        stored: List[Path] = []
        try:
            references = {}
            for column, (extension, content) in files.items():
                path = await run_in_thread(
                    self._store_upload, UPLOAD_FIELDS[column], extension, content
                )
                stored.append(path)
                references[column] = f"{UPLOAD_URL_PREFIX}{path.name}"

            agreement = await self.repo.create(
                {
                    **data.model_dump(),
                    **references,
                    "agreement_number": agreement_number,
                }
            )
        except Exception:
            for path in stored:
                path.unlink(missing_ok=True)
            raise

        logger.info(f"Agreement {agreement.agreement_number} created (id={agreement.id})")
        return agreement

    async def get(self, agreement_id: str | uuid.UUID) -> Agreement:
        agreement = await self.repo.get_by_id(parse_uuid(agreement_id, "Agreement"))
        if agreement is None:
            raise NotFound("Agreement not found")
        return agreement

    async def verify_by_number(self, agreement_number: str) -> PublicAgreementSummary:
        agreement = await self.repo.get_by_number(agreement_number.strip())
        if agreement is None:
            raise NotFound("Agreement not found")
        if not agreement.fully_verified:
            waiting = []
            if not agreement.tenant_verified:
                waiting.append("tenant")
            if not agreement.landlord_verified:
                waiting.append("landlord")
            raise NotFullyVerified(
                "Agreement not fully verified. Waiting on: " + " and ".join(waiting)
            )

        return PublicAgreementSummary(
            agreement_number=agreement.agreement_number,
            tenant_name=agreement.tenant_full_name,
            landlord_name=agreement.landlord_full_name,
            property_address=agreement.property_address,
            monthly_rent=agreement.monthly_rent,
            created_at=agreement.created_at,
        )

    async def list_by_party(self, email: str) -> List[Agreement]:
        return await self.repo.list_by_party(
            email.strip(), case_sensitive=self.settings.PARTY_EMAIL_CASE_SENSITIVE
        )
