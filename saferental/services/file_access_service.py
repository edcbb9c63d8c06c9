import logging
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

from saferental.core.exceptions import Forbidden, NotFound
from saferental.core.settings import Settings
from saferental.core.validators import parse_uuid
from saferental.models.enums import FileRole, UserType
from saferental.models.models import Agreement
from saferental.repos.agreement_repo import AgreementRepo
from saferental.security.signed_url import SignedFileGateway, SignedUrl

logger = logging.getLogger(__name__)


class FileAccessService:
    def __init__(self, db, settings: Settings, gateway: SignedFileGateway):
        self.repo: AgreementRepo = AgreementRepo(db)
        self.settings = settings
        self.gateway = gateway

    def _same_email(self, left: str, right: str) -> bool:
        if self.settings.PARTY_EMAIL_CASE_SENSITIVE:
            return left == right
        return left.lower() == right.lower()

    def requester_roles(self, agreement: Agreement, email: str) -> set[FileRole]:
        roles = set()
        if self._same_email(email, agreement.tenant_email):
            roles.add(FileRole.TENANT)
        if self._same_email(email, agreement.landlord_email):
            roles.add(FileRole.LANDLORD)
        return roles

    async def _load(self, agreement_id: str | uuid.UUID) -> Agreement:
        agreement = await self.repo.get_by_id(parse_uuid(agreement_id, "Agreement"))
        if agreement is None:
            raise NotFound("Agreement not found")
        return agreement

    async def issue_signed_url(
        self,
        agreement_id: str | uuid.UUID,
        file_role: FileRole,
        requester_email: str,
        now: Optional[datetime] = None,
    ) -> SignedUrl:
        file_role = FileRole(file_role)
        agreement = await self._load(agreement_id)

        roles = self.requester_roles(agreement, requester_email.strip())
        if not roles:
            raise Forbidden("Access denied. Email does not match agreement parties.")
        if file_role not in roles:
            raise Forbidden("Access denied. You can only access your own documents.")

        signed = self.gateway.issue(agreement.id, file_role, requester_email.strip(), now=now)
        logger.info(
            f"Signed URL issued for {file_role.value} document of "
            f"{agreement.agreement_number}"
        )
        return signed

    async def resolve_signed_url(
        self,
        agreement_id: str,
        file_role: str,
        signature: str,
        expires: str,
        requester_email: str,
        now: Optional[datetime] = None,
    ) -> Path:
        self.gateway.verify(agreement_id, file_role, signature, expires, requester_email, now=now)

        agreement = await self._load(agreement_id)
        document_ref = agreement.id_proof_for(UserType(FileRole(file_role).value))
        return self.gateway.resolve_path(document_ref)
