import logging
import uuid
from datetime import datetime, timedelta
from typing import Iterable, List, Optional

from saferental.core.date_helper import as_utc, utcnow
from saferental.core.exceptions import (
    CodeMismatch,
    Forbidden,
    NotFound,
    OtpAlreadyUsed,
    OtpDeliveryError,
    OtpExpired,
    OtpSuperseded,
    ValidationError,
)
from saferental.core.settings import Settings
from saferental.core.validators import normalize_phone, parse_uuid
from saferental.models.enums import ContactType, DeliveryStatus, UserType
from saferental.models.models import Agreement, OtpVerification
from saferental.repos.agreement_repo import AgreementRepo
from saferental.repos.otp_repo import OtpRepo
from saferental.security.security_generate import codes_match
from saferental.sms_notify.sms_service import TransportResolver

from .delivery_service import AgreementDeliveryService, DeliveryOutcome

logger = logging.getLogger(__name__)


class VerificationService:
    """Moves an agreement from unverified to delivered.

    Each role flips to verified once, through a consumed OTP. The
    generate-and-deliver step is claimed with a conditional update so that
    it runs for at most one caller per attempt, however many verifications
    race on the final transition.
    """

    def __init__(
        self,
        db,
        settings: Settings,
        transports: TransportResolver,
        delivery: AgreementDeliveryService,
    ):
        self.settings = settings
        self.agreements: AgreementRepo = AgreementRepo(db)
        self.otps: OtpRepo = OtpRepo(db, ttl=timedelta(minutes=settings.OTP_TTL_MINUTES))
        self.transports = transports
        self.delivery = delivery

    def _bound_contact(
        self,
        agreement: Agreement,
        contact_info: str,
        contact_type: ContactType,
        user_type: UserType,
    ) -> str:
        if contact_type == ContactType.PHONE:
            try:
                contact = normalize_phone(contact_info, self.settings.DEFAULT_PHONE_REGION)
            except ValueError as e:
                raise ValidationError(str(e))
            expected = agreement.phone_for(user_type)
            matches = contact == expected
        else:
            contact = contact_info.strip()
            expected = agreement.email_for(user_type)
            if self.settings.PARTY_EMAIL_CASE_SENSITIVE:
                matches = contact == expected
            else:
                matches = contact.lower() == expected.lower()

        if not matches:
            raise Forbidden(
                f"This {contact_type.value} is not the {user_type.value}'s "
                "contact on this agreement"
            )
        return expected

    async def send_otp(
        self,
        agreement_id: str | uuid.UUID,
        contact_info: str,
        contact_type: ContactType,
        user_type: UserType,
        now: Optional[datetime] = None,
    ) -> OtpVerification:
        contact_type = ContactType(contact_type)
        user_type = UserType(user_type)

        agreement = await self.agreements.get_by_id(parse_uuid(agreement_id, "Agreement"))
        if agreement is None:
            raise NotFound("Agreement not found")

        contact = self._bound_contact(agreement, contact_info, contact_type, user_type)
        try:
            transport = self.transports.get(contact_type)
        except LookupError:
            raise ValidationError(f"Unsupported contact type: {contact_type.value}")

        record = await self.otps.issue(
            agreement_id=agreement.id,
            contact_info=contact,
            contact_type=contact_type,
            user_type=user_type,
            now=now,
        )
        try:
            await transport.send(contact, record.otp_code)
        except Exception as e:
            logger.error(
                f"OTP {record.id} for agreement {agreement.id} could not be sent "
                f"via {contact_type.value}: {e}"
            )
            await self.otps.discard(record.id)
            raise OtpDeliveryError() from e

        logger.info(
            f"OTP {record.id} issued for {user_type.value} of agreement "
            f"{agreement.agreement_number} via {contact_type.value}"
        )
        return record

    async def verify_otp(
        self,
        otp_id: str | uuid.UUID,
        submitted_code: str,
        now: Optional[datetime] = None,
    ) -> Agreement:
        now = now or utcnow()

        record = await self.otps.get(parse_uuid(otp_id, "OTP"))
        if record is None:
            raise NotFound("OTP not found")
        if now > as_utc(record.expires_at):
            raise OtpExpired()
        if not codes_match(str(submitted_code), record.otp_code):
            logger.info(f"OTP {record.id}: code mismatch")
            raise CodeMismatch()
        if record.verified:
            raise OtpAlreadyUsed()

        latest = await self.otps.find_valid(
            record.agreement_id, record.contact_info, record.user_type, now=now
        )
        if latest is None or latest.id != record.id:
            raise OtpSuperseded()

        if not await self.otps.mark_verified(record.id, only_if_unverified=True):
            raise OtpAlreadyUsed()

        agreement = await self.agreements.mark_role_verified(
            record.agreement_id, record.user_type
        )
        if agreement is None:
            raise NotFound("Agreement not found")

        logger.info(
            f"Agreement {agreement.agreement_number}: {record.user_type.value} verified"
        )

        if agreement.fully_verified:
            try:
                await self.deliver_agreement(agreement.id)
            except Exception:
                # identity is verified regardless; the agreement stays retry-eligible
                logger.exception(f"Post-verification delivery crashed for {agreement.id}")

        return agreement

    async def deliver_agreement(
        self,
        agreement_id: uuid.UUID,
        from_statuses: Iterable[DeliveryStatus] = (DeliveryStatus.PENDING,),
        stale_before: Optional[datetime] = None,
    ) -> Optional[DeliveryOutcome]:
        claimed = await self.agreements.claim_delivery(
            agreement_id, from_statuses, stale_before=stale_before
        )
        if claimed is None:
            logger.info(f"Delivery for agreement {agreement_id} already claimed or not ready")
            return None

        logger.info(
            f"Delivery claimed for {claimed.agreement_number} "
            f"(attempt {claimed.delivery_attempts})"
        )
        outcome = await self.delivery.deliver(claimed)
        if outcome.delivered:
            await self.agreements.mark_delivered(claimed.id, outcome.pdf_url)
        else:
            await self.agreements.mark_delivery_failed(claimed.id, outcome.error or "unknown")
        return outcome

    async def retry_failed_deliveries(
        self, now: Optional[datetime] = None
    ) -> List[DeliveryOutcome]:
        """Re-run delivery for FAILED agreements and for GENERATING claims
        older than ``DELIVERY_CLAIM_TIMEOUT_SECONDS``."""
        stale_before = (now or utcnow()) - timedelta(
            seconds=self.settings.DELIVERY_CLAIM_TIMEOUT_SECONDS
        )
        outcomes = []
        for agreement_id in await self.agreements.list_retry_eligible(stale_before):
            outcome = await self.deliver_agreement(
                agreement_id,
                from_statuses=(DeliveryStatus.FAILED,),
                stale_before=stale_before,
            )
            if outcome is not None:
                outcomes.append(outcome)
        return outcomes
