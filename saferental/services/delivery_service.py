import logging
from dataclasses import dataclass
from typing import Optional

from saferental.documents.pdf_generate import AgreementPDFGenerator
from saferental.email_notify.email_service import EmailService

logger = logging.getLogger(__name__)

AGREEMENT_URL_PREFIX = "/agreements/"


@dataclass(frozen=True)
class DeliveryOutcome:
    delivered: bool
    pdf_url: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, pdf_url: str) -> "DeliveryOutcome":
        return cls(delivered=True, pdf_url=pdf_url)

    @classmethod
    def failure(cls, error: Exception) -> "DeliveryOutcome":
        return cls(delivered=False, error=f"{type(error).__name__}: {error}")


class AgreementDeliveryService:
    """Renders the agreement PDF and mails it to both parties.

    Never raises: the result is reported as a ``DeliveryOutcome`` so the
    caller can record it on the agreement.
    """

    def __init__(self, pdf_generator: AgreementPDFGenerator, email_service: EmailService):
        self.pdf_generator = pdf_generator
        self.email_service = email_service

    async def deliver(self, agreement) -> DeliveryOutcome:
        try:
            document = await self.pdf_generator.generate(agreement)
            await self.email_service.send_agreement_pdf(
                tenant_email=agreement.tenant_email,
                landlord_email=agreement.landlord_email,
                agreement_number=agreement.agreement_number,
                pdf_bytes=document.pdf_bytes,
            )
        except Exception as e:
            logger.exception(
                f"Agreement delivery failed for {agreement.id} "
                f"({agreement.agreement_number})"
            )
            return DeliveryOutcome.failure(e)

        logger.info(f"Agreement {agreement.agreement_number} delivered to both parties")
        return DeliveryOutcome.success(f"{AGREEMENT_URL_PREFIX}{document.path.name}")
