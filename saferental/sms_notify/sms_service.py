import logging
from typing import Protocol

from saferental.email_notify.email_service import EmailService
from saferental.models.enums import ContactType

logger = logging.getLogger(__name__)


class OtpTransport(Protocol):
    async def send(self, contact_info: str, code: str) -> None: ...


class EmailOtpTransport:
    def __init__(self, email_service: EmailService):
        self.email_service = email_service

    async def send(self, contact_info: str, code: str) -> None:
        await self.email_service.send_otp_email(contact_info, code)


class PhoneOtpTransport:
    """Log-only phone channel. No SMS gateway is wired in."""

    async def send(self, contact_info: str, code: str) -> None:
        logger.info(f"Phone OTP for {contact_info}: {code} (SMS delivery not configured)")


class TransportResolver:
    def __init__(self, transports: dict[ContactType, OtpTransport]):
        self.transports = dict(transports)

    def get(self, contact_type: ContactType) -> OtpTransport:
        try:
            return self.transports[ContactType(contact_type)]
        except (KeyError, ValueError):
            raise LookupError(f"No OTP transport for {contact_type!r}")


def default_transports(email_service: EmailService) -> TransportResolver:
    return TransportResolver(
        {
            ContactType.EMAIL: EmailOtpTransport(email_service),
            ContactType.PHONE: PhoneOtpTransport(),
        }
    )
