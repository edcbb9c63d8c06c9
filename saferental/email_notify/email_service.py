import logging
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Iterable

import aiosmtplib

from saferental.core.breaker import CircuitBreaker
from saferental.core.exceptions import DeliveryError
from saferental.core.settings import Settings

logger = logging.getLogger(__name__)


class EmailService:
    def __init__(self, settings: Settings, breaker: CircuitBreaker | None = None):
        self.settings = settings
        self.from_email = settings.FROM_EMAIL
        self.breaker = breaker or CircuitBreaker(name="smtp")

    async def send_email(
        self,
        to: str,
        subject: str,
        html: str,
        attachments: Iterable[tuple[str, bytes, str]] = (),
    ) -> None:
        message = MIMEMultipart("mixed")
        message["Subject"] = subject
        message["From"] = self.from_email
        message["To"] = to
        message.attach(MIMEText(html, "html"))

        attached = 0
        for filename, content, subtype in attachments:
            part = MIMEApplication(content, _subtype=subtype)
            part.add_header("Content-Disposition", "attachment", filename=filename)
            message.attach(part)
            attached += 1

        if not self.settings.EMAIL_SERVER:
            logger.info(
                f"SMTP server not configured, simulating email to {to}: "
                f"{subject!r} ({attached} attachment(s))"
            )
            return

        async def handler():
            await aiosmtplib.send(
                message,
                hostname=self.settings.EMAIL_SERVER,
                port=self.settings.EMAIL_PORT,
                username=self.settings.EMAIL_USER,
                password=self.settings.EMAIL_PASSWORD,
                start_tls=self.settings.EMAIL_USE_TLS,
            )

        try:
            await self.breaker.call(handler)
        except Exception as e:
            logger.error(f"Error sending email {subject!r} to {to}: {e}")
            raise DeliveryError(f"Could not send email to {to}") from e
        logger.info(f"Email {subject!r} sent to {to}")

    async def send_otp_email(self, email: str, otp: str) -> None:
        html_content = f"""
        <html>
        <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
            <h2 style="color: #3b82f6;">SafeRental - Email Verification</h2>
            <p>Your verification code is:</p>
            <div style="background: #f3f4f6; padding: 20px; text-align: center; font-size: 32px;
                        font-weight: bold; letter-spacing: 8px; color: #1f2937;">
                {otp}
            </div>
            <p>This code will expire in 10 minutes.</p>
            <p>If you didn't request this verification, please ignore this email.</p>
        </body>
        </html>
        """
        await self.send_email(
            to=email,
            subject="SafeRental - Email Verification Code",
            html=html_content,
        )

    async def send_agreement_pdf(
        self,
        tenant_email: str,
        landlord_email: str,
        agreement_number: str,
        pdf_bytes: bytes,
    ) -> None:
        html_content = f"""
        <html>
        <body style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
            <h2 style="color: #3b82f6;">SafeRental - Your Rental Agreement</h2>
            <p>Your rental agreement has been successfully generated and verified.</p>
            <p><strong>Agreement Number:</strong> {agreement_number}</p>
            <p>Please find your rental agreement attached to this email.</p>
            <p>Keep this document safe for your records.</p>
            <p>Thank you for using SafeRental!</p>
        </body>
        </html>
        """
        attachment = (f"rental-agreement-{agreement_number}.pdf", pdf_bytes, "pdf")

        failed = []
        for recipient in (tenant_email, landlord_email):
            try:
                await self.send_email(
                    to=recipient,
                    subject=f"SafeRental - Rental Agreement {agreement_number}",
                    html=html_content,
                    attachments=[attachment],
                )
            except DeliveryError:
                failed.append(recipient)

        if failed:
            raise DeliveryError(
                f"Agreement {agreement_number} not delivered to: {', '.join(failed)}"
            )
