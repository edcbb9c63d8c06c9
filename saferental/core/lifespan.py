import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path

from fastapi import FastAPI

from saferental.documents.pdf_generate import AgreementPDFGenerator
from saferental.email_notify.email_service import EmailService
from saferental.repos.otp_repo import OtpRepo
from saferental.security.signed_url import SignedFileGateway
from saferental.services.delivery_service import AgreementDeliveryService
from saferental.sms_notify.sms_service import default_transports

from .get_db import Database
from .providers import build_verification_service

logger = logging.getLogger("startup")


def build_collaborators(app: FastAPI):
    settings = app.state.settings

    app.state.file_gateway = SignedFileGateway(
        secret=settings.FILE_SIGNING_SECRET,
        upload_root=Path(settings.UPLOAD_DIR),
        ttl=timedelta(seconds=settings.SIGNED_URL_TTL_SECONDS),
    )
    Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)

    email_service = getattr(app.state, "email_service", None) or EmailService(settings)
    app.state.email_service = email_service
    if getattr(app.state, "transports", None) is None:
        app.state.transports = default_transports(email_service)
    if getattr(app.state, "delivery", None) is None:
        app.state.delivery = AgreementDeliveryService(
            pdf_generator=AgreementPDFGenerator(settings.AGREEMENTS_DIR),
            email_service=email_service,
        )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Waiting for application startup...")
    settings = app.state.settings

    build_collaborators(app)

    database = Database(settings.DATABASE_URL, echo=settings.SQL_ECHO)
    await database.connect()
    app.state.database = database

    if settings.CREATE_TABLES_ON_STARTUP:
        await database.create_all()
        logger.info("Database tables ensured.")

    if settings.PURGE_EXPIRED_OTPS_ON_STARTUP:
        try:
            async with database.session() as db:
                purged = await OtpRepo(db).purge_expired()
            logger.info(f"Expired OTP cleanup completed ({purged} removed).")
        except Exception:
            logger.exception("Failed to clean up expired OTPs")

    if settings.RETRY_FAILED_DELIVERIES_ON_STARTUP:
        try:
            async with database.session() as db:
                outcomes = await build_verification_service(
                    db, app.state
                ).retry_failed_deliveries()
            delivered = sum(1 for outcome in outcomes if outcome.delivered)
            logger.info(
                f"Delivery retry completed ({delivered}/{len(outcomes)} delivered)."
            )
        except Exception:
            logger.exception("Failed to retry agreement deliveries")

    logger.info("Application startup complete.")

    yield

    try:
        await database.close()
    except Exception:
        logger.exception("Failed to close database connection")
