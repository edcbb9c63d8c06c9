from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from saferental.services.agreement_service import AgreementService
from saferental.services.file_access_service import FileAccessService
from saferental.services.verification_service import VerificationService

from .get_db import get_db_async
from .settings import Settings


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_agreement_service(
    db: AsyncSession = Depends(get_db_async),
    settings: Settings = Depends(get_settings),
) -> AgreementService:
    return AgreementService(db, settings)


def build_verification_service(db, state) -> VerificationService:
    return VerificationService(
        db,
        settings=state.settings,
        transports=state.transports,
        delivery=state.delivery,
    )


def get_verification_service(
    request: Request,
    db: AsyncSession = Depends(get_db_async),
) -> VerificationService:
    return build_verification_service(db, request.app.state)


def get_file_access_service(
    request: Request,
    db: AsyncSession = Depends(get_db_async),
) -> FileAccessService:
    state = request.app.state
    return FileAccessService(db, settings=state.settings, gateway=state.file_gateway)
