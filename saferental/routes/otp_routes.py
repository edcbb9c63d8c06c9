from fastapi import APIRouter, Depends, Request
from fastapi_utils.cbv import cbv

from saferental.core.providers import get_verification_service
from saferental.core.safe_handler import safe_handler
from saferental.schemas.schema import (
    OtpSendRequest,
    OtpSendResponse,
    OtpVerifyRequest,
    OtpVerifyResponse,
)
from saferental.services.verification_service import VerificationService

router = APIRouter(tags=["OTP Verification"])


@cbv(router)
class OtpRoutes:
    @router.post("/send", response_model=OtpSendResponse)
    @safe_handler
    async def send_otp(
        self,
        request: Request,
        data: OtpSendRequest,
        service: VerificationService = Depends(get_verification_service),
    ):
        record = await service.send_otp(
            agreement_id=data.agreement_id,
            contact_info=data.contact_info,
            contact_type=data.contact_type,
            user_type=data.user_type,
        )
        return OtpSendResponse(otp_id=record.id)

    @router.post("/verify", response_model=OtpVerifyResponse)
    @safe_handler
    async def verify_otp(
        self,
        request: Request,
        data: OtpVerifyRequest,
        service: VerificationService = Depends(get_verification_service),
    ):
        await service.verify_otp(otp_id=data.otp_id, submitted_code=data.otp_code)
        return OtpVerifyResponse(verified=True)
