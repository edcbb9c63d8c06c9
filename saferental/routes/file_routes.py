from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import FileResponse
from fastapi_utils.cbv import cbv

from saferental.core.providers import get_file_access_service
from saferental.core.safe_handler import safe_handler
from saferental.schemas.schema import FileUrlRequest, SignedUrlOut
from saferental.services.file_access_service import FileAccessService

router = APIRouter(tags=["Identity Documents"])


@cbv(router)
class FileRoutes:
    @router.post("/generate-url", response_model=SignedUrlOut)
    @safe_handler
    async def generate_url(
        self,
        request: Request,
        data: FileUrlRequest,
        service: FileAccessService = Depends(get_file_access_service),
    ):
        signed = await service.issue_signed_url(
            agreement_id=data.agreement_id,
            file_role=data.file_type,
            requester_email=data.email,
        )
        return SignedUrlOut(signed_url=signed.url, expires_at=signed.expires_at)

    @router.get("/download/{agreement_id}/{file_type}")
    @safe_handler
    async def download(
        self,
        request: Request,
        agreement_id: str,
        file_type: str,
        signature: str = Query(...),
        expires: str = Query(...),
        email: str = Query(...),
        service: FileAccessService = Depends(get_file_access_service),
    ):
        path = await service.resolve_signed_url(
            agreement_id=agreement_id,
            file_role=file_type,
            signature=signature,
            expires=expires,
            requester_email=email,
        )
        return FileResponse(
            path,
            filename=path.name,
            headers={"X-Content-Type-Options": "nosniff"},
        )
