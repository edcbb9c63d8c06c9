from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi_utils.cbv import cbv

from saferental.core.providers import get_agreement_service
from saferental.core.safe_handler import safe_handler
from saferental.schemas.schema import AgreementOut, VerifyAgreementOut
from saferental.services.agreement_service import AgreementService

router = APIRouter(tags=["Agreements"])


@cbv(router)
class AgreementRoutes:
    @router.post("/agreements", response_model=AgreementOut)
    @safe_handler
    async def create_agreement(
        self,
        request: Request,
        tenant_full_name: str = Form(..., alias="tenantFullName"),
        tenant_email: str = Form(..., alias="tenantEmail"),
        tenant_phone: str = Form(..., alias="tenantPhone"),
        tenant_dob: str = Form(..., alias="tenantDob"),
        tenant_address: str = Form(..., alias="tenantAddress"),
        landlord_full_name: str = Form(..., alias="landlordFullName"),
        landlord_email: str = Form(..., alias="landlordEmail"),
        landlord_phone: str = Form(..., alias="landlordPhone"),
        landlord_address: str = Form(..., alias="landlordAddress"),
        property_address: str = Form(..., alias="propertyAddress"),
        monthly_rent: str = Form(..., alias="monthlyRent"),
        security_deposit: Optional[str] = Form(None, alias="securityDeposit"),
        lease_duration: str = Form(..., alias="leaseDuration"),
        lease_start_date: str = Form(..., alias="leaseStartDate"),
        lease_end_date: str = Form(..., alias="leaseEndDate"),
        tenant_id_proof: Optional[UploadFile] = File(None, alias="tenantIdProof"),
        landlord_id_proof: Optional[UploadFile] = File(None, alias="landlordIdProof"),
        service: AgreementService = Depends(get_agreement_service),
    ):
        fields = {
            "tenant_full_name": tenant_full_name,
            "tenant_email": tenant_email,
            "tenant_phone": tenant_phone,
            "tenant_dob": tenant_dob,
            "tenant_address": tenant_address,
            "landlord_full_name": landlord_full_name,
            "landlord_email": landlord_email,
            "landlord_phone": landlord_phone,
            "landlord_address": landlord_address,
            "property_address": property_address,
            "monthly_rent": monthly_rent,
            "security_deposit": security_deposit,
            "lease_duration": lease_duration,
            "lease_start_date": lease_start_date,
            "lease_end_date": lease_end_date,
        }
        return await service.create(
            fields,
            tenant_id_proof=tenant_id_proof,
            landlord_id_proof=landlord_id_proof,
        )

    @router.get("/agreements/verify/{agreement_number}", response_model=VerifyAgreementOut)
    @safe_handler
    async def verify_agreement(
        self,
        request: Request,
        agreement_number: str,
        service: AgreementService = Depends(get_agreement_service),
    ):
        summary = await service.verify_by_number(agreement_number)
        return VerifyAgreementOut(verified=True, agreement=summary)

    @router.get("/agreements/user/{email}", response_model=list[AgreementOut])
    @safe_handler
    async def list_for_party(
        self,
        request: Request,
        email: str,
        service: AgreementService = Depends(get_agreement_service),
    ):
        return await service.list_by_party(email)

    @router.get("/agreements/{agreement_id}", response_model=AgreementOut)
    @safe_handler
    async def get_agreement(
        self,
        request: Request,
        agreement_id: str,
        service: AgreementService = Depends(get_agreement_service),
    ):
        return await service.get(agreement_id)
