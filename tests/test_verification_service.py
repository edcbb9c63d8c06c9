import asyncio
import uuid
from datetime import timedelta

import pytest

from saferental.core.date_helper import utcnow
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
from saferental.models.enums import ContactType, DeliveryStatus, UserType
from saferental.repos.agreement_repo import AgreementRepo
from saferental.repos.otp_repo import OtpRepo

from conftest import LANDLORD_EMAIL, TENANT_EMAIL, TENANT_PHONE


def wrong_code(code: str) -> str:
    return "100000" if code != "100000" else "999999"


async def send_email_otp(service, agreement, email, user_type, now=None):
    return await service.send_otp(
        agreement_id=str(agreement.id),
        contact_info=email,
        contact_type=ContactType.EMAIL,
        user_type=user_type,
        now=now,
    )


@pytest.mark.asyncio
async def test_send_delivers_code_out_of_band(
    session, make_agreement, make_verification_service, email_service
):
    agreement = await make_agreement()
    service = make_verification_service(session)

    record = await send_email_otp(service, agreement, TENANT_EMAIL, UserType.TENANT)

    assert email_service.otp_emails == [(TENANT_EMAIL, record.otp_code)]
    assert record.user_type == UserType.TENANT
    assert record.contact_type == ContactType.EMAIL


@pytest.mark.asyncio
async def test_send_rejects_unknown_agreement(session, make_verification_service):
    service = make_verification_service(session)

    with pytest.raises(NotFound):
        await service.send_otp(str(uuid.uuid4()), TENANT_EMAIL, ContactType.EMAIL, UserType.TENANT)
    with pytest.raises(NotFound):
        await service.send_otp("not-a-uuid", TENANT_EMAIL, ContactType.EMAIL, UserType.TENANT)


@pytest.mark.asyncio
async def test_send_rejects_contact_of_other_party(
    session, make_agreement, make_verification_service, email_service
):
    agreement = await make_agreement()
    service = make_verification_service(session)

    with pytest.raises(Forbidden):
        await send_email_otp(service, agreement, LANDLORD_EMAIL, UserType.TENANT)
    with pytest.raises(Forbidden):
        await send_email_otp(service, agreement, "stranger@example.com", UserType.LANDLORD)

    assert email_service.otp_emails == []


@pytest.mark.asyncio
async def test_send_via_phone_normalizes_and_logs(session, make_agreement, make_verification_service):
    agreement = await make_agreement()
    service = make_verification_service(session)

    record = await service.send_otp(
        str(agreement.id), "+234 801 234 5678", ContactType.PHONE, UserType.TENANT
    )

    assert record.contact_info == TENANT_PHONE
    assert record.contact_type == ContactType.PHONE

    with pytest.raises(ValidationError):
        await service.send_otp(str(agreement.id), "not a phone", ContactType.PHONE, UserType.TENANT)


@pytest.mark.asyncio
async def test_send_fails_and_discards_when_transport_fails(
    session, make_agreement, make_verification_service, email_service
):
    agreement = await make_agreement()
    service = make_verification_service(session)
    email_service.fail_otp = True

    with pytest.raises(OtpDeliveryError):
        await send_email_otp(service, agreement, TENANT_EMAIL, UserType.TENANT)

    leftover = await OtpRepo(session).find_valid(agreement.id, TENANT_EMAIL, UserType.TENANT)
    assert leftover is None


@pytest.mark.asyncio
async def test_tenant_verification_without_delivery(
    session, make_agreement, make_verification_service, pdf_generator, email_service
):
    agreement = await make_agreement()
    service = make_verification_service(session)
    record = await send_email_otp(service, agreement, TENANT_EMAIL, UserType.TENANT)

    with pytest.raises(CodeMismatch):
        await service.verify_otp(str(record.id), wrong_code(record.otp_code))

    verified = await service.verify_otp(str(record.id), record.otp_code)

    assert verified.tenant_verified is True
    assert verified.landlord_verified is False
    assert pdf_generator.generated == []
    assert email_service.agreement_emails == []


@pytest.mark.asyncio
async def test_second_party_triggers_single_delivery(
    session, make_agreement, make_verification_service, pdf_generator, email_service
):
    agreement = await make_agreement()
    service = make_verification_service(session)

    tenant_otp = await send_email_otp(service, agreement, TENANT_EMAIL, UserType.TENANT)
    await service.verify_otp(str(tenant_otp.id), tenant_otp.otp_code)
    landlord_otp = await send_email_otp(service, agreement, LANDLORD_EMAIL, UserType.LANDLORD)
    await service.verify_otp(str(landlord_otp.id), landlord_otp.otp_code)

    stored = await AgreementRepo(session).get_by_id(agreement.id)
    assert stored.tenant_verified and stored.landlord_verified
    assert stored.delivery_status == DeliveryStatus.DELIVERED
    assert stored.pdf_url == f"/agreements/rental-agreement-{agreement.agreement_number}.pdf"
    assert pdf_generator.generated == [agreement.agreement_number]
    assert len(email_service.agreement_emails) == 1
    assert email_service.agreement_emails[0]["recipients"] == (TENANT_EMAIL, LANDLORD_EMAIL)


@pytest.mark.asyncio
async def test_expired_code_is_rejected(session, make_agreement, make_verification_service):
    agreement = await make_agreement()
    service = make_verification_service(session)
    record = await send_email_otp(service, agreement, TENANT_EMAIL, UserType.TENANT)

    with pytest.raises(OtpExpired):
        await service.verify_otp(
            str(record.id), record.otp_code, now=utcnow() + timedelta(minutes=11)
        )

    assert (await AgreementRepo(session).get_by_id(agreement.id)).tenant_verified is False


@pytest.mark.asyncio
async def test_consumed_code_is_rejected(session, make_agreement, make_verification_service):
    agreement = await make_agreement()
    service = make_verification_service(session)
    record = await send_email_otp(service, agreement, TENANT_EMAIL, UserType.TENANT)

    await service.verify_otp(str(record.id), record.otp_code)

    with pytest.raises(OtpAlreadyUsed):
        await service.verify_otp(str(record.id), record.otp_code)


@pytest.mark.asyncio
async def test_consumed_code_with_wrong_guess_reports_mismatch(
    session, make_agreement, make_verification_service
):
    agreement = await make_agreement()
    service = make_verification_service(session)
    record = await send_email_otp(service, agreement, TENANT_EMAIL, UserType.TENANT)
    await service.verify_otp(str(record.id), record.otp_code)

    with pytest.raises(CodeMismatch):
        await service.verify_otp(str(record.id), wrong_code(record.otp_code))


@pytest.mark.asyncio
async def test_only_latest_code_is_accepted(session, make_agreement, make_verification_service):
    agreement = await make_agreement()
    service = make_verification_service(session)
    now = utcnow()
    first = await send_email_otp(
        service, agreement, TENANT_EMAIL, UserType.TENANT, now=now - timedelta(minutes=1)
    )
    second = await send_email_otp(service, agreement, TENANT_EMAIL, UserType.TENANT, now=now)

    with pytest.raises(OtpSuperseded):
        await service.verify_otp(str(first.id), first.otp_code)

    verified = await service.verify_otp(str(second.id), second.otp_code)
    assert verified.tenant_verified is True


@pytest.mark.asyncio
async def test_unknown_otp(session, make_verification_service):
    service = make_verification_service(session)

    with pytest.raises(NotFound):
        await service.verify_otp(str(uuid.uuid4()), "123456")
    with pytest.raises(NotFound):
        await service.verify_otp("garbage", "123456")


@pytest.mark.asyncio
async def test_delivery_failure_does_not_fail_verification(
    session, make_agreement, make_verification_service, email_service
):
    agreement = await make_agreement()
    service = make_verification_service(session)
    email_service.fail_agreement = True

    tenant_otp = await send_email_otp(service, agreement, TENANT_EMAIL, UserType.TENANT)
    await service.verify_otp(str(tenant_otp.id), tenant_otp.otp_code)
    landlord_otp = await send_email_otp(service, agreement, LANDLORD_EMAIL, UserType.LANDLORD)
    verified = await service.verify_otp(str(landlord_otp.id), landlord_otp.otp_code)

    assert verified.landlord_verified is True
    stored = await AgreementRepo(session).get_by_id(agreement.id)
    assert stored.delivery_status == DeliveryStatus.FAILED
    assert stored.pdf_url is None
    assert "smtp unreachable" in stored.delivery_error

    email_service.fail_agreement = False
    outcomes = await service.retry_failed_deliveries()

    assert [o.delivered for o in outcomes] == [True]
    stored = await AgreementRepo(session).get_by_id(agreement.id)
    assert stored.delivery_status == DeliveryStatus.DELIVERED
    assert stored.delivery_attempts == 2
    assert len(email_service.agreement_emails) == 1


@pytest.mark.asyncio
async def test_abandoned_claim_is_retried_after_timeout(
    session, settings, make_agreement, make_verification_service, email_service, pdf_generator
):
    agreement = await make_agreement()
    repo = AgreementRepo(session)
    await repo.mark_role_verified(agreement.id, UserType.TENANT)
    await repo.mark_role_verified(agreement.id, UserType.LANDLORD)
    # process died after claiming, before marking the outcome
    assert await repo.claim_delivery(agreement.id) is not None
    service = make_verification_service(session)

    assert await service.retry_failed_deliveries() == []
    assert (await repo.get_by_id(agreement.id)).delivery_status == DeliveryStatus.GENERATING

    later = utcnow() + timedelta(seconds=settings.DELIVERY_CLAIM_TIMEOUT_SECONDS + 60)
    outcomes = await service.retry_failed_deliveries(now=later)

    assert [o.delivered for o in outcomes] == [True]
    stored = await repo.get_by_id(agreement.id)
    assert stored.delivery_status == DeliveryStatus.DELIVERED
    assert stored.pdf_url == f"/agreements/rental-agreement-{agreement.agreement_number}.pdf"
    assert stored.delivery_attempts == 2
    assert pdf_generator.generated == [agreement.agreement_number]
    assert len(email_service.agreement_emails) == 1


@pytest.mark.asyncio
async def test_duplicate_concurrent_submissions_consume_once(
    database, make_agreement, make_verification_service
):
    agreement = await make_agreement()
    async with database.session() as db:
        record = await send_email_otp(
            make_verification_service(db), agreement, TENANT_EMAIL, UserType.TENANT
        )

    async def submit():
        async with database.session() as db:
            return await make_verification_service(db).verify_otp(str(record.id), record.otp_code)

    results = await asyncio.gather(submit(), submit(), return_exceptions=True)

    successes = [r for r in results if not isinstance(r, Exception)]
    rejected = [r for r in results if isinstance(r, OtpAlreadyUsed)]
    assert len(successes) == 1
    assert len(rejected) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("round_", range(5))
async def test_racing_final_verifications_deliver_exactly_once(
    round_, database, make_agreement, make_verification_service, pdf_generator, email_service
):
    agreement = await make_agreement()
    async with database.session() as db:
        service = make_verification_service(db)
        tenant_otp = await send_email_otp(service, agreement, TENANT_EMAIL, UserType.TENANT)
        landlord_otp = await send_email_otp(service, agreement, LANDLORD_EMAIL, UserType.LANDLORD)

    async def submit(record):
        async with database.session() as db:
            return await make_verification_service(db).verify_otp(str(record.id), record.otp_code)

    await asyncio.gather(submit(tenant_otp), submit(landlord_otp))

    assert pdf_generator.generated == [agreement.agreement_number]
    assert len(email_service.agreement_emails) == 1
    async with database.session() as db:
        stored = await AgreementRepo(db).get_by_id(agreement.id)
    assert stored.delivery_status == DeliveryStatus.DELIVERED
    assert stored.delivery_attempts == 1


@pytest.mark.asyncio
async def test_concurrent_delivery_claims_have_one_winner(
    database, make_agreement, make_verification_service, pdf_generator
):
    agreement = await make_agreement()
    async with database.session() as db:
        repo = AgreementRepo(db)
        await repo.mark_role_verified(agreement.id, UserType.TENANT)
        await repo.mark_role_verified(agreement.id, UserType.LANDLORD)

    async def claim():
        async with database.session() as db:
            return await make_verification_service(db).deliver_agreement(agreement.id)

    outcomes = await asyncio.gather(*(claim() for _ in range(8)))

    assert len([o for o in outcomes if o is not None]) == 1
    assert len(pdf_generator.generated) == 1
