import uuid
from datetime import timedelta

import pytest

from saferental.core.date_helper import as_utc, utcnow
from saferental.models.enums import ContactType, UserType
from saferental.repos.otp_repo import OtpRepo

from conftest import TENANT_EMAIL


async def issue(repo, agreement, now=None, user_type=UserType.TENANT):
    return await repo.issue(
        agreement_id=agreement.id,
        contact_info=TENANT_EMAIL,
        contact_type=ContactType.EMAIL,
        user_type=user_type,
        now=now,
    )


@pytest.mark.asyncio
async def test_issue_generates_six_digit_code_with_ten_minute_window(session, make_agreement):
    agreement = await make_agreement()
    now = utcnow()

    record = await issue(OtpRepo(session), agreement, now=now)

    assert len(record.otp_code) == 6
    assert 100000 <= int(record.otp_code) <= 999999
    assert record.verified is False
    assert as_utc(record.expires_at) == now + timedelta(minutes=10)


@pytest.mark.asyncio
async def test_get_unknown_returns_none(session):
    assert await OtpRepo(session).get(uuid.uuid4()) is None


@pytest.mark.asyncio
async def test_find_valid_returns_latest_unconsumed(session, make_agreement):
    agreement = await make_agreement()
    repo = OtpRepo(session)
    now = utcnow()

    await issue(repo, agreement, now=now - timedelta(minutes=2))
    latest = await issue(repo, agreement, now=now - timedelta(minutes=1))
    await issue(repo, agreement, now=now, user_type=UserType.LANDLORD)

    found = await repo.find_valid(agreement.id, TENANT_EMAIL, UserType.TENANT, now=now)

    assert found.id == latest.id


@pytest.mark.asyncio
async def test_find_valid_skips_expired_and_consumed(session, make_agreement):
    agreement = await make_agreement()
    repo = OtpRepo(session)
    now = utcnow()

    await issue(repo, agreement, now=now - timedelta(minutes=30))
    consumed = await issue(repo, agreement, now=now)
    await repo.mark_verified(consumed.id)

    assert await repo.find_valid(agreement.id, TENANT_EMAIL, UserType.TENANT, now=now) is None


@pytest.mark.asyncio
async def test_mark_verified(session, make_agreement):
    agreement = await make_agreement()
    repo = OtpRepo(session)
    record = await issue(repo, agreement)

    assert await repo.mark_verified(record.id) is True
    assert await repo.mark_verified(record.id) is True
    assert await repo.mark_verified(record.id, only_if_unverified=True) is False
    assert await repo.mark_verified(uuid.uuid4()) is False
    assert (await repo.get(record.id)).verified is True


@pytest.mark.asyncio
async def test_purge_expired_keeps_live_and_consumed_codes(session, make_agreement):
    agreement = await make_agreement()
    repo = OtpRepo(session)
    now = utcnow()

    stale = await issue(repo, agreement, now=now - timedelta(hours=1))
    live = await issue(repo, agreement, now=now)
    used = await issue(repo, agreement, now=now - timedelta(hours=1))
    await repo.mark_verified(used.id)

    assert await repo.purge_expired(now=now) == 1
    assert await repo.get(stale.id) is None
    assert await repo.get(live.id) is not None
    assert await repo.get(used.id) is not None


@pytest.mark.asyncio
async def test_discard_removes_loaded_record(session, make_agreement):
    agreement = await make_agreement()
    repo = OtpRepo(session)
    record = await issue(repo, agreement, now=utcnow() - timedelta(hours=1))

    assert await repo.discard(record.id) == 1
    assert await repo.get(record.id) is None
    assert await repo.discard(record.id) == 0
