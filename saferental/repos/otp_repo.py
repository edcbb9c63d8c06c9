import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError

from saferental.core.date_helper import utcnow
from saferental.models.enums import ContactType, UserType
from saferental.models.models import OtpVerification
from saferental.security.security_generate import generate_otp_code


class OtpRepo:
    TTL = timedelta(minutes=10)

    def __init__(self, db, ttl: timedelta | None = None):
        self.db = db
        self.ttl = ttl or self.TTL

    async def issue(
        self,
        agreement_id: uuid.UUID,
        contact_info: str,
        contact_type: ContactType,
        user_type: UserType,
        now: datetime | None = None,
    ) -> OtpVerification:
        now = now or utcnow()
        record = OtpVerification(
            id=uuid.uuid4(),
            agreement_id=agreement_id,
            contact_info=contact_info,
            contact_type=contact_type,
            user_type=user_type,
            otp_code=generate_otp_code(),
            verified=False,
            expires_at=now + self.ttl,
            created_at=now,
        )
        self.db.add(record)
        return await self._commit_and_refresh(record)

    async def get(self, otp_id: uuid.UUID) -> Optional[OtpVerification]:
        stmt = (
            select(OtpVerification)
            .where(OtpVerification.id == otp_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def find_valid(
        self,
        agreement_id: uuid.UUID,
        contact_info: str,
        user_type: UserType,
        now: datetime | None = None,
    ) -> Optional[OtpVerification]:
        now = now or utcnow()
        stmt = (
            select(OtpVerification)
            .where(
                OtpVerification.agreement_id == agreement_id,
                OtpVerification.contact_info == contact_info,
                OtpVerification.user_type == user_type,
                OtpVerification.verified.is_(False),
                OtpVerification.expires_at >= now,
            )
            .order_by(OtpVerification.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def mark_verified(
        self, otp_id: uuid.UUID, only_if_unverified: bool = False
    ) -> bool:
        """Set ``verified`` on the record.

        Returns False when no row matched: the id is unknown or, with
        ``only_if_unverified``, another caller consumed it first. Expiry is
        the caller's responsibility.
        """
        stmt = update(OtpVerification).where(OtpVerification.id == otp_id)
        if only_if_unverified:
            stmt = stmt.where(OtpVerification.verified.is_(False))
        stmt = stmt.values(verified=True).execution_options(synchronize_session=False)

        try:
            result = await self.db.execute(stmt)
            await self.db.commit()
            return result.rowcount == 1
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def discard(self, otp_id: uuid.UUID) -> int:
        try:
            stmt = (
                delete(OtpVerification)
                .where(OtpVerification.id == otp_id)
                .execution_options(synchronize_session=False)
            )
            result = await self.db.execute(stmt)
            await self.db.commit()
            return result.rowcount
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def purge_expired(self, now: datetime | None = None) -> int:
        now = now or utcnow()
        try:
            stmt = delete(OtpVerification).where(
                OtpVerification.verified.is_(False),
                OtpVerification.expires_at < now,
            ).execution_options(synchronize_session=False)
            result = await self.db.execute(stmt)
            await self.db.commit()
            return result.rowcount
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def _commit_and_refresh(self, record: OtpVerification) -> OtpVerification:
        try:
            await self.db.commit()
            await self.db.refresh(record)
            return record
        except SQLAlchemyError:
            await self.db.rollback()
            raise
