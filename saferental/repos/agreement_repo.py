import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import and_, func, insert, or_, select, update
from sqlalchemy.exc import SQLAlchemyError

from saferental.core.date_helper import utcnow
from saferental.models.enums import DeliveryStatus, UserType
from saferental.models.models import Agreement

IMMUTABLE_FIELDS = frozenset({"id", "agreement_number", "created_at"})
ONE_WAY_FLAGS = frozenset({"tenant_verified", "landlord_verified"})

VERIFIED_FLAG = {
    UserType.TENANT: "tenant_verified",
    UserType.LANDLORD: "landlord_verified",
}


def _claimable(statuses: Iterable[DeliveryStatus], stale_before: Optional[datetime]):
    condition = Agreement.delivery_status.in_(list(statuses))
    if stale_before is None:
        return condition
    return or_(
        condition,
        and_(
            Agreement.delivery_status == DeliveryStatus.GENERATING,
            Agreement.updated_at < stale_before,
        ),
    )


class AgreementRepo:
    def __init__(self, db):
        self.db = db

    async def create(self, agreement_data: dict) -> Agreement:
        now = utcnow()
        values = {
            **agreement_data,
            "id": agreement_data.get("id") or uuid.uuid4(),
            "tenant_verified": False,
            "landlord_verified": False,
            "is_active": True,
            "pdf_url": None,
            "delivery_status": DeliveryStatus.PENDING,
            "delivery_attempts": 0,
            "created_at": now,
            "updated_at": now,
        }
        try:
            stmt = insert(Agreement).values(**values).returning(Agreement)
            result = await self.db.execute(stmt)
            created = result.scalar_one()
            await self.db.commit()
            return created
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def get_by_id(self, agreement_id: uuid.UUID) -> Optional[Agreement]:
        stmt = (
            select(Agreement)
            .where(Agreement.id == agreement_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_number(self, agreement_number: str) -> Optional[Agreement]:
        stmt = (
            select(Agreement)
            .where(Agreement.agreement_number == agreement_number)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def update(self, agreement_id: uuid.UUID, values: dict) -> Optional[Agreement]:
        self._check_forward_only(values)
        return await self._update_where(
            Agreement.id == agreement_id, values={**values, "updated_at": utcnow()}
        )

    async def mark_role_verified(
        self, agreement_id: uuid.UUID, user_type: UserType
    ) -> Optional[Agreement]:
        return await self.update(agreement_id, {VERIFIED_FLAG[user_type]: True})

    async def list_by_party(
        self, email: str, case_sensitive: bool = True
    ) -> List[Agreement]:
        if case_sensitive:
            matches = or_(
                Agreement.tenant_email == email,
                Agreement.landlord_email == email,
            )
        else:
            lowered = email.lower()
            matches = or_(
                func.lower(Agreement.tenant_email) == lowered,
                func.lower(Agreement.landlord_email) == lowered,
            )

        stmt = (
            select(Agreement)
            .where(matches)
            .order_by(Agreement.created_at.desc(), Agreement.agreement_number.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def claim_delivery(
        self,
        agreement_id: uuid.UUID,
        from_statuses: Iterable[DeliveryStatus] = (DeliveryStatus.PENDING,),
        stale_before: Optional[datetime] = None,
    ) -> Optional[Agreement]:
        """Move a fully verified agreement into GENERATING.

        Only one caller can win: the UPDATE is conditional on the current
        status, so a racing caller matches zero rows and gets ``None``.
        With ``stale_before``, a GENERATING claim last touched before that
        instant is treated as abandoned and can be taken over.
        """
        return await self._update_where(
            Agreement.id == agreement_id,
            Agreement.tenant_verified.is_(True),
            Agreement.landlord_verified.is_(True),
            _claimable(from_statuses, stale_before),
            values={
                "delivery_status": DeliveryStatus.GENERATING,
                "delivery_attempts": Agreement.delivery_attempts + 1,
                "updated_at": utcnow(),
            },
        )

    async def mark_delivered(
        self, agreement_id: uuid.UUID, pdf_url: str
    ) -> Optional[Agreement]:
        now = utcnow()
        return await self._update_where(
            Agreement.id == agreement_id,
            Agreement.delivery_status == DeliveryStatus.GENERATING,
            values={
                "delivery_status": DeliveryStatus.DELIVERED,
                "pdf_url": pdf_url,
                "delivery_error": None,
                "delivered_at": now,
                "updated_at": now,
            },
        )

    async def mark_delivery_failed(
        self, agreement_id: uuid.UUID, error: str
    ) -> Optional[Agreement]:
        return await self._update_where(
            Agreement.id == agreement_id,
            Agreement.delivery_status == DeliveryStatus.GENERATING,
            values={
                "delivery_status": DeliveryStatus.FAILED,
                "delivery_error": error[:2000],
                "updated_at": utcnow(),
            },
        )

    async def list_retry_eligible(
        self, stale_before: Optional[datetime] = None
    ) -> List[uuid.UUID]:
        stmt = (
            select(Agreement.id)
            .where(
                _claimable((DeliveryStatus.FAILED,), stale_before),
                Agreement.tenant_verified.is_(True),
                Agreement.landlord_verified.is_(True),
            )
            .order_by(Agreement.updated_at)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def _update_where(self, *conditions, values: dict) -> Optional[Agreement]:
        stmt = (
            update(Agreement)
            .where(*conditions)
            .values(**values)
            .returning(Agreement)
            .execution_options(synchronize_session=False, populate_existing=True)
        )
        try:
            result = await self.db.execute(stmt)
            updated = result.scalar_one_or_none()
            await self.db.commit()
            return updated
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    @staticmethod
    def _check_forward_only(values: dict) -> None:
        locked = IMMUTABLE_FIELDS.intersection(values)
        if locked:
            raise ValueError(f"Cannot modify {', '.join(sorted(locked))}")
        for flag in ONE_WAY_FLAGS.intersection(values):
            if values[flag] is not True:
                raise ValueError(f"{flag} can only be set to true")
        if "pdf_url" in values and values["pdf_url"] is None:
            raise ValueError("pdf_url cannot be cleared")
