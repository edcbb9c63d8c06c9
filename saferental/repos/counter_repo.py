from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from saferental.core.exceptions import AllocationError
from saferental.models.models import AgreementCounter

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class AgreementCounterRepo:
    def __init__(self, db):
        self.db = db

    async def increment(self, year: str) -> int:
        """Atomically bump the counter for ``year`` and return the new value.

        A single INSERT ... ON CONFLICT DO UPDATE ... RETURNING, so concurrent
        callers are serialised by the row lock instead of a read-then-write.
        The increment is committed on its own; a failure further along leaves
        a gap in the numbering rather than a reused number.
        """
        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)
        if insert is None:
            raise AllocationError(f"No atomic counter upsert for the {dialect} dialect")

        stmt = insert(AgreementCounter).values(year=year, seq=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=[AgreementCounter.year],
            set_={"seq": AgreementCounter.seq + 1},
        ).returning(AgreementCounter.seq)

        try:
            result = await self.db.execute(stmt)
            seq = result.scalar_one()
            await self.db.commit()
            return seq
        except SQLAlchemyError:
            await self.db.rollback()
            raise
