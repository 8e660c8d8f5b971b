"""
Reconcile the external HR roster with the local ``users`` table.

Every roster record is upserted by ``employee_id``: unknown ids become new
users with role ``user``, known ids only get their display name refreshed.
Local users missing from the roster are left alone. The sync is not one big
transaction; each record commits on its own, so a rerun after a failure
converges to the same state.
"""
import asyncio
import enum
import logging
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from sqlalchemy import literal_column, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hrassess.core.config import settings
from hrassess.core.errors import InfrastructureError
from hrassess.models.orm import ActivityType, User, UserRole
from hrassess.services.activity_log import record_activity
from hrassess.services.hr_client import HRRosterClient
from hrassess.services.settings_store import dialect_insert

logger = logging.getLogger(__name__)

NAME_FIELDS = ("empName", "name")
EMPLOYEE_ID_FIELDS = ("empNumber", "empID", "employee_id")


class RecordOutcome(str, enum.Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    SKIPPED = "skipped"


@dataclass
class SyncResult:
    total: int = 0
    added: int = 0
    updated: int = 0
    skipped: int = 0
    external_count: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def _first_text(record: Mapping[str, Any], fields: Sequence[str]) -> Optional[str]:
    for field in fields:
        value = record.get(field)
        if value is None or isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            value = str(int(value)) if float(value).is_integer() else str(value)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def extract_identity(record: Any) -> Optional[Tuple[str, str]]:
    """``(name, employee_id)`` of a roster record, or ``None`` when either is missing."""
    if not isinstance(record, Mapping):
        return None
    name = _first_text(record, NAME_FIELDS)
    employee_id = _first_text(record, EMPLOYEE_ID_FIELDS)
    if not name or not employee_id:
        return None
    return name, employee_id


def chunked(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


async def upsert_user(session: AsyncSession, name: str, employee_id: str) -> RecordOutcome:
    """Insert or rename one user; the insert statement itself says whether the row is new."""
    stmt = dialect_insert(session, User).values(
        name=name, employee_id=employee_id, role=UserRole.USER.value, password=""
    )
    if session.bind.dialect.name == "postgresql":
        stmt = stmt.on_conflict_do_update(
            index_elements=[User.employee_id],
            set_={"name": stmt.excluded.name},
        ).returning(literal_column("(xmax = 0)").label("inserted"))
        inserted = (await session.execute(stmt)).scalar_one()
        return RecordOutcome.INSERTED if inserted else RecordOutcome.UPDATED

    stmt = stmt.on_conflict_do_nothing(index_elements=[User.employee_id]).returning(User.id)
    if (await session.execute(stmt)).scalar_one_or_none() is not None:
        return RecordOutcome.INSERTED
    await session.execute(update(User).where(User.employee_id == employee_id).values(name=name))
    return RecordOutcome.UPDATED


class HRSyncService:
    def __init__(
        self,
        client: HRRosterClient,
        session_factory: async_sessionmaker[AsyncSession],
        chunk_size: int = settings.HR_SYNC_CHUNK_SIZE,
    ):
        self.client = client
        self.session_factory = session_factory
        self.chunk_size = chunk_size

    async def sync(self, actor_id: Optional[int] = None) -> SyncResult:
        roster = await self.client.fetch()
        logger.info("Fetched %d records from HR system", len(roster))

        outcomes: List[RecordOutcome] = []
        for chunk in chunked(roster, self.chunk_size):
            outcomes.extend(await self._reconcile_chunk(chunk))

        counts = Counter(outcomes)
        result = SyncResult(
            total=len(outcomes),
            added=counts[RecordOutcome.INSERTED],
            updated=counts[RecordOutcome.UPDATED],
            skipped=counts[RecordOutcome.SKIPPED],
            external_count=len(roster),
        )

        try:
            async with self.session_factory() as session:
                async with session.begin():
                    record_activity(
                        session,
                        ActivityType.SYNC_USERS,
                        f"Synchronized {result.total} users from HR system "
                        f"({result.added} new, {result.updated} updated, {result.skipped} skipped)",
                        actor_id,
                    )
        except SQLAlchemyError as exc:
            logger.error("Recording sync activity failed: %s", exc, exc_info=True)
            raise InfrastructureError("Failed to sync users") from exc

        logger.info("User sync finished: %s", result.to_dict())
        return result

    async def _reconcile_chunk(self, chunk: Sequence[Any]) -> List[RecordOutcome]:
        """Reconcile one chunk concurrently; the first failure cancels the records still in flight."""
        tasks = [asyncio.ensure_future(self._reconcile(record)) for record in chunk]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _reconcile(self, record: Any) -> RecordOutcome:
        identity = extract_identity(record)
        if identity is None:
            logger.debug("Skipping roster record without name or employee id: %r", record)
            return RecordOutcome.SKIPPED
        name, employee_id = identity
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    return await upsert_user(session, name, employee_id)
        except SQLAlchemyError as exc:
            logger.error("Upserting employee %s failed: %s", employee_id, exc)
            raise InfrastructureError("Failed to sync users", details={"employee_id": employee_id}) from exc
