"""Sync run audit trail (``audit_sync_runs``)."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.logging import get_logger
from app.models.audit import AuditSyncRun
from app.schemas.sync import StepStatus

logger = get_logger(__name__)

RUNNING = "running"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncAuditLog:
    """Creates, completes and queries audit records."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def start(self, entity: str) -> int:
        """Open a ``running`` record for ``entity`` and return its id."""
        async with self.session_factory() as session:
            run = AuditSyncRun(
                entity=entity,
                started_at=utc_now(),
                status=RUNNING,
                records_fetched=0,
                records_upserted=0,
            )
            session.add(run)
            await session.flush()
            run_id = run.id
            await session.commit()
            return run_id

    async def complete(
        self,
        run_id: int,
        status: StepStatus,
        records_fetched: int = 0,
        records_upserted: int = 0,
        cursor: Optional[datetime] = None,
        error_message: Optional[str] = None,
    ) -> None:
        """Close a record. A failure here is logged, never raised."""
        try:
            async with self.session_factory() as session:
                await session.execute(
                    update(AuditSyncRun)
                    .where(AuditSyncRun.id == run_id)
                    .values(
                        finished_at=utc_now(),
                        status=status.value,
                        records_fetched=records_fetched,
                        records_upserted=records_upserted,
                        last_sync_cursor=cursor,
                        error_message=error_message,
                    )
                )
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to update audit run %s: %s", run_id, exc)

    async def last_cursor(self, entity: str) -> Optional[datetime]:
        """Cursor of the most recent successful run of ``entity``, if any."""
        async with self.session_factory() as session:
            stmt = (
                select(AuditSyncRun.last_sync_cursor)
                .where(
                    AuditSyncRun.entity == entity,
                    AuditSyncRun.status == StepStatus.SUCCESS.value,
                )
                .order_by(AuditSyncRun.finished_at.desc(), AuditSyncRun.id.desc())
                .limit(1)
            )
            return (await session.execute(stmt)).scalar_one_or_none()

    async def recent(self, limit: int = 50) -> list[AuditSyncRun]:
        """Latest audit records, newest first."""
        async with self.session_factory() as session:
            stmt = select(AuditSyncRun).order_by(AuditSyncRun.id.desc()).limit(limit)
            return list((await session.execute(stmt)).scalars().all())
