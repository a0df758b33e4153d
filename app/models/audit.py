"""Audit trail of sync runs — also the source of incremental cursors."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class AuditSyncRun(Base):
    """One orchestrated run or one step of it.

    The latest ``success`` row of an entity provides ``last_sync_cursor``,
    the lower bound of the next incremental fetch.
    """

    __tablename__ = "audit_sync_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entity: Mapped[str] = mapped_column(String(50), nullable=False)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        comment="running | success | error",
    )
    records_fetched: Mapped[int] = mapped_column(Integer, default=0)
    records_upserted: Mapped[int] = mapped_column(Integer, default=0)
    last_sync_cursor: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text)

    __table_args__ = (
        Index("ix_audit_entity_status_finished", "entity", "status", "finished_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<AuditSyncRun(id={self.id}, entity={self.entity!r}, "
            f"status={self.status!r})>"
        )
