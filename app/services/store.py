"""Warehouse access used by the sync pipeline.

Three primitives cover everything the pipeline needs from the store:

* ``upsert``: insert-or-update keyed on a unique column, in chunks,
  reporting how many rows were written;
* ``fetch_all``: full-table read, paginated by primary key so no single
  query returns more than ``page_size`` rows;
* ``update_row``: update one row by id in its own transaction.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import RowMapping
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.database import Base
from app.core.exceptions import StoreWriteError
from app.core.logging import get_logger

logger = get_logger(__name__)

# Never overwritten by an upsert
_IMMUTABLE_COLUMNS = frozenset({"id", "created_at"})

# (table, excluded) -> SQL expression(s) for the ON CONFLICT clause
ConflictExpr = Callable[[Any, Any], Any]


class WarehouseStore:
    """Async facade over the receivables warehouse."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        page_size: int = 1000,
        chunk_size: int = 500,
    ) -> None:
        self.session_factory = session_factory
        self.page_size = page_size
        self.chunk_size = chunk_size

    async def upsert(
        self,
        model: type[Base],
        rows: Sequence[dict[str, Any]],
        conflict_column: str,
        merge: Optional[ConflictExpr] = None,
        where: Optional[ConflictExpr] = None,
    ) -> int:
        """Insert or update ``rows`` on conflict of ``conflict_column``.

        Each chunk is committed on its own: a failing chunk raises
        ``StoreWriteError`` and the chunks before it stay written.

        Args:
            merge: Builds ``{column: expression}`` overrides for the update,
                e.g. to add the incoming amount to the stored one. Columns it
                does not name are overwritten with the incoming value.
            where: Builds the condition an existing row must meet to be
                updated; rows failing it are left untouched.

        Returns:
            Rows written, as reported by the driver (chunk length when the
            driver reports nothing).
        """
        if not rows:
            return 0

        table = model.__table__
        total = 0

        async with self.session_factory() as session:
            dialect = session.bind.dialect.name
            insert_fn = pg_insert if dialect == "postgresql" else sqlite_insert

            for start in range(0, len(rows), self.chunk_size):
                chunk = list(rows[start : start + self.chunk_size])
                stmt = insert_fn(table).values(chunk)
                set_ = {
                    column: stmt.excluded[column]
                    for column in chunk[0]
                    if column != conflict_column and column not in _IMMUTABLE_COLUMNS
                }
                if merge is not None:
                    set_.update(merge(table, stmt.excluded))
                stmt = stmt.on_conflict_do_update(
                    index_elements=[conflict_column],
                    set_=set_,
                    where=where(table, stmt.excluded) if where is not None else None,
                )
                try:
                    result = await session.execute(stmt)
                    await session.commit()
                except SQLAlchemyError as exc:
                    await session.rollback()
                    logger.error(
                        "Upsert %s failed at rows %d-%d: %s",
                        table.name,
                        start,
                        start + len(chunk),
                        exc,
                    )
                    raise StoreWriteError(table.name, str(exc)) from exc

                count = result.rowcount
                total += count if count is not None and count >= 0 else len(chunk)

        logger.debug("Upserted %d rows into %s", total, table.name)
        return total

    async def fetch_all(
        self,
        model: type[Base],
        columns: Sequence[str],
        *criteria: Any,
    ) -> list[RowMapping]:
        """Read the selected columns of every matching row, page by page."""
        selected = [getattr(model, name) for name in columns]
        rows: list[RowMapping] = []
        offset = 0

        async with self.session_factory() as session:
            while True:
                stmt = (
                    select(*selected)
                    .where(*criteria)
                    .order_by(model.id)
                    .offset(offset)
                    .limit(self.page_size)
                )
                batch = (await session.execute(stmt)).mappings().all()
                rows.extend(batch)
                if len(batch) < self.page_size:
                    break
                offset += self.page_size

        return rows

    async def update_row(
        self,
        model: type[Base],
        row_id: int,
        values: dict[str, Any],
    ) -> None:
        """Update a single row by primary key in its own transaction."""
        async with self.session_factory() as session:
            await session.execute(
                update(model).where(model.id == row_id).values(**values)
            )
            await session.commit()

    async def build_lookup(
        self,
        model: type[Base],
        key_column: str = "omie_codigo",
    ) -> dict[Any, int]:
        """Map every external code of ``model`` to its internal id."""
        rows = await self.fetch_all(model, ["id", key_column])
        return {row[key_column]: row["id"] for row in rows}
