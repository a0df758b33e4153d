"""Derived-metrics recalculation for ``fact_titulo_receber``.

Reads every settlement row, sums them per title code, then rewrites the four
derived columns of each title that has settlements. Totals are recomputed
from the settlement rows every time, so running it twice on the same data
gives the same values.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from datetime import date
from typing import Any, Optional

from app.core.config import Settings
from app.core.logging import get_logger
from app.models.recebimento import FactRecebimento
from app.models.titulo import FactTituloReceber
from app.schemas.sync import RecalcResult
from app.services.store import WarehouseStore
from app.services.sync.metrics import calculate_titulo_metrics, summarize_baixas

logger = get_logger(__name__)

_RECEBIMENTO_COLUMNS = (
    "omie_codigo_titulo",
    "valor_baixado",
    "valor_desconto",
    "valor_juros",
    "valor_multa",
    "tipo_baixa",
)
_TITULO_COLUMNS = (
    "id",
    "omie_codigo_titulo",
    "valor_documento",
    "status_titulo",
    "data_vencimento",
)


class MetricsRecalculator:
    """Recomputes principal, balance, cash collected and discount per title."""

    def __init__(self, store: WarehouseStore, config: Settings) -> None:
        self.store = store
        self.concurrency = max(1, config.recalc_concurrency)

    async def recalculate(self, reference_date: Optional[date] = None) -> RecalcResult:
        recebimentos = await self.store.fetch_all(FactRecebimento, _RECEBIMENTO_COLUMNS)

        by_titulo: dict[int, list[Any]] = defaultdict(list)
        for row in recebimentos:
            by_titulo[row["omie_codigo_titulo"]].append(row)
        aggregated = {code: summarize_baixas(rows) for code, rows in by_titulo.items()}

        titulos = await self.store.fetch_all(FactTituloReceber, _TITULO_COLUMNS)

        updates: list[tuple[int, dict[str, Any]]] = []
        for titulo in titulos:
            totals = aggregated.get(titulo["omie_codigo_titulo"])
            if totals is None:
                continue
            metrics = calculate_titulo_metrics(
                titulo["valor_documento"],
                titulo["status_titulo"],
                titulo["data_vencimento"],
                totals,
                reference_date,
            )
            updates.append((titulo["id"], metrics.derived_columns()))

        updated = 0
        errors: list[str] = []
        for start in range(0, len(updates), self.concurrency):
            batch = updates[start : start + self.concurrency]
            outcomes = await asyncio.gather(
                *(
                    self.store.update_row(FactTituloReceber, titulo_id, values)
                    for titulo_id, values in batch
                ),
                return_exceptions=True,
            )
            for (titulo_id, _), outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error("Failed to update titulo %s: %s", titulo_id, outcome)
                    errors.append(f"titulo {titulo_id}: {outcome}")
                else:
                    updated += 1

        logger.info(
            "Recalc: %d recebimentos, %d titulos, %d aggregated, %d updated, %d errors",
            len(recebimentos),
            len(titulos),
            len(aggregated),
            updated,
            len(errors),
        )
        return RecalcResult(
            updated=updated,
            records_loaded=len(recebimentos),
            titulos_loaded=len(titulos),
            aggregation_count=len(aggregated),
            errors=errors,
        )
