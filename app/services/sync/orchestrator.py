"""Sync orchestrator — the full Omie -> warehouse pipeline.

Execution order:
  1. Dimension tables (all five concurrently)
  2. Contas a receber (incremental)
  3. Recebimentos (always a full fetch)
  4. Derived metrics recalculation
  5. Extrato CC (incremental, optional)

Every step gets its own audit record. A failing step is recorded and the
run moves on to the next one; the run ends as ``error`` if any step failed.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, Optional, TypeVar

from app.core.config import Settings
from app.core.exceptions import SyncStepError
from app.core.logging import get_logger
from app.models.dimensions import (
    DimCategoria,
    DimCliente,
    DimContaCorrente,
    DimDepartamento,
    DimVendedor,
)
from app.models.extrato import FactExtratoCC
from app.models.recebimento import FactRecebimento
from app.models.titulo import FactTituloReceber
from app.schemas.sync import (
    DimensionSyncResult,
    FactSyncResult,
    RecalcResult,
    StepStatus,
    SyncRunResult,
    SyncStep,
)
from app.services.omie.client import OmieClient
from app.services.store import WarehouseStore
from app.services.sync.audit import SyncAuditLog, utc_now
from app.services.sync.dimensions import DimensionSync
from app.services.sync.extrato import ExtratoSync
from app.services.sync.recalc import MetricsRecalculator
from app.services.sync.recebimentos import RecebimentoSync
from app.services.sync.titulos import TituloSync

logger = get_logger(__name__)

T = TypeVar("T")

ENTITY_FULL_SYNC = "full_sync"
ENTITY_DIMENSIONS = "dimensions"
ENTITY_TITULOS = FactTituloReceber.__tablename__
ENTITY_RECEBIMENTOS = FactRecebimento.__tablename__
ENTITY_RECALC = "recalc_titulo_metrics"
ENTITY_EXTRATO = FactExtratoCC.__tablename__

_STEP_ENTITIES: dict[SyncStep, str] = {
    SyncStep.CLIENTES: DimCliente.__tablename__,
    SyncStep.CONTAS_CORRENTES: DimContaCorrente.__tablename__,
    SyncStep.DEPARTAMENTOS: DimDepartamento.__tablename__,
    SyncStep.CATEGORIAS: DimCategoria.__tablename__,
    SyncStep.VENDEDORES: DimVendedor.__tablename__,
    SyncStep.DIMENSIONS: ENTITY_DIMENSIONS,
    SyncStep.TITULOS: ENTITY_TITULOS,
    SyncStep.RECEBIMENTOS: ENTITY_RECEBIMENTOS,
    SyncStep.RECALC: ENTITY_RECALC,
    SyncStep.EXTRATO: ENTITY_EXTRATO,
}

# Single steps that leave balances provisional until recalc runs
_RECALC_AFTER = frozenset({SyncStep.TITULOS, SyncStep.RECEBIMENTOS})


def _counts(result: Any) -> tuple[int, int]:
    """(fetched, upserted) of any step result, for the audit record."""
    if isinstance(result, FactSyncResult):
        return result.fetched, result.upserted
    if isinstance(result, RecalcResult):
        return result.records_loaded, result.updated
    if isinstance(result, DimensionSyncResult):
        return result.records, result.records
    if isinstance(result, list):
        total = sum(r.records for r in result if isinstance(r, DimensionSyncResult))
        return total, total
    return 0, 0


def _failures(result: Any) -> list[str]:
    if isinstance(result, list):
        return [
            f"[{r.entity}] {r.error}"
            for r in result
            if isinstance(r, DimensionSyncResult) and r.status == StepStatus.ERROR
        ]
    return []


class SyncOrchestrator:
    """Sequences the sync steps and keeps the audit trail."""

    def __init__(
        self,
        dimensions: DimensionSync,
        titulos: TituloSync,
        recebimentos: RecebimentoSync,
        recalculator: MetricsRecalculator,
        extrato: ExtratoSync,
        audit: SyncAuditLog,
        include_extrato: bool = True,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.dimensions = dimensions
        self.titulos = titulos
        self.recebimentos = recebimentos
        self.recalculator = recalculator
        self.extrato = extrato
        self.audit = audit
        self.include_extrato = include_extrato
        self._clock = clock

    @classmethod
    def build(
        cls,
        client: OmieClient,
        store: WarehouseStore,
        audit: SyncAuditLog,
        config: Settings,
    ) -> "SyncOrchestrator":
        return cls(
            dimensions=DimensionSync(client, store, config),
            titulos=TituloSync(client, store, config),
            recebimentos=RecebimentoSync(client, store, config),
            recalculator=MetricsRecalculator(store, config),
            extrato=ExtratoSync(client, store, config),
            audit=audit,
            include_extrato=config.sync_include_extrato,
        )

    async def get_last_cursor(self, entity: str) -> Optional[datetime]:
        """Cursor of the last successful run of ``entity``; None means full fetch."""
        return await self.audit.last_cursor(entity)

    async def _audited(
        self,
        entity: str,
        action: Callable[[], Awaitable[T]],
        cursor: Optional[datetime] = None,
    ) -> T:
        """Run ``action`` inside an audit record; errors are recorded and re-raised."""
        run_id = await self.audit.start(entity)
        try:
            result = await action()
        except Exception as exc:
            await self.audit.complete(run_id, StepStatus.ERROR, error_message=str(exc))
            raise

        fetched, upserted = _counts(result)
        failures = _failures(result)
        if failures:
            await self.audit.complete(
                run_id,
                StepStatus.ERROR,
                fetched,
                upserted,
                error_message=" | ".join(failures),
            )
        else:
            await self.audit.complete(run_id, StepStatus.SUCCESS, fetched, upserted, cursor)
        return result

    # ── Full run ─────────────────────────────────────────────────────

    async def run_full_sync(self) -> SyncRunResult:
        """Run every step in order, best effort."""
        started_at = self._clock()
        run_id = await self.audit.start(ENTITY_FULL_SYNC)
        errors: list[str] = []
        total_steps = 5 if self.include_extrato else 4

        dimensions: list[DimensionSyncResult] = []
        titulos: Optional[FactSyncResult] = None
        recebimentos: Optional[FactSyncResult] = None
        recalc: Optional[RecalcResult] = None
        extrato: Optional[FactSyncResult] = None

        # Step 1: dimensions
        try:
            logger.info("Step 1/%d: syncing dimensions", total_steps)
            dimensions = await self._audited(ENTITY_DIMENSIONS, self.dimensions.sync_all)
            errors.extend(_failures(dimensions))
        except Exception as exc:
            errors.append(f"[{ENTITY_DIMENSIONS}] {exc}")
            logger.error("Dimensions step failed: %s", exc)

        # Step 2: contas a receber
        try:
            logger.info("Step 2/%d: syncing contas a receber", total_steps)
            since = await self.get_last_cursor(ENTITY_TITULOS)
            titulos = await self._audited(
                ENTITY_TITULOS,
                lambda: self.titulos.sync(since=since),
                cursor=started_at,
            )
        except Exception as exc:
            errors.append(f"[{ENTITY_TITULOS}] {exc}")
            logger.error("Contas a receber step failed: %s", exc)

        # Step 3: recebimentos. Rows are merged per title, so no date window
        try:
            logger.info("Step 3/%d: syncing recebimentos", total_steps)
            recebimentos = await self._audited(
                ENTITY_RECEBIMENTOS,
                self.recebimentos.sync,
                cursor=started_at,
            )
        except Exception as exc:
            errors.append(f"[{ENTITY_RECEBIMENTOS}] {exc}")
            logger.error("Recebimentos step failed: %s", exc)

        # Step 4: balances are provisional until recalculated
        try:
            logger.info("Step 4/%d: recalculating titulo metrics", total_steps)
            recalc = await self._audited(ENTITY_RECALC, self.recalculator.recalculate)
        except Exception as exc:
            errors.append(f"[{ENTITY_RECALC}] {exc}")
            logger.error("Recalc step failed: %s", exc)

        # Step 5: extrato
        if self.include_extrato:
            try:
                logger.info("Step 5/%d: syncing extrato", total_steps)
                since = await self.get_last_cursor(ENTITY_EXTRATO)
                extrato = await self._audited(
                    ENTITY_EXTRATO,
                    lambda: self.extrato.sync(since=since),
                    cursor=started_at,
                )
            except Exception as exc:
                errors.append(f"[{ENTITY_EXTRATO}] {exc}")
                logger.error("Extrato step failed: %s", exc)

        fetched = upserted = 0
        for result in (dimensions, titulos, recebimentos, extrato):
            step_fetched, step_upserted = _counts(result)
            fetched += step_fetched
            upserted += step_upserted

        status = StepStatus.ERROR if errors else StepStatus.SUCCESS
        await self.audit.complete(
            run_id,
            status,
            fetched,
            upserted,
            cursor=started_at,
            error_message=" | ".join(errors) if errors else None,
        )
        finished_at = self._clock()

        logger.info(
            "Full sync finished: status=%s fetched=%d upserted=%d errors=%d",
            status.value,
            fetched,
            upserted,
            len(errors),
        )
        return SyncRunResult(
            run_id=run_id,
            status=status,
            started_at=started_at,
            finished_at=finished_at,
            dimensions=dimensions,
            titulos=titulos,
            recebimentos=recebimentos,
            recalc=recalc,
            extrato=extrato,
            errors=errors,
        )

    # ── Single steps ─────────────────────────────────────────────────

    async def run_step(
        self,
        step: SyncStep,
        from_page: int = 1,
        to_page: Optional[int] = None,
    ) -> Any:
        """Run one step on demand.

        Page bounds apply to the paginated steps (clientes, titulos,
        recebimentos) and let callers split a long sync across invocations.
        A titulos or recebimentos run that reaches the last page is followed
        by a metrics recalculation.

        Raises:
            SyncStepError: the step failed; ``step`` names it.
        """
        if step == SyncStep.ALL:
            return await self.run_full_sync()

        async def _single(entity: str, sync: Callable[[], Awaitable[int]]) -> DimensionSyncResult:
            return DimensionSyncResult(entity=entity, records=await sync())

        handlers: dict[SyncStep, Callable[[], Awaitable[Any]]] = {
            SyncStep.CLIENTES: lambda: self.dimensions.sync_clientes(from_page, to_page),
            SyncStep.CONTAS_CORRENTES: lambda: _single(
                DimContaCorrente.__tablename__, self.dimensions.sync_contas_correntes
            ),
            SyncStep.DEPARTAMENTOS: lambda: _single(
                DimDepartamento.__tablename__, self.dimensions.sync_departamentos
            ),
            SyncStep.CATEGORIAS: lambda: _single(
                DimCategoria.__tablename__, self.dimensions.sync_categorias
            ),
            SyncStep.VENDEDORES: lambda: _single(
                DimVendedor.__tablename__, self.dimensions.sync_vendedores
            ),
            SyncStep.DIMENSIONS: self.dimensions.sync_all,
            SyncStep.TITULOS: lambda: self.titulos.sync(from_page, to_page),
            SyncStep.RECEBIMENTOS: lambda: self.recebimentos.sync(from_page, to_page),
            SyncStep.RECALC: self.recalculator.recalculate,
            SyncStep.EXTRATO: self.extrato.sync,
        }

        logger.info("Running step %s (pages %s..%s)", step.value, from_page, to_page or "end")
        try:
            result = await self._audited(_STEP_ENTITIES[step], handlers[step])
            if step in _RECALC_AFTER:
                if result.done:
                    logger.info("Step %s reached the last page, recalculating", step.value)
                    await self._audited(ENTITY_RECALC, self.recalculator.recalculate)
                else:
                    logger.warning(
                        "Step %s stopped at page %d of %d: balances stay provisional "
                        "until the last page is synced",
                        step.value,
                        result.last_page,
                        result.total_pages,
                    )
        except Exception as exc:
            raise SyncStepError(step.value, str(exc)) from exc
        return result
