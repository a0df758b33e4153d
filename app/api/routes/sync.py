"""Omie sync trigger endpoints.

All routes require ``Authorization: Bearer <SYNC_CRON_SECRET>``. Step
failures are reported inside the JSON envelope with HTTP 200 so that cron
tooling can inspect the body; only the auth check answers 401.
"""

from __future__ import annotations

from typing import Any, List

from fastapi import APIRouter, Depends, Query

from app.api.deps import (
    get_audit_log,
    get_omie_client,
    get_orchestrator,
    verify_sync_token,
)
from app.core.config import settings
from app.core.exceptions import ReceivablesSyncError, SyncStepError
from app.core.logging import get_logger
from app.models.audit import AuditSyncRun
from app.schemas.sync import (
    AuditRunResponse,
    StepStatus,
    SyncRunResult,
    SyncTriggerRequest,
    SyncTriggerResponse,
)
from app.services.omie import endpoints
from app.services.omie.client import OmieClient
from app.services.sync.audit import SyncAuditLog, utc_now
from app.services.sync.orchestrator import SyncOrchestrator

logger = get_logger(__name__)

router = APIRouter(dependencies=[Depends(verify_sync_token)])

# (endpoint, call, data key, page param, page size param)
PROBES: dict[str, tuple[str, str, str, str, str]] = {
    "clientes": (endpoints.CLIENTES, "ListarClientes", "clientes_cadastro", "pagina", "registros_por_pagina"),
    "contas_receber": (endpoints.CONTA_RECEBER, "ListarContasReceber", "conta_receber_cadastro", "pagina", "registros_por_pagina"),
    "movimentos": (endpoints.MOVIMENTOS_FINANCEIROS, "ListarMovimentos", "movimentos", "nPagina", "nRegPorPagina"),
    "contas_correntes": (endpoints.CONTAS_CORRENTES, "ListarContasCorrentes", "ListarContasCorrentes", "pagina", "registros_por_pagina"),
    "departamentos": (endpoints.DEPARTAMENTOS, "ListarDepartamentos", "departamentos", "pagina", "registros_por_pagina"),
    "categorias": (endpoints.CATEGORIAS, "ListarCategorias", "categoria_cadastro", "pagina", "registros_por_pagina"),
    "vendedores": (endpoints.VENDEDORES, "ListarVendedores", "cadastro", "pagina", "registros_por_pagina"),
}


MOCK_MODE_MESSAGE = "Mock mode - sync skipped"


def _mock_mode() -> bool:
    """In mock mode the sync triggers do nothing."""
    return settings.data_mode == "mock"


@router.post("/sync", response_model=SyncTriggerResponse)
async def trigger_sync(
    body: SyncTriggerRequest,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> SyncTriggerResponse:
    """Run a single sync step, optionally bounded to a page range.

    ``fromPage``/``toPage`` let a caller split a long customer, title or
    settlement sync across several invocations. Step ``all`` never raises,
    so its outcome is read from the run status.
    """
    step = body.step.value
    if _mock_mode():
        logger.info("Sync step %s skipped: data mode is mock", step)
        return SyncTriggerResponse(success=True, step=step, message=MOCK_MODE_MESSAGE)

    try:
        result = await orchestrator.run_step(body.step, body.from_page, body.to_page)
    except SyncStepError as exc:
        logger.error("Sync step %s failed: %s", step, exc)
        return SyncTriggerResponse(success=False, step=step, error=str(exc))

    if isinstance(result, SyncRunResult) and result.status != StepStatus.SUCCESS:
        return SyncTriggerResponse(
            success=False,
            step=step,
            result=result,
            error=" | ".join(result.errors),
        )
    return SyncTriggerResponse(success=True, step=step, result=result)


@router.post("/sync/run", response_model=SyncRunResult)
async def run_full_sync(
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> SyncRunResult:
    """Run the full pipeline: dimensions, titles, settlements, recalc, extrato."""
    if _mock_mode():
        logger.info("Full sync skipped: data mode is mock")
        now = utc_now()
        return SyncRunResult(
            status=StepStatus.SUCCESS,
            started_at=now,
            finished_at=now,
            message=MOCK_MODE_MESSAGE,
        )
    return await orchestrator.run_full_sync()


@router.get("/sync/runs", response_model=List[AuditRunResponse])
async def list_sync_runs(
    limit: int = Query(50, ge=1, le=500),
    audit: SyncAuditLog = Depends(get_audit_log),
) -> list[AuditSyncRun]:
    """Most recent audit records, newest first."""
    return await audit.recent(limit)


@router.post("/test")
async def test_connection(
    client: OmieClient = Depends(get_omie_client),
) -> dict[str, Any]:
    """Probe each Omie list endpoint with a one-record request."""
    report: dict[str, Any] = {}
    for name, (endpoint, call, data_key, page_field, size_field) in PROBES.items():
        try:
            response = await client.call(endpoint, call, {page_field: 1, size_field: 1})
        except ReceivablesSyncError as exc:
            report[name] = {"ok": False, "fault": str(exc)}
            continue
        report[name] = {
            "ok": True,
            "keys": sorted(response.keys()),
            "total": response.get("total_de_registros", response.get("nTotRegistros")),
            "records": len(response.get(data_key) or []),
        }
    return {"success": all(r["ok"] for r in report.values()), "endpoints": report}
