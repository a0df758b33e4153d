"""Pydantic schemas for sync results and the trigger endpoints."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class StepStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


class DimensionSyncResult(BaseModel):
    """Outcome of one dimension sync."""

    entity: str
    records: int = 0
    status: StepStatus = StepStatus.SUCCESS
    error: Optional[str] = None
    # Only filled by the page-ranged customer sync
    total_pages: Optional[int] = None
    last_page: Optional[int] = None
    done: Optional[bool] = None


class FactSyncResult(BaseModel):
    """Outcome of a title, settlement or statement sync."""

    fetched: int = 0
    upserted: int = 0
    total_pages: int = 0
    last_page: int = 0
    done: bool = True


class RecalcResult(BaseModel):
    """Outcome of a derived-metrics recalculation."""

    updated: int = 0
    records_loaded: int = Field(0, description="Settlement rows read")
    titulos_loaded: int = Field(0, description="Title rows read")
    aggregation_count: int = Field(0, description="Titles with at least one settlement")
    errors: list[str] = Field(default_factory=list)


class SyncRunResult(BaseModel):
    """Full orchestration summary.

    ``run_id`` is None and ``message`` is set when the run was skipped.
    """

    run_id: Optional[int] = None
    status: StepStatus
    started_at: datetime
    finished_at: datetime
    dimensions: list[DimensionSyncResult] = Field(default_factory=list)
    titulos: Optional[FactSyncResult] = None
    recebimentos: Optional[FactSyncResult] = None
    recalc: Optional[RecalcResult] = None
    extrato: Optional[FactSyncResult] = None
    errors: list[str] = Field(default_factory=list)
    message: Optional[str] = None


class SyncStep(str, Enum):
    """Steps that can be triggered individually."""

    CLIENTES = "clientes"
    CONTAS_CORRENTES = "contas_correntes"
    DEPARTAMENTOS = "departamentos"
    CATEGORIAS = "categorias"
    VENDEDORES = "vendedores"
    DIMENSIONS = "dimensions"
    TITULOS = "titulos"
    RECEBIMENTOS = "recebimentos"
    RECALC = "recalc"
    EXTRATO = "extrato"
    ALL = "all"


class SyncTriggerRequest(BaseModel):
    """Request body of ``POST /api/v1/omie/sync``."""

    model_config = ConfigDict(populate_by_name=True)

    step: SyncStep
    from_page: int = Field(1, ge=1, alias="fromPage")
    to_page: Optional[int] = Field(None, ge=1, alias="toPage")


class SyncTriggerResponse(BaseModel):
    """Uniform envelope returned by ``POST /api/v1/omie/sync``."""

    success: bool
    step: str
    result: Optional[Any] = None
    error: Optional[str] = None
    message: Optional[str] = None


class AuditRunResponse(BaseModel):
    """An ``audit_sync_runs`` row as returned by the history endpoint."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    entity: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    status: str
    records_fetched: int = 0
    records_upserted: int = 0
    last_sync_cursor: Optional[datetime] = None
    error_message: Optional[str] = None
