"""Dimension synchronizers — Omie cadastros into the ``dim_*`` tables.

Each sync fetches the whole list (customers may be fetched a page range at a
time), validates it, maps Omie field names to columns and upserts keyed on
``omie_codigo``. ``sync_all`` runs the five syncs concurrently and reports
one result per entity; a failing entity never stops the others.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Optional

from app.core.config import Settings
from app.core.logging import get_logger
from app.models.dimensions import (
    DimCategoria,
    DimCliente,
    DimContaCorrente,
    DimDepartamento,
    DimVendedor,
)
from app.schemas.omie import (
    OmieCategoria,
    OmieCliente,
    OmieContaCorrente,
    OmieDepartamento,
    OmieVendedor,
)
from app.schemas.sync import DimensionSyncResult, StepStatus
from app.services.ingestion.normalizer import blank_to_none, is_active
from app.services.ingestion.validation import validate_many
from app.services.omie import endpoints
from app.services.omie.client import OmieClient
from app.services.omie.pagination import ListPagesConfig, list_all, list_pages
from app.services.store import WarehouseStore

logger = get_logger(__name__)


class DimensionSync:
    """Syncs customers, bank accounts, departments, categories and sales reps."""

    def __init__(self, client: OmieClient, store: WarehouseStore, config: Settings) -> None:
        self.client = client
        self.store = store
        self.config = config

    def _list_config(self, endpoint: str, call: str, data_key: str, **params) -> ListPagesConfig:
        return ListPagesConfig(
            endpoint=endpoint,
            call=call,
            data_key=data_key,
            params=params,
            page_size=self.config.omie_page_size,
        )

    # ── Individual syncs ─────────────────────────────────────────────

    async def sync_clientes(
        self,
        from_page: int = 1,
        to_page: Optional[int] = None,
    ) -> DimensionSyncResult:
        """Customers can run into thousands of pages; fetch a page range."""
        pages = await list_pages(
            self.client,
            self._list_config(
                endpoints.CLIENTES,
                "ListarClientes",
                "clientes_cadastro",
                apenas_importado_api="N",
            ),
            from_page,
            to_page,
        )
        parsed = validate_many(OmieCliente, pages.records)
        now = datetime.now(timezone.utc)

        rows = [
            {
                "omie_codigo": c.codigo_cliente_omie,
                "codigo_integracao": blank_to_none(c.codigo_cliente_integracao),
                "razao_social": c.razao_social,
                "nome_fantasia": blank_to_none(c.nome_fantasia),
                "cnpj_cpf": blank_to_none(c.cnpj_cpf),
                "cidade": blank_to_none(c.cidade),
                "estado": blank_to_none(c.estado),
                "email": blank_to_none(c.email),
                "telefone": blank_to_none(c.telefone1_numero),
                "ativo": is_active(c.inativo),
                "updated_at": now,
            }
            for c in parsed
        ]
        upserted = await self.store.upsert(DimCliente, rows, "omie_codigo")
        logger.info(
            "dim_cliente: pages %d-%d of %d, %d upserted",
            from_page,
            pages.last_page,
            pages.total_pages,
            upserted,
        )
        return DimensionSyncResult(
            entity=DimCliente.__tablename__,
            records=upserted,
            total_pages=pages.total_pages,
            last_page=pages.last_page,
            done=pages.done,
        )

    async def sync_contas_correntes(self) -> int:
        raw = await list_all(
            self.client,
            self._list_config(
                endpoints.CONTAS_CORRENTES,
                "ListarContasCorrentes",
                "ListarContasCorrentes",
            ),
        )
        now = datetime.now(timezone.utc)
        rows = [
            {
                "omie_codigo": cc.nCodCC,
                "descricao": cc.descricao,
                "tipo": blank_to_none(cc.tipo_conta_corrente),
                "banco": blank_to_none(cc.codigo_banco),
                "agencia": blank_to_none(cc.codigo_agencia),
                "conta": blank_to_none(cc.numero_conta_corrente),
                "ativo": is_active(cc.inativo),
                "updated_at": now,
            }
            for cc in validate_many(OmieContaCorrente, raw)
        ]
        return await self.store.upsert(DimContaCorrente, rows, "omie_codigo")

    async def sync_departamentos(self) -> int:
        raw = await list_all(
            self.client,
            self._list_config(endpoints.DEPARTAMENTOS, "ListarDepartamentos", "departamentos"),
        )
        now = datetime.now(timezone.utc)
        rows = [
            {
                "omie_codigo": d.codigo,
                "descricao": d.descricao,
                "ativo": is_active(d.inativo),
                "updated_at": now,
            }
            for d in validate_many(OmieDepartamento, raw)
        ]
        return await self.store.upsert(DimDepartamento, rows, "omie_codigo")

    async def sync_categorias(self) -> int:
        raw = await list_all(
            self.client,
            self._list_config(endpoints.CATEGORIAS, "ListarCategorias", "categoria_cadastro"),
        )
        now = datetime.now(timezone.utc)
        rows = [
            {
                "omie_codigo": cat.codigo,
                "descricao": cat.descricao,
                "descricao_padrao": blank_to_none(cat.descricao_padrao),
                "ativo": is_active(cat.conta_inativa),
                "updated_at": now,
            }
            for cat in validate_many(OmieCategoria, raw)
        ]
        return await self.store.upsert(DimCategoria, rows, "omie_codigo")

    async def sync_vendedores(self) -> int:
        raw = await list_all(
            self.client,
            self._list_config(endpoints.VENDEDORES, "ListarVendedores", "cadastro"),
        )
        now = datetime.now(timezone.utc)
        rows = [
            {
                "omie_codigo": v.codigo,
                "nome": v.nome,
                "email": blank_to_none(v.email),
                "ativo": is_active(v.inativo),
                "updated_at": now,
            }
            for v in validate_many(OmieVendedor, raw)
        ]
        return await self.store.upsert(DimVendedor, rows, "omie_codigo")

    # ── Fan-out ──────────────────────────────────────────────────────

    async def sync_all(self) -> list[DimensionSyncResult]:
        """Run every dimension sync concurrently and collect all outcomes."""

        async def _clientes() -> int:
            return (await self.sync_clientes()).records

        tasks: list[tuple[str, Callable[[], Awaitable[int]]]] = [
            (DimCliente.__tablename__, _clientes),
            (DimContaCorrente.__tablename__, self.sync_contas_correntes),
            (DimDepartamento.__tablename__, self.sync_departamentos),
            (DimCategoria.__tablename__, self.sync_categorias),
            (DimVendedor.__tablename__, self.sync_vendedores),
        ]
        outcomes = await asyncio.gather(
            *(fn() for _, fn in tasks),
            return_exceptions=True,
        )

        results: list[DimensionSyncResult] = []
        for (entity, _), outcome in zip(tasks, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("%s sync failed: %s", entity, outcome)
                results.append(
                    DimensionSyncResult(
                        entity=entity,
                        records=0,
                        status=StepStatus.ERROR,
                        error=str(outcome) or type(outcome).__name__,
                    )
                )
            else:
                results.append(DimensionSyncResult(entity=entity, records=outcome))
        return results
