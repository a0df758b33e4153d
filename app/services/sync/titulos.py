"""Contas a receber sync — Omie titles into ``fact_titulo_receber``."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from app.core.config import Settings
from app.core.logging import get_logger
from app.models.dimensions import (
    DimCategoria,
    DimCliente,
    DimContaCorrente,
    DimDepartamento,
    DimVendedor,
)
from app.models.titulo import FactTituloReceber
from app.schemas.omie import OmieContaReceber
from app.schemas.sync import FactSyncResult
from app.services.ingestion.normalizer import (
    CANCELADO,
    LIQUIDADO,
    blank_to_none,
    format_omie_date,
    normalize_titulo_status,
    omie_today,
    parse_omie_date,
    to_money,
)
from app.services.ingestion.validation import validate_many
from app.services.omie import endpoints
from app.services.omie.client import OmieClient
from app.services.omie.pagination import ListPagesConfig, list_pages
from app.services.store import WarehouseStore

logger = get_logger(__name__)


def initial_balance(status: str, valor_documento: Decimal) -> Decimal:
    """Provisional balance until settlements are recalculated.

    Settled and cancelled titles start at zero; everything else owes the
    full face value.
    """
    if status in (LIQUIDADO, CANCELADO):
        return Decimal("0.00")
    return to_money(valor_documento)


class TituloSync:
    """Syncs receivable titles and resolves their dimension foreign keys."""

    def __init__(self, client: OmieClient, store: WarehouseStore, config: Settings) -> None:
        self.client = client
        self.store = store
        self.config = config

    async def sync(
        self,
        from_page: int = 1,
        to_page: Optional[int] = None,
        since: Optional[datetime] = None,
    ) -> FactSyncResult:
        """Fetch a page range of titles and upsert it.

        Args:
            from_page: First page to fetch.
            to_page: Last page to fetch; None fetches through the last page.
            since: Only titles altered since this instant (incremental sync).

        Raises:
            StoreWriteError: an upsert chunk failed. Chunks written before
                the failure stay committed.
        """
        params: dict[str, Any] = {}
        if since is not None:
            params["dDtAlterDe"] = format_omie_date(since)
            params["dDtAlterAte"] = format_omie_date(omie_today())

        pages = await list_pages(
            self.client,
            ListPagesConfig(
                endpoint=endpoints.CONTA_RECEBER,
                call="ListarContasReceber",
                data_key="conta_receber_cadastro",
                params=params,
                page_size=self.config.omie_page_size,
            ),
            from_page,
            to_page,
        )
        parsed = validate_many(OmieContaReceber, pages.records)

        if not parsed:
            return FactSyncResult(
                fetched=0,
                upserted=0,
                total_pages=pages.total_pages,
                last_page=pages.last_page,
                done=pages.done,
            )

        # Rebuilt on every call: dimensions may have changed in this run
        clientes, contas, categorias, vendedores, departamentos = await asyncio.gather(
            self.store.build_lookup(DimCliente),
            self.store.build_lookup(DimContaCorrente),
            self.store.build_lookup(DimCategoria),
            self.store.build_lookup(DimVendedor),
            self.store.build_lookup(DimDepartamento),
        )

        now = datetime.now(timezone.utc)
        rows = []
        unresolved_clientes = 0
        for cr in parsed:
            cliente_id = clientes.get(cr.codigo_cliente_fornecedor)
            if cliente_id is None:
                unresolved_clientes += 1

            first_dept = cr.distribuicao[0].codigo_departamento if cr.distribuicao else None
            status = normalize_titulo_status(cr.status_titulo)

            rows.append(
                {
                    "omie_codigo_titulo": cr.codigo_lancamento_omie,
                    "codigo_integracao": blank_to_none(cr.codigo_lancamento_integracao),
                    "cliente_id": cliente_id,
                    "conta_corrente_id": contas.get(cr.id_conta_corrente)
                    if cr.id_conta_corrente
                    else None,
                    "categoria_id": categorias.get(cr.codigo_categoria)
                    if cr.codigo_categoria
                    else None,
                    "vendedor_id": vendedores.get(cr.codigo_vendedor)
                    if cr.codigo_vendedor
                    else None,
                    "departamento_id": departamentos.get(first_dept) if first_dept else None,
                    "numero_documento": blank_to_none(cr.numero_documento),
                    "numero_parcela": blank_to_none(cr.numero_parcela),
                    "data_emissao": parse_omie_date(cr.data_emissao),
                    "data_vencimento": parse_omie_date(cr.data_vencimento),
                    "data_previsao": parse_omie_date(cr.data_previsao),
                    "data_registro": parse_omie_date(cr.data_registro),
                    "valor_documento": to_money(cr.valor_documento),
                    "status_titulo": status,
                    "saldo_em_aberto": initial_balance(status, cr.valor_documento),
                    "observacao": blank_to_none(cr.observacao),
                    "updated_at": now,
                }
            )

        if unresolved_clientes:
            logger.warning(
                "%d title(s) reference a customer missing from dim_cliente",
                unresolved_clientes,
            )

        upserted = await self.store.upsert(FactTituloReceber, rows, "omie_codigo_titulo")
        logger.info(
            "fact_titulo_receber: pages %d-%d of %d, fetched=%d upserted=%d",
            from_page,
            pages.last_page,
            pages.total_pages,
            len(parsed),
            upserted,
        )
        return FactSyncResult(
            fetched=len(parsed),
            upserted=upserted,
            total_pages=pages.total_pages,
            last_page=pages.last_page,
            done=pages.done,
        )
