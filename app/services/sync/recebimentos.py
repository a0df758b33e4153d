"""Recebimentos sync — Omie financial movements into ``fact_recebimento``.

The movements endpoint (``/financas/mf/``) paginates in the ``mf`` style and
nests its fields::

    {"detalhes": {"nCodTitulo": ..., "nCodCC": ..., "dDtPagamento": ...},
     "resumo":   {"nValPago": ..., "nDesconto": ..., "cLiquidado": "S"}}

A title paid in instalments shows up as several movements. They are merged
into one row per title before the upsert: amounts are summed, the latest
payment date is kept and the row is liquidated if any movement was.

The merge only sees one fetch, so settlements are always fetched in full,
never by payment date. A caller may still split the fetch into page ranges:
the range starting at page 1 replaces the stored rows, later ranges add to
them. Ranges must be run in order.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Optional

from sqlalchemy import case, func, or_

from app.core.config import Settings
from app.core.logging import get_logger
from app.models.dimensions import DimContaCorrente
from app.models.recebimento import FactRecebimento
from app.models.titulo import FactTituloReceber
from app.schemas.omie import OmieMovimentoFinanceiro
from app.schemas.sync import FactSyncResult
from app.services.ingestion.normalizer import (
    BAIXA,
    DESCONTO,
    EXCLUDED_TIPOS_BAIXA,
    JUROS,
    MULTA,
    derive_tipo_baixa,
    parse_omie_date,
    to_money,
)
from app.services.ingestion.validation import validate_many
from app.services.omie import endpoints
from app.services.omie.client import OmieClient
from app.services.omie.pagination import ListPagesConfig, PaginationStyle, list_pages
from app.services.store import WarehouseStore

logger = get_logger(__name__)

# Natureza filter sent to Omie, and the labels accepted back
NATUREZA_RECEBER = "R"
_NATUREZAS_RECEBER = frozenset({"", "R", "REC"})


@dataclass
class MergedRecebimento:
    """All movements of one title within a fetch window."""

    codigo_titulo: int
    valor_pago: Decimal = Decimal("0")
    desconto: Decimal = Decimal("0")
    juros: Decimal = Decimal("0")
    multa: Decimal = Decimal("0")
    data_baixa: Optional[date] = None
    liquidado: bool = False
    codigo_cc: Optional[int] = None
    codigo_baixa: Optional[int] = None
    movimentos: int = 0

    def add(self, mov: OmieMovimentoFinanceiro) -> None:
        det, res = mov.detalhes, mov.resumo
        self.valor_pago += res.nValPago
        self.desconto += res.nDesconto
        self.juros += res.nJuros
        self.multa += res.nMulta
        paid_on = parse_omie_date(det.dDtPagamento)
        if paid_on is not None and (self.data_baixa is None or paid_on > self.data_baixa):
            self.data_baixa = paid_on
        self.liquidado = self.liquidado or res.cLiquidado.strip().upper() == "S"
        self.codigo_cc = self.codigo_cc or det.nCodCC
        self.codigo_baixa = self.codigo_baixa or det.nCodBaixa
        self.movimentos += 1

    @property
    def tipo_baixa(self) -> str:
        return derive_tipo_baixa(self.valor_pago, self.desconto, self.juros, self.multa)


def is_settlement_candidate(mov: OmieMovimentoFinanceiro) -> bool:
    """A movement counts only with a title code and a positive payment."""
    det, res = mov.detalhes, mov.resumo
    if not det.nCodTitulo or res.nValPago <= 0:
        return False
    if det.cNatureza.strip().upper() not in _NATUREZAS_RECEBER:
        return False
    tipo = derive_tipo_baixa(
        res.nValPago, res.nDesconto, res.nJuros, res.nMulta, det.cStatus
    )
    return tipo not in EXCLUDED_TIPOS_BAIXA


def merge_movimentos(
    movimentos: Iterable[OmieMovimentoFinanceiro],
) -> dict[int, MergedRecebimento]:
    """Group settlement candidates by title code."""
    merged: dict[int, MergedRecebimento] = {}
    for mov in movimentos:
        if not is_settlement_candidate(mov):
            continue
        code = mov.detalhes.nCodTitulo
        if code not in merged:
            merged[code] = MergedRecebimento(codigo_titulo=code)
        merged[code].add(mov)
    return merged


def accumulate_recebimento(table: Any, excluded: Any) -> dict[str, Any]:
    """Update expressions adding an incoming merged row to the stored one."""
    c = table.c
    desconto = c.valor_desconto + excluded.valor_desconto
    juros = c.valor_juros + excluded.valor_juros
    multa = c.valor_multa + excluded.valor_multa
    return {
        "valor_baixado": c.valor_baixado + excluded.valor_baixado,
        "valor_desconto": desconto,
        "valor_juros": juros,
        "valor_multa": multa,
        "tipo_baixa": case(
            (desconto != 0, DESCONTO),
            (juros != 0, JUROS),
            (multa != 0, MULTA),
            else_=BAIXA,
        ),
        "data_baixa": case(
            (excluded.data_baixa > c.data_baixa, excluded.data_baixa),
            else_=func.coalesce(c.data_baixa, excluded.data_baixa),
        ),
        "liquidado": or_(c.liquidado, excluded.liquidado),
        "codigo_baixa_integracao": func.coalesce(
            c.codigo_baixa_integracao, excluded.codigo_baixa_integracao
        ),
        "conta_corrente_id": func.coalesce(c.conta_corrente_id, excluded.conta_corrente_id),
    }


class RecebimentoSync:
    """Syncs settlements from the financial movements endpoint."""

    def __init__(self, client: OmieClient, store: WarehouseStore, config: Settings) -> None:
        self.client = client
        self.store = store
        self.config = config

    async def sync(
        self,
        from_page: int = 1,
        to_page: Optional[int] = None,
    ) -> FactSyncResult:
        """Fetch a page range of movements, merge them per title and upsert.

        A range starting after page 1 continues an earlier one: its amounts
        are added to the stored rows, skipping rows that already include
        pages at or past ``from_page``.
        """
        params: dict[str, Any] = {"cNatureza": NATUREZA_RECEBER}

        pages = await list_pages(
            self.client,
            ListPagesConfig(
                endpoint=endpoints.MOVIMENTOS_FINANCEIROS,
                call="ListarMovimentos",
                data_key="movimentos",
                params=params,
                page_size=self.config.omie_mf_page_size,
                style=PaginationStyle.MF,
            ),
            from_page,
            to_page,
        )
        parsed = validate_many(OmieMovimentoFinanceiro, pages.records)
        merged = merge_movimentos(parsed)
        candidates = sum(m.movimentos for m in merged.values())

        if not merged:
            return FactSyncResult(
                fetched=0,
                upserted=0,
                total_pages=pages.total_pages,
                last_page=pages.last_page,
                done=pages.done,
            )

        titulos, contas = await asyncio.gather(
            self.store.build_lookup(FactTituloReceber, "omie_codigo_titulo"),
            self.store.build_lookup(DimContaCorrente),
        )

        now = datetime.now(timezone.utc)
        rows = [
            {
                "omie_codigo_lancamento": m.codigo_titulo,
                "omie_codigo_titulo": m.codigo_titulo,
                "codigo_baixa_integracao": str(m.codigo_baixa) if m.codigo_baixa else None,
                "titulo_id": titulos.get(m.codigo_titulo),
                "conta_corrente_id": contas.get(m.codigo_cc) if m.codigo_cc else None,
                "data_baixa": m.data_baixa,
                "valor_baixado": to_money(m.valor_pago),
                "valor_desconto": to_money(m.desconto),
                "valor_juros": to_money(m.juros),
                "valor_multa": to_money(m.multa),
                "tipo_baixa": m.tipo_baixa,
                "liquidado": m.liquidado,
                "ultima_pagina": pages.last_page,
                "updated_at": now,
            }
            for m in merged.values()
        ]

        if from_page > 1:
            upserted = await self.store.upsert(
                FactRecebimento,
                rows,
                "omie_codigo_lancamento",
                merge=accumulate_recebimento,
                where=lambda table, _: func.coalesce(table.c.ultima_pagina, 0) < from_page,
            )
        else:
            upserted = await self.store.upsert(FactRecebimento, rows, "omie_codigo_lancamento")
        logger.info(
            "fact_recebimento: pages %d-%d of %d, %d movements -> %d titles, upserted=%d",
            from_page,
            pages.last_page,
            pages.total_pages,
            candidates,
            len(merged),
            upserted,
        )
        return FactSyncResult(
            fetched=candidates,
            upserted=upserted,
            total_pages=pages.total_pages,
            last_page=pages.last_page,
            done=pages.done,
        )
