"""Extrato sync — bank statement lines into ``fact_extrato_cc``.

``ObterExtrato`` is not paginated: one call returns every movement of one
bank account for the requested window, so the sync calls it once per active
account. An account that fails is logged and skipped.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional

from app.core.config import Settings
from app.core.logging import get_logger
from app.models.dimensions import DimContaCorrente
from app.models.extrato import FactExtratoCC
from app.schemas.omie import OmieExtratoMovimento
from app.schemas.sync import FactSyncResult
from app.services.ingestion.normalizer import (
    blank_to_none,
    format_omie_date,
    omie_today,
    parse_omie_date,
    to_money,
)
from app.services.ingestion.validation import validate_many
from app.services.omie import endpoints
from app.services.omie.client import OmieClient
from app.services.store import WarehouseStore

logger = get_logger(__name__)


def operation_type(mov: OmieExtratoMovimento) -> str:
    """``C`` for credits, ``D`` for debits; Omie's own label wins."""
    if mov.cOperacao.strip():
        return mov.cOperacao.strip().upper()
    return "C" if mov.nValor >= 0 else "D"


class ExtratoSync:
    def __init__(self, client: OmieClient, store: WarehouseStore, config: Settings) -> None:
        self.client = client
        self.store = store
        self.config = config

    async def fetch_extrato(
        self,
        codigo_cc: int,
        date_from: date,
        date_to: date,
    ) -> list[OmieExtratoMovimento]:
        result = await self.client.call(
            endpoints.EXTRATO,
            "ObterExtrato",
            {
                "nCodCC": codigo_cc,
                "dDtDe": format_omie_date(date_from),
                "dDtAte": format_omie_date(date_to),
            },
        )
        return validate_many(OmieExtratoMovimento, result.get("movimentos") or [])

    async def sync(self, since: Optional[datetime] = None) -> FactSyncResult:
        contas = await self.store.fetch_all(
            DimContaCorrente,
            ["id", "omie_codigo"],
            DimContaCorrente.ativo.is_(True),
        )
        if not contas:
            return FactSyncResult()

        date_to = omie_today()
        if since is not None:
            date_from = since.date()
        else:
            date_from = date_to - timedelta(days=self.config.extrato_lookback_days)

        fetched = 0
        upserted = 0
        for conta in contas:
            try:
                movimentos = await self.fetch_extrato(conta["omie_codigo"], date_from, date_to)
                # Opening/closing balance lines carry no movement code
                movimentos = [m for m in movimentos if m.nCodMov]
                fetched += len(movimentos)
                if not movimentos:
                    continue

                now = datetime.now(timezone.utc)
                rows = [
                    {
                        "omie_codigo_movimento": mov.nCodMov,
                        "conta_corrente_id": conta["id"],
                        "data_lancamento": parse_omie_date(mov.dDtLanc),
                        "descricao": blank_to_none(mov.cDescricao),
                        "documento": blank_to_none(mov.cDocumento),
                        "tipo": operation_type(mov),
                        "valor": to_money(abs(mov.nValor)),
                        "saldo": to_money(mov.nSaldo) if mov.nSaldo is not None else None,
                        "data_conciliacao": parse_omie_date(mov.dDataConciliacao),
                        "updated_at": now,
                    }
                    for mov in movimentos
                ]
                upserted += await self.store.upsert(
                    FactExtratoCC, rows, "omie_codigo_movimento"
                )
            except Exception as exc:
                logger.error(
                    "Extrato for conta corrente %s failed, skipping: %s",
                    conta["omie_codigo"],
                    exc,
                )

        logger.info("fact_extrato_cc: fetched=%d upserted=%d", fetched, upserted)
        return FactSyncResult(fetched=fetched, upserted=upserted)
