"""Per-title financial state derived from its settlements.

Rules:
- principal_liquidado = sum(valor_baixado + valor_desconto)
- caixa_recebido      = sum(valor_baixado + valor_juros + valor_multa)
- desconto_concedido  = sum(valor_desconto)
- saldo_em_aberto     = max(0, valor_documento - principal_liquidado)
- Reversed and cancelled settlements (ESTORNO, CANCELADO) are ignored.
- A 100% discount settles the title without any cash: saldo 0, caixa 0.
- A cancelled title owes nothing and is never overdue.

Only the four amounts are stored on ``fact_titulo_receber`` (see
``TituloMetrics.derived_columns``). Days overdue, aging bucket and effective
status depend on the day they are read, so they are computed here for the
read side and never persisted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from app.services.ingestion.normalizer import (
    ATRASADO,
    CANCELADO,
    EXCLUDED_TIPOS_BAIXA,
    LIQUIDADO,
    PARCIAL,
    RECEBER,
    omie_today,
    to_money,
)

_ZERO = Decimal("0")


class AgingBucket(str, Enum):
    EM_DIA = "Em dia"
    DAYS_1_30 = "1-30 dias"
    DAYS_31_60 = "31-60 dias"
    DAYS_61_90 = "61-90 dias"
    OVER_90 = "90+ dias"


def classify_aging(dias_atraso: int) -> AgingBucket:
    if dias_atraso <= 0:
        return AgingBucket.EM_DIA
    if dias_atraso <= 30:
        return AgingBucket.DAYS_1_30
    if dias_atraso <= 60:
        return AgingBucket.DAYS_31_60
    if dias_atraso <= 90:
        return AgingBucket.DAYS_61_90
    return AgingBucket.OVER_90


def days_overdue(due: Optional[date], reference: date) -> int:
    """Whole days past ``due``; 0 when not yet due or no due date."""
    if due is None:
        return 0
    return max(0, (reference - due).days)


def _amount(row: Mapping[str, Any], key: str) -> Decimal:
    value = row.get(key)
    if value is None:
        return _ZERO
    return value if isinstance(value, Decimal) else Decimal(str(value))


@dataclass
class SettlementTotals:
    """Running sums over the active settlements of one title."""

    caixa_recebido: Decimal = _ZERO
    desconto_concedido: Decimal = _ZERO
    principal_liquidado: Decimal = _ZERO
    baixas: int = 0

    def add(self, baixa: Mapping[str, Any]) -> bool:
        """Add one settlement row; returns False when it is excluded."""
        if (baixa.get("tipo_baixa") or "").upper() in EXCLUDED_TIPOS_BAIXA:
            return False
        pago = _amount(baixa, "valor_baixado")
        desconto = _amount(baixa, "valor_desconto")
        self.caixa_recebido += pago + _amount(baixa, "valor_juros") + _amount(baixa, "valor_multa")
        self.desconto_concedido += desconto
        self.principal_liquidado += pago + desconto
        self.baixas += 1
        return True


def summarize_baixas(baixas: Iterable[Mapping[str, Any]]) -> SettlementTotals:
    totals = SettlementTotals()
    for baixa in baixas:
        totals.add(baixa)
    return totals


@dataclass
class TituloMetrics:
    principal_liquidado: Decimal
    saldo_em_aberto: Decimal
    caixa_recebido: Decimal
    desconto_concedido: Decimal
    dias_atraso: int
    aging_bucket: AgingBucket
    status: str

    def derived_columns(self) -> dict[str, Decimal]:
        """The four columns stored on ``fact_titulo_receber``."""
        return {
            "principal_liquidado": self.principal_liquidado,
            "saldo_em_aberto": self.saldo_em_aberto,
            "caixa_recebido": self.caixa_recebido,
            "desconto_concedido": self.desconto_concedido,
        }


def calculate_titulo_metrics(
    valor_documento: Decimal,
    status_titulo: str,
    data_vencimento: Optional[date],
    totals: SettlementTotals,
    reference_date: Optional[date] = None,
) -> TituloMetrics:
    """Derive the financial state of one title, amounts rounded to cents."""
    reference_date = reference_date or omie_today()
    principal = to_money(totals.principal_liquidado)
    cancelled = status_titulo == CANCELADO

    if cancelled:
        saldo = Decimal("0.00")
    else:
        saldo = to_money(max(_ZERO, to_money(valor_documento) - principal))

    dias = 0 if cancelled else days_overdue(data_vencimento, reference_date)

    if cancelled:
        status = CANCELADO
    elif saldo == 0:
        status = LIQUIDADO
    elif dias > 0:
        status = ATRASADO
    elif principal > 0:
        status = PARCIAL
    else:
        status = RECEBER

    return TituloMetrics(
        principal_liquidado=principal,
        saldo_em_aberto=saldo,
        caixa_recebido=to_money(totals.caixa_recebido),
        desconto_concedido=to_money(totals.desconto_concedido),
        dias_atraso=dias,
        aging_bucket=classify_aging(dias),
        status=status,
    )
