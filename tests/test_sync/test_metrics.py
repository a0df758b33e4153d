"""Tests for the per-title metric derivation.

Pure functions -- no database, no I/O.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from app.services.sync.metrics import (
    AgingBucket,
    calculate_titulo_metrics,
    classify_aging,
    days_overdue,
    summarize_baixas,
)

D = Decimal
TODAY = date(2024, 3, 1)


def _baixa(pago="0", desconto="0", juros="0", multa="0", tipo="BAIXA") -> dict:
    return {
        "valor_baixado": D(pago),
        "valor_desconto": D(desconto),
        "valor_juros": D(juros),
        "valor_multa": D(multa),
        "tipo_baixa": tipo,
    }


@pytest.mark.parametrize(
    "dias, bucket",
    [
        (0, AgingBucket.EM_DIA),
        (1, AgingBucket.DAYS_1_30),
        (30, AgingBucket.DAYS_1_30),
        (31, AgingBucket.DAYS_31_60),
        (60, AgingBucket.DAYS_31_60),
        (61, AgingBucket.DAYS_61_90),
        (90, AgingBucket.DAYS_61_90),
        (91, AgingBucket.OVER_90),
    ],
)
def test_classify_aging(dias, bucket):
    assert classify_aging(dias) is bucket


def test_days_overdue():
    assert days_overdue(date(2024, 2, 20), TODAY) == 10
    assert days_overdue(date(2024, 3, 5), TODAY) == 0
    assert days_overdue(None, TODAY) == 0


class TestSummarize:
    def test_sums(self):
        totals = summarize_baixas(
            [_baixa(pago="60", juros="3", multa="1"), _baixa(pago="30", desconto="10", tipo="DESCONTO")]
        )
        assert totals.principal_liquidado == D("100")
        assert totals.caixa_recebido == D("94")
        assert totals.desconto_concedido == D("10")
        assert totals.baixas == 2

    @pytest.mark.parametrize("tipo", ["ESTORNO", "CANCELADO", "estorno"])
    def test_reversed_and_cancelled_excluded(self, tipo):
        totals = summarize_baixas([_baixa(pago="100"), _baixa(pago="100", tipo=tipo)])
        assert totals.principal_liquidado == D("100")
        assert totals.caixa_recebido == D("100")
        assert totals.baixas == 1


class TestCalculateTituloMetrics:
    def test_partial_payment_not_due(self):
        metrics = calculate_titulo_metrics(
            D("100"), "RECEBER", date(2024, 3, 10), summarize_baixas([_baixa(pago="40")]), TODAY
        )
        assert metrics.saldo_em_aberto == D("60.00")
        assert metrics.status == "PARCIAL"
        assert metrics.aging_bucket is AgingBucket.EM_DIA

    def test_overdue_with_balance(self):
        metrics = calculate_titulo_metrics(
            D("100"), "RECEBER", date(2023, 12, 1), summarize_baixas([]), TODAY
        )
        assert metrics.dias_atraso == 91
        assert metrics.status == "ATRASADO"
        assert metrics.aging_bucket is AgingBucket.OVER_90

    def test_full_discount_settles_without_cash(self):
        """paid=0, discount=document amount -> saldo 0 and caixa 0."""
        metrics = calculate_titulo_metrics(
            D("250"),
            "ATRASADO",
            date(2024, 1, 1),
            summarize_baixas([_baixa(pago="0", desconto="250", tipo="DESCONTO")]),
            TODAY,
        )
        assert metrics.saldo_em_aberto == D("0.00")
        assert metrics.caixa_recebido == D("0.00")
        assert metrics.desconto_concedido == D("250.00")
        assert metrics.status == "LIQUIDADO"

    def test_overpayment_floors_balance(self):
        metrics = calculate_titulo_metrics(
            D("100"), "RECEBER", None, summarize_baixas([_baixa(pago="100", juros="20")]), TODAY
        )
        assert metrics.saldo_em_aberto == D("0.00")
        assert metrics.caixa_recebido == D("120.00")

    def test_cancelled_is_terminal(self):
        metrics = calculate_titulo_metrics(
            D("100"), "CANCELADO", date(2023, 1, 1), summarize_baixas([]), TODAY
        )
        assert metrics.status == "CANCELADO"
        assert metrics.saldo_em_aberto == D("0.00")
        assert metrics.dias_atraso == 0

    def test_rounding_to_cents(self):
        metrics = calculate_titulo_metrics(
            D("100"),
            "RECEBER",
            None,
            summarize_baixas([_baixa(pago="33.333"), _baixa(pago="33.333")]),
            TODAY,
        )
        assert metrics.principal_liquidado == D("66.67")
        assert metrics.saldo_em_aberto == D("33.33")
