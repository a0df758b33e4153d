"""Tests for the derived-metrics recalculation engine."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from app.models.recebimento import FactRecebimento
from app.models.titulo import FactTituloReceber
from app.services.sync.recalc import MetricsRecalculator

D = Decimal
TODAY = date(2024, 3, 1)
DERIVED = [
    "omie_codigo_titulo",
    "principal_liquidado",
    "saldo_em_aberto",
    "caixa_recebido",
    "desconto_concedido",
]


def _titulo(codigo: int, valor: str, status: str = "RECEBER") -> dict:
    return {
        "omie_codigo_titulo": codigo,
        "valor_documento": D(valor),
        "status_titulo": status,
        "data_vencimento": date(2024, 2, 1),
        "saldo_em_aberto": D(valor),
    }


def _recebimento(lancamento: int, titulo: int, pago="0", desconto="0", juros="0", tipo="BAIXA") -> dict:
    return {
        "omie_codigo_lancamento": lancamento,
        "omie_codigo_titulo": titulo,
        "valor_baixado": D(pago),
        "valor_desconto": D(desconto),
        "valor_juros": D(juros),
        "valor_multa": D("0"),
        "tipo_baixa": tipo,
    }


async def _derived(store) -> dict[int, dict]:
    rows = await store.fetch_all(FactTituloReceber, DERIVED)
    return {r["omie_codigo_titulo"]: dict(r) for r in rows}


@pytest.fixture
def recalculator(store, test_settings) -> MetricsRecalculator:
    return MetricsRecalculator(store, test_settings)


@pytest.fixture
async def seeded(store):
    await store.upsert(
        FactTituloReceber,
        [
            _titulo(1, "100.00"),
            _titulo(2, "250.00", status="ATRASADO"),
            _titulo(3, "50.00"),
            _titulo(4, "80.00"),
            _titulo(5, "300.00"),
        ],
        "omie_codigo_titulo",
    )
    await store.upsert(
        FactRecebimento,
        [
            # title 1: one normal, one reversed
            _recebimento(11, 1, pago="60"),
            _recebimento(12, 1, pago="40", tipo="ESTORNO"),
            # title 2: 100% discount
            _recebimento(21, 2, desconto="250", tipo="DESCONTO"),
            # title 3: paid more than owed, with interest
            _recebimento(31, 3, pago="55", juros="5", tipo="JUROS"),
            # title 5: cancelled settlement only
            _recebimento(51, 5, pago="300", tipo="CANCELADO"),
        ],
        "omie_codigo_lancamento",
    )
    return store


class TestRecalculate:
    async def test_counts(self, seeded, recalculator) -> None:
        result = await recalculator.recalculate(reference_date=TODAY)

        assert result.records_loaded == 5
        assert result.titulos_loaded == 5
        assert result.aggregation_count == 4
        assert result.updated == 4
        assert result.errors == []

    async def test_reversed_settlement_excluded(self, seeded, recalculator) -> None:
        await recalculator.recalculate(reference_date=TODAY)

        titulo = (await _derived(seeded))[1]
        assert titulo["principal_liquidado"] == D("60.00")
        assert titulo["caixa_recebido"] == D("60.00")
        assert titulo["saldo_em_aberto"] == D("40.00")

    async def test_full_discount(self, seeded, recalculator) -> None:
        await recalculator.recalculate(reference_date=TODAY)

        titulo = (await _derived(seeded))[2]
        assert titulo["saldo_em_aberto"] == D("0.00")
        assert titulo["caixa_recebido"] == D("0.00")
        assert titulo["desconto_concedido"] == D("250.00")
        assert titulo["principal_liquidado"] == D("250.00")

    async def test_balance_never_negative(self, seeded, recalculator) -> None:
        await recalculator.recalculate(reference_date=TODAY)

        derived = await _derived(seeded)
        assert derived[3]["saldo_em_aberto"] == D("0.00")
        assert derived[3]["caixa_recebido"] == D("60.00")
        assert all(t["saldo_em_aberto"] >= 0 for t in derived.values())

    async def test_cancelled_only_settlement_restores_balance(self, seeded, recalculator) -> None:
        await recalculator.recalculate(reference_date=TODAY)

        titulo = (await _derived(seeded))[5]
        assert titulo["principal_liquidado"] == D("0.00")
        assert titulo["saldo_em_aberto"] == D("300.00")

    async def test_title_without_settlements_untouched(self, seeded, recalculator) -> None:
        await recalculator.recalculate(reference_date=TODAY)

        titulo = (await _derived(seeded))[4]
        assert titulo["saldo_em_aberto"] == D("80.00")
        assert titulo["caixa_recebido"] == D("0")

    async def test_idempotent(self, seeded, recalculator) -> None:
        await recalculator.recalculate(reference_date=TODAY)
        first = await _derived(seeded)
        await recalculator.recalculate(reference_date=TODAY)

        assert await _derived(seeded) == first

    async def test_row_failure_is_isolated(self, seeded, recalculator, monkeypatch) -> None:
        """One failing update does not sink the rest of its batch."""
        original = seeded.update_row

        async def flaky_update(model, row_id, values):
            if row_id == 2:
                raise RuntimeError("row locked")
            await original(model, row_id, values)

        monkeypatch.setattr(seeded, "update_row", flaky_update)

        result = await recalculator.recalculate(reference_date=TODAY)

        assert result.updated == 3
        assert len(result.errors) == 1
        assert "row locked" in result.errors[0]
        assert (await _derived(seeded))[1]["saldo_em_aberto"] == D("40.00")
