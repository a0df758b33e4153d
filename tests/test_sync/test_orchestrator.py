"""Tests for the SyncOrchestrator: ordering, best effort and cursors.

Runs the real synchronizers against the fake Omie API and a SQLite
warehouse.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from app.core.exceptions import SyncStepError
from app.models.audit import AuditSyncRun
from app.models.recebimento import FactRecebimento
from app.models.titulo import FactTituloReceber
from app.schemas.sync import DimensionSyncResult, StepStatus, SyncStep
from app.services.sync.orchestrator import SyncOrchestrator


def _movimento(titulo: int, pago: float, liquidado: str = "N") -> dict:
    return {
        "detalhes": {"nCodTitulo": titulo, "nCodCC": 10, "dDtPagamento": "10/01/2024"},
        "resumo": {"nValPago": pago, "cLiquidado": liquidado},
    }


def _serve_omie(fake_omie) -> None:
    fake_omie.serve_pages(
        "ListarClientes",
        "clientes_cadastro",
        [{"codigo_cliente_omie": 501, "razao_social": "Acme"}],
        per_page=50,
    )
    fake_omie.serve_pages(
        "ListarContasCorrentes",
        "ListarContasCorrentes",
        [{"nCodCC": 10, "descricao": "Itaú"}],
        per_page=50,
    )
    fake_omie.serve_pages("ListarDepartamentos", "departamentos", [], per_page=50)
    fake_omie.serve_pages("ListarCategorias", "categoria_cadastro", [], per_page=50)
    fake_omie.serve_pages("ListarVendedores", "cadastro", [], per_page=50)
    fake_omie.serve_pages(
        "ListarContasReceber",
        "conta_receber_cadastro",
        [
            {
                "codigo_lancamento_omie": 9001,
                "codigo_cliente_fornecedor": 501,
                "data_vencimento": "31/12/2099",
                "valor_documento": 500.0,
                "status_titulo": "A VENCER",
            }
        ],
        per_page=50,
    )
    fake_omie.serve_pages(
        "ListarMovimentos",
        "movimentos",
        [_movimento(9001, 200.0)],
        per_page=50,
        style="mf",
    )
    fake_omie.route("ObterExtrato", lambda p: {"movimentos": []})


@pytest.fixture
def orchestrator(omie_client, store, audit_log, test_settings) -> SyncOrchestrator:
    return SyncOrchestrator.build(omie_client, store, audit_log, test_settings)


async def _audit_rows(store) -> list:
    return await store.fetch_all(AuditSyncRun, ["entity", "status", "last_sync_cursor", "error_message"])


class TestRunFullSync:
    async def test_happy_path(self, fake_omie, orchestrator, store) -> None:
        _serve_omie(fake_omie)

        result = await orchestrator.run_full_sync()

        assert result.status == StepStatus.SUCCESS
        assert result.errors == []
        assert result.titulos.upserted == 1
        assert result.recebimentos.upserted == 1
        assert result.recalc.updated == 1
        assert result.extrato is not None

        (titulo,) = await store.fetch_all(FactTituloReceber, ["saldo_em_aberto", "caixa_recebido"])
        assert titulo["saldo_em_aberto"] == Decimal("300.00")
        assert titulo["caixa_recebido"] == Decimal("200.00")

        rows = await _audit_rows(store)
        assert [r["entity"] for r in rows] == [
            "full_sync",
            "dimensions",
            "fact_titulo_receber",
            "fact_recebimento",
            "recalc_titulo_metrics",
            "fact_extrato_cc",
        ]
        assert all(r["status"] == "success" for r in rows)

    async def test_titles_failure_is_best_effort(self, fake_omie, orchestrator, store) -> None:
        """Titles step throws -> settlements still run, exactly one error."""
        _serve_omie(fake_omie)
        fake_omie.fail("ListarContasReceber", status_code=400)

        result = await orchestrator.run_full_sync()

        assert result.status == StepStatus.ERROR
        assert len(result.errors) == 1
        assert result.errors[0].startswith("[fact_titulo_receber]")
        assert result.titulos is None
        assert result.recebimentos is not None
        assert result.recebimentos.upserted == 1
        assert len(await store.fetch_all(FactRecebimento, ["id"])) == 1

        statuses = {r["entity"]: r["status"] for r in await _audit_rows(store)}
        assert statuses["full_sync"] == "error"
        assert statuses["fact_titulo_receber"] == "error"
        assert statuses["fact_recebimento"] == "success"

    async def test_dimension_failure_is_reported(self, fake_omie, orchestrator) -> None:
        _serve_omie(fake_omie)
        fake_omie.fail("ListarVendedores", status_code=401)

        result = await orchestrator.run_full_sync()

        assert len(result.errors) == 1
        assert result.errors[0].startswith("[dim_vendedor]")
        assert result.titulos.upserted == 1

    async def test_extrato_can_be_disabled(self, fake_omie, orchestrator, store) -> None:
        _serve_omie(fake_omie)
        orchestrator.include_extrato = False

        result = await orchestrator.run_full_sync()

        assert result.extrato is None
        assert fake_omie.params("ObterExtrato") == []

    async def test_second_run_is_incremental(self, fake_omie, orchestrator) -> None:
        _serve_omie(fake_omie)

        first = await orchestrator.run_full_sync()
        assert "dDtAlterDe" not in fake_omie.params("ListarContasReceber")[0]
        await orchestrator.run_full_sync()

        cursor = await orchestrator.get_last_cursor("fact_titulo_receber")
        assert cursor is not None
        assert "dDtAlterDe" in fake_omie.params("ListarContasReceber")[-1]
        assert "dDtPagtoDe" not in fake_omie.params("ListarMovimentos")[-1]
        assert first.run_id == 1

    async def test_later_run_keeps_earlier_payments(self, fake_omie, orchestrator, store) -> None:
        """200 paid before the first run, 100 after it: both count on the second run."""
        _serve_omie(fake_omie)
        await orchestrator.run_full_sync()

        fake_omie.serve_pages(
            "ListarMovimentos",
            "movimentos",
            [_movimento(9001, 200.0), _movimento(9001, 100.0)],
            per_page=50,
            style="mf",
        )
        await orchestrator.run_full_sync()

        (titulo,) = await store.fetch_all(
            FactTituloReceber, ["principal_liquidado", "saldo_em_aberto"]
        )
        assert titulo["principal_liquidado"] == Decimal("300.00")
        assert titulo["saldo_em_aberto"] == Decimal("200.00")

    async def test_failed_step_keeps_previous_cursor(self, fake_omie, orchestrator) -> None:
        _serve_omie(fake_omie)
        await orchestrator.run_full_sync()
        first_cursor = await orchestrator.get_last_cursor("fact_titulo_receber")

        fake_omie.fail("ListarContasReceber", status_code=400)
        await orchestrator.run_full_sync()

        assert await orchestrator.get_last_cursor("fact_titulo_receber") == first_cursor


class TestRunStep:
    async def test_single_dimension(self, fake_omie, orchestrator) -> None:
        _serve_omie(fake_omie)

        result = await orchestrator.run_step(SyncStep.CONTAS_CORRENTES)

        assert result == DimensionSyncResult(entity="dim_conta_corrente", records=1)

    async def test_page_range_forwarded(self, fake_omie, orchestrator) -> None:
        _serve_omie(fake_omie)

        result = await orchestrator.run_step(SyncStep.TITULOS, from_page=1, to_page=1)

        assert result.fetched == 1
        assert [p["pagina"] for p in fake_omie.params("ListarContasReceber")] == [1]

    async def test_failure_raises_step_error(self, fake_omie, orchestrator, store) -> None:
        _serve_omie(fake_omie)
        fake_omie.fail("ListarMovimentos", status_code=400)

        with pytest.raises(SyncStepError) as exc_info:
            await orchestrator.run_step(SyncStep.RECEBIMENTOS)

        assert exc_info.value.step == "recebimentos"
        assert "Omie 400" in str(exc_info.value)
        (audit,) = await _audit_rows(store)
        assert audit["entity"] == "fact_recebimento"
        assert audit["status"] == "error"

    async def test_all_runs_full_sync(self, fake_omie, orchestrator) -> None:
        _serve_omie(fake_omie)

        result = await orchestrator.run_step(SyncStep.ALL)

        assert result.status == StepStatus.SUCCESS

    async def test_last_page_triggers_recalc(self, fake_omie, orchestrator, store) -> None:
        _serve_omie(fake_omie)
        await orchestrator.run_step(SyncStep.TITULOS)

        await orchestrator.run_step(SyncStep.RECEBIMENTOS)

        (titulo,) = await store.fetch_all(FactTituloReceber, ["saldo_em_aberto"])
        assert titulo["saldo_em_aberto"] == Decimal("300.00")
        entities = [r["entity"] for r in await _audit_rows(store)]
        assert entities == [
            "fact_titulo_receber",
            "recalc_titulo_metrics",
            "fact_recebimento",
            "recalc_titulo_metrics",
        ]

    async def test_chunked_settlements(self, fake_omie, orchestrator, store) -> None:
        """40 on page 1, 60 on page 2: recalc waits for the last chunk, total 100."""
        _serve_omie(fake_omie)
        fake_omie.serve_pages(
            "ListarMovimentos",
            "movimentos",
            [_movimento(9001, 40.0), _movimento(9001, 60.0)],
            per_page=1,
            style="mf",
        )
        await orchestrator.run_step(SyncStep.TITULOS)

        first = await orchestrator.run_step(SyncStep.RECEBIMENTOS, from_page=1, to_page=1)
        assert first.done is False
        entities = [r["entity"] for r in await _audit_rows(store)]
        assert entities.count("recalc_titulo_metrics") == 1

        await orchestrator.run_step(SyncStep.RECEBIMENTOS, from_page=2, to_page=2)

        (recebimento,) = await store.fetch_all(FactRecebimento, ["valor_baixado"])
        assert recebimento["valor_baixado"] == Decimal("100.00")
        (titulo,) = await store.fetch_all(FactTituloReceber, ["saldo_em_aberto"])
        assert titulo["saldo_em_aberto"] == Decimal("400.00")
