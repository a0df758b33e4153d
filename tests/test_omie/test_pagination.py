"""Tests for list_pages / list_all over both pagination conventions."""

from __future__ import annotations

from app.services.omie.pagination import (
    ListPagesConfig,
    PaginationStyle,
    list_all,
    list_pages,
)

RECORDS = [{"codigo": i} for i in range(1, 11)]


def _config(style: PaginationStyle = PaginationStyle.DEFAULT) -> ListPagesConfig:
    return ListPagesConfig(
        endpoint="/geral/vendedores/",
        call="ListarVendedores",
        data_key="cadastro",
        params={"filtrar_apenas_ativos": "N"},
        page_size=2,
        style=style,
    )


class TestListAll:
    async def test_fetches_every_page_in_order(self, fake_omie, omie_client) -> None:
        """totalPages=5 -> exactly 5 requests, pages 1..5, records concatenated."""
        fake_omie.serve_pages("ListarVendedores", "cadastro", RECORDS, per_page=2)

        records = await list_all(omie_client, _config())

        params = fake_omie.params("ListarVendedores")
        assert [p["pagina"] for p in params] == [1, 2, 3, 4, 5]
        assert all(p["registros_por_pagina"] == 2 for p in params)
        assert all(p["filtrar_apenas_ativos"] == "N" for p in params)
        assert records == RECORDS

    async def test_single_empty_page(self, fake_omie, omie_client) -> None:
        fake_omie.serve_pages("ListarVendedores", "cadastro", [], per_page=2)

        records = await list_all(omie_client, _config())

        assert records == []
        assert len(fake_omie.params("ListarVendedores")) == 1


class TestListPages:
    async def test_bounded_range(self, fake_omie, omie_client) -> None:
        fake_omie.serve_pages("ListarVendedores", "cadastro", RECORDS, per_page=2)

        result = await list_pages(omie_client, _config(), from_page=3, to_page=4)

        assert [p["pagina"] for p in fake_omie.params("ListarVendedores")] == [3, 4]
        assert result.records == RECORDS[4:8]
        assert result.total_pages == 5
        assert result.last_page == 4
        assert result.done is False

    async def test_to_page_past_the_end(self, fake_omie, omie_client) -> None:
        fake_omie.serve_pages("ListarVendedores", "cadastro", RECORDS, per_page=2)

        result = await list_pages(omie_client, _config(), from_page=4, to_page=50)

        assert [p["pagina"] for p in fake_omie.params("ListarVendedores")] == [4, 5]
        assert result.done is True

    async def test_mf_style_field_names(self, fake_omie, omie_client) -> None:
        fake_omie.serve_pages("ListarVendedores", "cadastro", RECORDS, per_page=4, style="mf")

        result = await list_pages(omie_client, _config(PaginationStyle.MF))

        params = fake_omie.params("ListarVendedores")
        assert [p["nPagina"] for p in params] == [1, 2, 3]
        assert all(p["nRegPorPagina"] == 2 for p in params)
        assert "pagina" not in params[0]
        assert len(result.records) == 10
        assert result.total_pages == 3
