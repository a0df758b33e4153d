"""Page-by-page iteration over Omie list endpoints.

Omie uses two parameter conventions for pagination:

=========  ==========  ========================  ====================
style      page        page size                 total pages (reply)
=========  ==========  ========================  ====================
default    pagina      registros_por_pagina      total_de_paginas
mf         nPagina     nRegPorPagina             nTotPaginas
=========  ==========  ========================  ====================

The ``mf`` style belongs to the movimentos financeiros endpoint.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, NamedTuple, Optional

from app.core.logging import get_logger
from app.services.omie.client import OmieClient

logger = get_logger(__name__)


class PaginationStyle(str, Enum):
    DEFAULT = "default"
    MF = "mf"


class PaginationFields(NamedTuple):
    page: str
    page_size: str
    total_pages: str


PAGINATION_FIELDS: dict[PaginationStyle, PaginationFields] = {
    PaginationStyle.DEFAULT: PaginationFields(
        "pagina", "registros_por_pagina", "total_de_paginas"
    ),
    PaginationStyle.MF: PaginationFields("nPagina", "nRegPorPagina", "nTotPaginas"),
}


@dataclass
class ListPagesConfig:
    """What to call and where the records live in each response."""

    endpoint: str
    call: str
    data_key: str
    params: dict[str, Any] = field(default_factory=dict)
    page_size: int = 100
    style: PaginationStyle = PaginationStyle.DEFAULT


@dataclass
class PageRange:
    """Records accumulated over a run of pages."""

    records: list[dict[str, Any]]
    total_pages: int
    last_page: int

    @property
    def done(self) -> bool:
        return self.last_page >= self.total_pages


async def list_pages(
    client: OmieClient,
    config: ListPagesConfig,
    from_page: int = 1,
    to_page: Optional[int] = None,
) -> PageRange:
    """Fetch pages ``from_page..to_page`` (or until the last page).

    Pages are requested strictly in order; the first page is always fetched
    and ``total pages`` is re-read from every response.
    """
    fields = PAGINATION_FIELDS[config.style]
    records: list[dict[str, Any]] = []
    page = from_page
    total_pages = 1

    while True:
        params = {
            **config.params,
            fields.page: page,
            fields.page_size: config.page_size,
        }
        result = await client.call(config.endpoint, config.call, params)

        page_records = result.get(config.data_key) or []
        records.extend(page_records)
        total_pages = int(result.get(fields.total_pages) or 1)
        logger.debug(
            "%s page %d/%d: %d records",
            config.call,
            page,
            total_pages,
            len(page_records),
        )

        page += 1
        if page > total_pages or (to_page is not None and page > to_page):
            break

    return PageRange(records=records, total_pages=total_pages, last_page=page - 1)


async def list_all(client: OmieClient, config: ListPagesConfig) -> list[dict[str, Any]]:
    """Fetch every page from page 1 and return only the records."""
    result = await list_pages(client, config)
    return result.records
