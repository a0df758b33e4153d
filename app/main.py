"""Omie Receivables Sync - Main Application."""

import logging.config
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.api.routes import sync
from app.core.config import settings
from app.core.database import SessionLocal, create_tables, engine
from app.core.logging import setup_logging
from app.core.logging_config import LOGGING_CONFIG
from app.services.omie.client import OmieClient
from app.services.store import WarehouseStore
from app.services.sync.audit import SyncAuditLog
from app.services.sync.orchestrator import SyncOrchestrator

# Configure logging before anything else
logging.config.dictConfig(LOGGING_CONFIG)
logger = setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Creating database tables...")
    await create_tables()
    logger.info("Database tables ready")

    client = OmieClient.from_settings(settings)
    store = WarehouseStore(
        SessionLocal,
        page_size=settings.store_page_size,
        chunk_size=settings.upsert_chunk_size,
    )
    audit_log = SyncAuditLog(SessionLocal)

    app.state.omie_client = client
    app.state.audit_log = audit_log
    app.state.orchestrator = SyncOrchestrator.build(client, store, audit_log, settings)
    logger.info("Omie sync ready (data mode: %s)", settings.data_mode)

    yield

    await client.aclose()
    await engine.dispose()
    logger.info("Omie sync shut down")


# -- OpenAPI tag metadata for Swagger grouping --
tags_metadata = [
    {
        "name": "Health",
        "description": "Service health and readiness checks.",
    },
    {
        "name": "Sync",
        "description": (
            "Pull dimensions, receivable titles, settlements and bank statements "
            "from the Omie ERP into the warehouse, recalculate per-title balances "
            "and inspect the sync audit trail. Requires a bearer token."
        ),
    },
]


app = FastAPI(
    title="Omie Receivables Sync",
    description=(
        "## Omie ERP Receivables Pipeline\n\n"
        "This service synchronizes accounts-receivable data from the Omie ERP "
        "into a star-schema warehouse and derives per-title financial state "
        "(principal settled, balance outstanding, cash collected, discount "
        "granted).\n\n"
        "### Synced Entities\n"
        "| Entity | Omie call | Table |\n"
        "|--------|-----------|-------|\n"
        "| **Clientes** | ListarClientes | `dim_cliente` |\n"
        "| **Contas correntes** | ListarContasCorrentes | `dim_conta_corrente` |\n"
        "| **Departamentos** | ListarDepartamentos | `dim_departamento` |\n"
        "| **Categorias** | ListarCategorias | `dim_categoria` |\n"
        "| **Vendedores** | ListarVendedores | `dim_vendedor` |\n"
        "| **Contas a receber** | ListarContasReceber | `fact_titulo_receber` |\n"
        "| **Recebimentos** | ListarMovimentos | `fact_recebimento` |\n"
        "| **Extrato** | ObterExtrato | `fact_extrato_cc` |\n\n"
        "### Quick Start\n"
        "```bash\n"
        "# 1. Sync one step (optionally a page range)\n"
        'curl -X POST /api/v1/omie/sync -H "Authorization: Bearer $SYNC_CRON_SECRET" '
        '-H "Content-Type: application/json" -d \'{"step":"clientes","fromPage":1,"toPage":10}\'\n\n'
        "# 2. Run the full pipeline\n"
        'curl -X POST /api/v1/omie/sync/run -H "Authorization: Bearer $SYNC_CRON_SECRET"\n\n'
        "# 3. Inspect recent runs\n"
        'curl /api/v1/omie/sync/runs -H "Authorization: Bearer $SYNC_CRON_SECRET"\n'
        "```\n"
    ),
    version="1.0.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.include_router(sync.router, prefix="/api/v1/omie", tags=["Sync"])

logger.info("Omie Receivables Sync API ready - routes registered")


@app.get("/health", tags=["Health"])
def health_check():
    """Health check endpoint.

    Returns a simple JSON object confirming the service is running.
    Useful for load balancers and monitoring systems.
    """
    return {"status": "healthy", "service": "omie-receivables-sync"}
