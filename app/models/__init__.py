"""SQLAlchemy models for the receivables warehouse (star schema + audit)."""

from app.models.audit import AuditSyncRun
from app.models.dimensions import (
    DimCategoria,
    DimCliente,
    DimContaCorrente,
    DimDepartamento,
    DimVendedor,
)
from app.models.extrato import FactExtratoCC
from app.models.recebimento import FactRecebimento
from app.models.titulo import FactTituloReceber

__all__ = [
    "AuditSyncRun",
    "DimCategoria",
    "DimCliente",
    "DimContaCorrente",
    "DimDepartamento",
    "DimVendedor",
    "FactExtratoCC",
    "FactRecebimento",
    "FactTituloReceber",
]
