"""Receivable title fact — one row per (document, installment) pair."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class FactTituloReceber(Base):
    """A title (conta a receber) as issued in Omie.

    ``valor_documento`` is the face value and never changes after issue.
    The four derived columns (``principal_liquidado``, ``saldo_em_aberto``,
    ``caixa_recebido``, ``desconto_concedido``) are rewritten by the
    recalculation engine from the settlement rows; ``saldo_em_aberto`` is
    never negative.
    """

    __tablename__ = "fact_titulo_receber"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    omie_codigo_titulo: Mapped[int] = mapped_column(
        BigInteger,
        unique=True,
        nullable=False,
        index=True,
    )
    codigo_integracao: Mapped[Optional[str]] = mapped_column(String(60))
    cliente_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("dim_cliente.id"),
        nullable=True,
        index=True,
    )
    conta_corrente_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("dim_conta_corrente.id"),
        nullable=True,
    )
    categoria_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("dim_categoria.id"),
        nullable=True,
    )
    vendedor_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("dim_vendedor.id"),
        nullable=True,
    )
    departamento_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("dim_departamento.id"),
        nullable=True,
    )
    numero_documento: Mapped[Optional[str]] = mapped_column(String(60))
    numero_parcela: Mapped[Optional[str]] = mapped_column(String(20))
    data_emissao: Mapped[Optional[date]] = mapped_column(Date)
    data_vencimento: Mapped[Optional[date]] = mapped_column(Date, index=True)
    data_previsao: Mapped[Optional[date]] = mapped_column(Date)
    data_registro: Mapped[Optional[date]] = mapped_column(Date)
    valor_documento: Mapped[Decimal] = mapped_column(
        Numeric(15, 2),
        nullable=False,
    )
    status_titulo: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="RECEBER | ATRASADO | PARCIAL | LIQUIDADO | CANCELADO",
    )
    observacao: Mapped[Optional[str]] = mapped_column(Text)

    # -- Derived from fact_recebimento --
    principal_liquidado: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=0)
    saldo_em_aberto: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=0)
    caixa_recebido: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=0)
    desconto_concedido: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    __table_args__ = (
        Index("ix_titulo_cliente_vencimento", "cliente_id", "data_vencimento"),
    )

    def __repr__(self) -> str:
        return (
            f"<FactTituloReceber(omie_codigo_titulo={self.omie_codigo_titulo}, "
            f"valor_documento={self.valor_documento}, saldo={self.saldo_em_aberto})>"
        )
