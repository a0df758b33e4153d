"""Settlement fact — payments and write-offs against a title."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class FactRecebimento(Base):
    """One settlement row.

    ``omie_codigo_lancamento`` is the upsert key. The movements sync merges
    every movement of a title into a single row, so there it equals the title
    code; ``omie_codigo_titulo`` always holds the title code and is what the
    recalculation engine groups by.

    A page-ranged sync that does not start at page 1 adds to the stored
    amounts instead of replacing them; ``ultima_pagina`` keeps it from adding
    the same pages twice.
    """

    __tablename__ = "fact_recebimento"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    omie_codigo_lancamento: Mapped[int] = mapped_column(
        BigInteger,
        unique=True,
        nullable=False,
        index=True,
    )
    omie_codigo_titulo: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        index=True,
    )
    codigo_baixa_integracao: Mapped[Optional[str]] = mapped_column(String(60))
    titulo_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("fact_titulo_receber.id"),
        nullable=True,
    )
    conta_corrente_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("dim_conta_corrente.id"),
        nullable=True,
    )
    data_baixa: Mapped[Optional[date]] = mapped_column(Date)
    valor_baixado: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=0)
    valor_desconto: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=0)
    valor_juros: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=0)
    valor_multa: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=0)
    tipo_baixa: Mapped[Optional[str]] = mapped_column(
        String(20),
        comment="BAIXA | DESCONTO | JUROS | MULTA | ESTORNO | CANCELADO",
    )
    liquidado: Mapped[bool] = mapped_column(Boolean, default=False)
    ultima_pagina: Mapped[Optional[int]] = mapped_column(
        Integer,
        comment="Last movements page merged into this row",
    )
    observacao: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return (
            f"<FactRecebimento(omie_codigo_titulo={self.omie_codigo_titulo}, "
            f"valor_baixado={self.valor_baixado}, tipo_baixa={self.tipo_baixa!r})>"
        )
