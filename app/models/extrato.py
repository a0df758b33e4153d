"""Bank statement fact — movements posted on each conta corrente."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class FactExtratoCC(Base):
    """A single statement line; ``valor`` is absolute, ``tipo`` carries the sign."""

    __tablename__ = "fact_extrato_cc"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    omie_codigo_movimento: Mapped[int] = mapped_column(
        BigInteger,
        unique=True,
        nullable=False,
        index=True,
    )
    conta_corrente_id: Mapped[int] = mapped_column(
        ForeignKey("dim_conta_corrente.id"),
        nullable=False,
    )
    data_lancamento: Mapped[Optional[date]] = mapped_column(Date)
    descricao: Mapped[Optional[str]] = mapped_column(String(255))
    documento: Mapped[Optional[str]] = mapped_column(String(60))
    tipo: Mapped[Optional[str]] = mapped_column(String(2), comment="C | D")
    valor: Mapped[Decimal] = mapped_column(Numeric(15, 2), default=0)
    saldo: Mapped[Optional[Decimal]] = mapped_column(Numeric(15, 2))
    data_conciliacao: Mapped[Optional[date]] = mapped_column(Date)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
