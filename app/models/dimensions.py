"""Dimension tables — reference data synced from the Omie cadastros.

Every dimension carries an internal surrogate ``id`` (used by fact foreign
keys) and the Omie code in ``omie_codigo``, which is unique per table and is
the upsert conflict target.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database import Base


class DimCliente(Base):
    """A customer (cliente) that receivable titles are issued to."""

    __tablename__ = "dim_cliente"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    omie_codigo: Mapped[int] = mapped_column(
        BigInteger,
        unique=True,
        nullable=False,
        index=True,
    )
    codigo_integracao: Mapped[Optional[str]] = mapped_column(String(60))
    razao_social: Mapped[str] = mapped_column(String(255), nullable=False)
    nome_fantasia: Mapped[Optional[str]] = mapped_column(String(255))
    cnpj_cpf: Mapped[Optional[str]] = mapped_column(String(20))
    cidade: Mapped[Optional[str]] = mapped_column(String(120))
    estado: Mapped[Optional[str]] = mapped_column(String(2))
    email: Mapped[Optional[str]] = mapped_column(String(255))
    telefone: Mapped[Optional[str]] = mapped_column(String(40))
    ativo: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<DimCliente(omie_codigo={self.omie_codigo}, razao_social={self.razao_social!r})>"


class DimContaCorrente(Base):
    """A bank account (conta corrente) that settlements land in."""

    __tablename__ = "dim_conta_corrente"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    omie_codigo: Mapped[int] = mapped_column(
        BigInteger,
        unique=True,
        nullable=False,
        index=True,
    )
    descricao: Mapped[str] = mapped_column(String(255), nullable=False)
    tipo: Mapped[Optional[str]] = mapped_column(String(10))
    banco: Mapped[Optional[str]] = mapped_column(String(10))
    agencia: Mapped[Optional[str]] = mapped_column(String(20))
    conta: Mapped[Optional[str]] = mapped_column(String(30))
    ativo: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<DimContaCorrente(omie_codigo={self.omie_codigo}, descricao={self.descricao!r})>"


class DimDepartamento(Base):
    """A department; Omie codes are textual."""

    __tablename__ = "dim_departamento"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    omie_codigo: Mapped[str] = mapped_column(
        String(30),
        unique=True,
        nullable=False,
        index=True,
    )
    descricao: Mapped[str] = mapped_column(String(255), nullable=False)
    ativo: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class DimCategoria(Base):
    """A financial category such as ``1.01.01``."""

    __tablename__ = "dim_categoria"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    omie_codigo: Mapped[str] = mapped_column(
        String(30),
        unique=True,
        nullable=False,
        index=True,
    )
    descricao: Mapped[str] = mapped_column(String(255), nullable=False)
    descricao_padrao: Mapped[Optional[str]] = mapped_column(String(255))
    ativo: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))


class DimVendedor(Base):
    """A sales rep (vendedor)."""

    __tablename__ = "dim_vendedor"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    omie_codigo: Mapped[int] = mapped_column(
        BigInteger,
        unique=True,
        nullable=False,
        index=True,
    )
    nome: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    ativo: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
