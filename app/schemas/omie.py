"""Pydantic schemas for raw Omie records.

Known fields are typed and coerced; anything else Omie sends is kept on the
model as an extra attribute (``extra="allow"``) without being validated, so a
new upstream field never breaks a sync.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


def _to_str(value: Any) -> Any:
    """Omie is inconsistent about codes: accept numbers where text is expected."""
    if value is None:
        return ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return value


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _blank_to_zero(value: Any) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        return 0
    return value


OmieStr = Annotated[str, BeforeValidator(_to_str)]
OmieCode = Annotated[Optional[int], BeforeValidator(_blank_to_none)]
OmieAmount = Annotated[Decimal, BeforeValidator(_blank_to_zero)]


class OmieRecord(BaseModel):
    """Base for every Omie record: unknown fields pass through untouched."""

    model_config = ConfigDict(extra="allow")


# ── Dimensions ───────────────────────────────────────────────────────


class OmieCliente(OmieRecord):
    codigo_cliente_omie: int
    codigo_cliente_integracao: OmieStr = ""
    razao_social: OmieStr
    nome_fantasia: OmieStr = ""
    cnpj_cpf: OmieStr = ""
    cidade: OmieStr = ""
    estado: OmieStr = ""
    email: OmieStr = ""
    telefone1_numero: OmieStr = ""
    inativo: OmieStr = "N"


class OmieContaCorrente(OmieRecord):
    nCodCC: int
    descricao: OmieStr
    tipo_conta_corrente: OmieStr = ""
    codigo_banco: OmieStr = ""
    codigo_agencia: OmieStr = ""
    numero_conta_corrente: OmieStr = ""
    inativo: OmieStr = "N"


class OmieDepartamento(OmieRecord):
    codigo: OmieStr
    descricao: OmieStr
    inativo: OmieStr = "N"


class OmieCategoria(OmieRecord):
    codigo: OmieStr
    descricao: OmieStr
    descricao_padrao: OmieStr = ""
    conta_inativa: OmieStr = "N"


class OmieVendedor(OmieRecord):
    codigo: int
    nome: OmieStr
    email: OmieStr = ""
    inativo: OmieStr = "N"


# ── Contas a receber ─────────────────────────────────────────────────


class OmieDistribuicao(OmieRecord):
    codigo_departamento: Optional[OmieStr] = None
    percentual: Optional[Decimal] = None
    valor: Optional[Decimal] = None


class OmieContaReceber(OmieRecord):
    codigo_lancamento_omie: int
    codigo_lancamento_integracao: OmieStr = ""
    codigo_cliente_fornecedor: int
    codigo_categoria: OmieStr = ""
    data_emissao: OmieStr = ""
    data_vencimento: OmieStr
    data_previsao: OmieStr = ""
    data_registro: OmieStr = ""
    valor_documento: Decimal
    status_titulo: OmieStr
    numero_documento: OmieStr = ""
    numero_parcela: OmieStr = ""
    numero_documento_fiscal: OmieStr = ""
    chave_nfe: OmieStr = ""
    id_conta_corrente: OmieCode = None
    codigo_vendedor: OmieCode = None
    observacao: OmieStr = ""
    distribuicao: list[OmieDistribuicao] = Field(default_factory=list)


# ── Movimentos financeiros (/financas/mf/) ───────────────────────────


class OmieMovimentoDetalhes(OmieRecord):
    nCodTitulo: OmieCode = None
    nCodCliente: OmieCode = None
    nCodCC: OmieCode = None
    nCodBaixa: OmieCode = None
    cNumTitulo: OmieStr = ""
    cNumParcela: OmieStr = ""
    dDtEmissao: OmieStr = ""
    dDtVenc: OmieStr = ""
    dDtPagamento: OmieStr = ""
    cStatus: OmieStr = ""
    cNatureza: OmieStr = ""
    nValorTitulo: OmieAmount = Decimal("0")


class OmieMovimentoResumo(OmieRecord):
    cLiquidado: OmieStr = "N"
    nValPago: OmieAmount = Decimal("0")
    nValAberto: OmieAmount = Decimal("0")
    nDesconto: OmieAmount = Decimal("0")
    nJuros: OmieAmount = Decimal("0")
    nMulta: OmieAmount = Decimal("0")


class OmieMovimentoFinanceiro(OmieRecord):
    detalhes: OmieMovimentoDetalhes = Field(default_factory=OmieMovimentoDetalhes)
    resumo: OmieMovimentoResumo = Field(default_factory=OmieMovimentoResumo)


# ── Extrato ──────────────────────────────────────────────────────────


class OmieExtratoMovimento(OmieRecord):
    nCodMov: OmieCode = None
    dDtLanc: OmieStr = ""
    cDescricao: OmieStr = ""
    cDocumento: OmieStr = ""
    cOperacao: OmieStr = ""
    nValor: OmieAmount = Decimal("0")
    nSaldo: Optional[Decimal] = None
    nCodCliente: OmieCode = None
    dDataConciliacao: OmieStr = ""
