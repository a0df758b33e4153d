"""Normalizer utility functions for Omie data.

These functions provide a single place to handle the messy reality of the
Omie payloads: dd/mm/yyyy dates, "S"/"N" flags, free-form status labels,
and amounts that must not drift when summed.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional
from zoneinfo import ZoneInfo

from app.core.logging import get_logger

logger = get_logger(__name__)

OMIE_TIMEZONE = ZoneInfo("America/Sao_Paulo")
_OMIE_DATE_FORMAT = "%d/%m/%Y"
_CENT = Decimal("0.01")

# Canonical title statuses
RECEBER = "RECEBER"
ATRASADO = "ATRASADO"
PARCIAL = "PARCIAL"
LIQUIDADO = "LIQUIDADO"
CANCELADO = "CANCELADO"

# Omie status_titulo label -> canonical status
_TITULO_STATUS_MAP: dict[str, str] = {
    "A VENCER": RECEBER,
    "VENCE HOJE": RECEBER,
    "ABERTO": RECEBER,
    "RECEBER": RECEBER,
    "ATRASADO": ATRASADO,
    "VENCIDO": ATRASADO,
    "PARCIAL": PARCIAL,
    "RECEBIDO": LIQUIDADO,
    "LIQUIDADO": LIQUIDADO,
    "PAGO": LIQUIDADO,
    "CANCELADO": CANCELADO,
}

# Settlement types
BAIXA = "BAIXA"
DESCONTO = "DESCONTO"
JUROS = "JUROS"
MULTA = "MULTA"
ESTORNO = "ESTORNO"
BAIXA_CANCELADA = "CANCELADO"

# Settlement types that never count towards a title's totals
EXCLUDED_TIPOS_BAIXA = frozenset({ESTORNO, BAIXA_CANCELADA})

_REVERSAL_STATUSES = frozenset({"ESTORNADO", "ESTORNO"})
_CANCELLED_STATUSES = frozenset({"CANCELADO", "CANCELADA"})


def parse_omie_date(raw: Optional[str]) -> Optional[date]:
    """Parse an Omie ``dd/mm/yyyy`` string into a date.

    Args:
        raw: Date string from the Omie payload (may be empty).

    Returns:
        The parsed date, or None for empty or malformed input.
    """
    if not raw or not raw.strip():
        return None
    try:
        return datetime.strptime(raw.strip(), _OMIE_DATE_FORMAT).date()
    except ValueError:
        logger.warning("Could not parse Omie date: %r", raw)
        return None


def format_omie_date(value: date | datetime) -> str:
    """Format a date the way Omie filters expect it (``dd/mm/yyyy``)."""
    if isinstance(value, datetime) and value.tzinfo is not None:
        value = value.astimezone(OMIE_TIMEZONE)
    return value.strftime(_OMIE_DATE_FORMAT)


def omie_today() -> date:
    """Today's date in the ERP's timezone."""
    return datetime.now(OMIE_TIMEZONE).date()


def is_active(inativo_flag: Optional[str]) -> bool:
    """Omie flags inactive records with ``"S"``; anything else is active."""
    return (inativo_flag or "").strip().upper() != "S"


def blank_to_none(value: Optional[str]) -> Optional[str]:
    """Return None for empty strings so optional columns stay NULL."""
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def normalize_titulo_status(status: str) -> str:
    """Map an Omie ``status_titulo`` label to the canonical status.

    Returns:
        One of RECEBER, ATRASADO, PARCIAL, LIQUIDADO, CANCELADO, or the
        upper-cased label when it is unknown.
    """
    key = " ".join(status.strip().upper().split())
    if key in _TITULO_STATUS_MAP:
        return _TITULO_STATUS_MAP[key]
    logger.warning("Unknown status_titulo %r, keeping it upper-cased", status)
    return key


def derive_tipo_baixa(
    valor_pago: Decimal,
    desconto: Decimal,
    juros: Decimal,
    multa: Decimal,
    status: str = "",
) -> str:
    """Classify a movement into a settlement type.

    Reversals and cancellations win over everything else, since those rows
    must be excluded from the title totals whatever amounts they carry.
    """
    status_key = status.strip().upper()
    if status_key in _CANCELLED_STATUSES:
        return BAIXA_CANCELADA
    if status_key in _REVERSAL_STATUSES or valor_pago < 0:
        return ESTORNO
    if desconto:
        return DESCONTO
    if juros:
        return JUROS
    if multa:
        return MULTA
    return BAIXA


def to_money(value: Any) -> Decimal:
    """Coerce to Decimal rounded half-up to cents."""
    if value is None:
        return Decimal("0.00")
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)
