"""Record validation for raw Omie payloads.

Upstream batches occasionally contain malformed rows. A bad row is dropped
and logged; it never aborts the rest of the batch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Iterable, TypeVar

from pydantic import BaseModel, ValidationError

from app.core.logging import get_logger

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


@dataclass
class RecordFailure:
    """A raw record that failed validation."""

    index: int
    error: str


@dataclass
class ParseOutcome(Generic[ModelT]):
    """Valid records plus the failures, kept apart."""

    valid: list[ModelT] = field(default_factory=list)
    failures: list[RecordFailure] = field(default_factory=list)


def parse_many(schema: type[ModelT], raw_records: Iterable[Any]) -> ParseOutcome[ModelT]:
    """Validate every raw record against ``schema``, collecting failures."""
    outcome: ParseOutcome[ModelT] = ParseOutcome()
    for idx, raw in enumerate(raw_records):
        try:
            outcome.valid.append(schema.model_validate(raw))
        except ValidationError as exc:
            outcome.failures.append(
                RecordFailure(index=idx, error=f"{exc.error_count()} error(s): {exc.errors()[0]['msg']}")
            )
    return outcome


def validate_many(schema: type[ModelT], raw_records: Iterable[Any]) -> list[ModelT]:
    """Return only the records that validate; malformed ones are dropped."""
    outcome = parse_many(schema, raw_records)
    if outcome.failures:
        logger.warning(
            "%s: dropped %d malformed record(s), kept %d",
            schema.__name__,
            len(outcome.failures),
            len(outcome.valid),
        )
        for failure in outcome.failures:
            logger.debug("%s record %d: %s", schema.__name__, failure.index, failure.error)
    return outcome.valid
