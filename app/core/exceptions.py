"""Typed exceptions raised by the sync pipeline.

Callers catch by type instead of parsing messages:

    ReceivablesSyncError (base)
    |
    +-- OmieApiError               permanent upstream failure (4xx except 429)
    +-- OmieRetriesExhaustedError  transient failures outlived the retry budget
    +-- StoreWriteError            an upsert chunk was rejected by the store
    +-- SyncStepError              a triggered step failed
"""

from __future__ import annotations

from typing import Optional


class ReceivablesSyncError(Exception):
    """Base class for every error raised by the sync pipeline."""

    code: str = "SYNC_ERROR"


class OmieApiError(ReceivablesSyncError):
    """The Omie API answered with a non-retryable client error."""

    code = "OMIE_API_ERROR"

    def __init__(self, status_code: int, body: str) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(f"Omie {status_code}: {body}")


class OmieRetriesExhaustedError(ReceivablesSyncError):
    """Every attempt failed with a transient error."""

    code = "OMIE_RETRIES_EXHAUSTED"

    def __init__(self, attempts: int, last_error: Optional[BaseException]) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Omie call failed after {attempts} attempts: {last_error}"
        )


class StoreWriteError(ReceivablesSyncError):
    """A write against the warehouse failed."""

    code = "STORE_WRITE_ERROR"

    def __init__(self, table: str, message: str) -> None:
        self.table = table
        super().__init__(f"Upsert {table}: {message}")


class SyncStepError(ReceivablesSyncError):
    """A single sync step failed; carries the step name for the API layer."""

    code = "SYNC_STEP_ERROR"

    def __init__(self, step: str, message: str) -> None:
        self.step = step
        super().__init__(f"[{step}] {message}")
