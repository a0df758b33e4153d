"""Shared FastAPI dependencies for the sync endpoints."""

from __future__ import annotations

import secrets
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import settings
from app.services.omie.client import OmieClient
from app.services.sync.audit import SyncAuditLog
from app.services.sync.orchestrator import SyncOrchestrator

bearer_scheme = HTTPBearer(auto_error=False)


def verify_sync_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> None:
    """Reject the request unless it carries ``Bearer <SYNC_CRON_SECRET>``.

    An unset secret rejects every request.
    """
    expected = settings.sync_cron_secret
    if (
        not expected
        or credentials is None
        or credentials.scheme.lower() != "bearer"
        or not secrets.compare_digest(credentials.credentials, expected)
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )


def get_orchestrator(request: Request) -> SyncOrchestrator:
    return request.app.state.orchestrator


def get_audit_log(request: Request) -> SyncAuditLog:
    return request.app.state.audit_log


def get_omie_client(request: Request) -> OmieClient:
    return request.app.state.omie_client
