"""Health check endpoints exposed by the public API."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from apps.api.deps import get_store
from apps.core.store import StoreHandle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("", summary="Constant-time readiness probe")
def health_fast() -> dict[str, str]:
    """Simple readiness probe that avoids touching the database."""
    return {"status": "ok", "timestamp": _utc_timestamp()}


@router.get("/db", summary="Database connectivity check")
def health_db(store: StoreHandle = Depends(get_store)) -> dict[str, str]:
    """Deep health check that validates the database connection (store errors map to 503)."""
    store.ping()
    return {"status": "ok", "scope": "db", "timestamp": _utc_timestamp()}
