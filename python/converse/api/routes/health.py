"""Liveness and readiness checks."""

from typing import Annotated

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from converse.api.deps import get_reconciler
from converse.errors import ConverseErrorCode
from converse.responses import error_response, success_response
from converse.services.reconcile import ReconciliationLoop

router = APIRouter()


@router.get("/health")
async def health_check() -> dict:
    """200 while the process is up. Never touches the message store."""
    return success_response({"status": "ok"})


@router.get("/health/ready", response_model=None)
async def readiness_check(
    reconciler: Annotated[ReconciliationLoop, Depends(get_reconciler)],
) -> dict | JSONResponse:
    """Ready once the loop is running and has installed at least one snapshot.

    A board still showing the fetch-error banner from startup is not ready.
    """
    snapshot = reconciler.snapshot
    if not reconciler.is_running or snapshot.generation == 0:
        return JSONResponse(
            status_code=503,
            content=error_response(
                ConverseErrorCode.E_STORE_UNAVAILABLE,
                reconciler.error or "Message board is not ready",
            ),
        )
    return success_response(
        {"status": "ready", "generation": snapshot.generation, "error": reconciler.error}
    )
