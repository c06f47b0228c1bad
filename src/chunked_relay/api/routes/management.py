"""Relay management routes for inspecting checkpoints."""

from __future__ import annotations

from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Path

from chunked_relay.api.dependencies import get_relay_service
from chunked_relay.application.services import RelayService
from chunked_relay.domain.errors import CheckpointNotFoundError, RelayConfigError
from chunked_relay.domain.relay_models import (
    CheckpointInfoResponse,
    CheckpointListResponse,
    ReaperRunResponse,
)

router = APIRouter(prefix="/management", tags=["relay management"])


def _raise_http_exception(exc: Exception) -> NoReturn:
    if isinstance(exc, CheckpointNotFoundError):
        raise HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, RelayConfigError):
        raise HTTPException(status_code=409, detail=str(exc))
    raise HTTPException(status_code=500, detail="Unexpected relay error")


@router.get("/checkpoints", response_model=CheckpointListResponse, status_code=200)
async def list_checkpoints(
    service: RelayService = Depends(get_relay_service),
) -> CheckpointListResponse:
    """List live relay checkpoints."""

    try:
        return await service.list_checkpoints()
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)


@router.get(
    "/checkpoints/{source_key:path}",
    response_model=CheckpointInfoResponse,
    status_code=200,
)
async def get_checkpoint(
    source_key: str = Path(...),
    service: RelayService = Depends(get_relay_service),
) -> CheckpointInfoResponse:
    """Get one checkpoint by source key (the source URL)."""

    try:
        return await service.get_checkpoint(source_key)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)


@router.post("/reaper/run", response_model=ReaperRunResponse, status_code=200)
async def run_reaper(
    service: RelayService = Depends(get_relay_service),
) -> ReaperRunResponse:
    """Run one stale-session reaper pass now."""

    try:
        return await service.run_reaper_once()
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)


__all__ = ["router"]
