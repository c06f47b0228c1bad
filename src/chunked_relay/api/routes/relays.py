"""Relay job routes."""

from __future__ import annotations

from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException

from chunked_relay.api.dependencies import get_relay_service
from chunked_relay.application.services import RelayService
from chunked_relay.domain.errors import (
    CheckpointNotFoundError,
    ContinuationDispatchError,
    RelayValidationError,
    SessionConflictError,
)
from chunked_relay.domain.relay_models import (
    ContinuationMessage,
    InvocationOutcomeResponse,
    RelayAcceptedResponse,
    RelayStartMessage,
)

router = APIRouter(prefix="/relays", tags=["relays"])


def _raise_http_exception(exc: Exception) -> NoReturn:
    if isinstance(exc, CheckpointNotFoundError):
        raise HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, SessionConflictError):
        raise HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, RelayValidationError):
        raise HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, ContinuationDispatchError):
        raise HTTPException(status_code=503, detail=str(exc))
    raise HTTPException(status_code=500, detail="Unexpected relay error")


@router.post("", response_model=RelayAcceptedResponse, status_code=202)
async def start_relay(
    message: RelayStartMessage,
    service: RelayService = Depends(get_relay_service),
) -> RelayAcceptedResponse:
    """Start relaying a source URL; the transfer runs in the background."""

    try:
        return await service.start(message)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)


@router.post("/continue", response_model=RelayAcceptedResponse, status_code=202)
async def continue_relay(
    message: ContinuationMessage,
    service: RelayService = Depends(get_relay_service),
) -> RelayAcceptedResponse:
    """Accept a continuation cursor and schedule the next invocation."""

    try:
        return await service.continue_relay(message)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)


@router.post("/invoke", response_model=InvocationOutcomeResponse, status_code=200)
async def invoke_relay(
    message: ContinuationMessage,
    service: RelayService = Depends(get_relay_service),
) -> InvocationOutcomeResponse:
    """Run one invocation synchronously and return its outcome."""

    try:
        return await service.invoke(message)
    except Exception as exc:  # noqa: BLE001
        _raise_http_exception(exc)


__all__ = ["router"]
