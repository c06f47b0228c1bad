"""Liveness route."""

from fastapi import APIRouter

from chunked_relay import __version__

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    """Report that the relay process is up, with its version."""

    return {"status": "ok", "version": __version__}


__all__ = ["router"]
