# loadgen/routers/health.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from loadgen.core.config import StubGatewaySettings, get_stub_settings

router = APIRouter(tags=["health"])


@router.get("/health")
def health_root(settings: StubGatewaySettings = Depends(get_stub_settings)):
    return {
        "status": "ok",
        "decline_over": settings.decline_over,
        "accepted_currencies": settings.accepted_currency_list(),
    }
