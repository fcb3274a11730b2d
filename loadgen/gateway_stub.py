# loadgen/gateway_stub.py
"""
Stand-in payments gateway for local runs:

    uvicorn loadgen.gateway_stub:app --port 8080
    PAYMENT_DEMO_GATEWAY_URL=http://127.0.0.1:8080/transactions payments-loadgen
"""
from fastapi import FastAPI

from loadgen.core.errors import register_exception_handlers

from loadgen.routers.health import router as health_router
from loadgen.routers.transactions import router as transactions_router


def create_app() -> FastAPI:
    app = FastAPI(title="Payments Gateway Stub")

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(transactions_router)

    return app


app = create_app()
