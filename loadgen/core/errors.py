# loadgen/core/errors.py
from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class LoadGenError(Exception):
    def __init__(self, code: str, message: str, param: str | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.param = param


class ConfigError(LoadGenError):
    """Fatal startup error: the run never begins."""

    def __init__(self, message: str, param: str | None = None):
        super().__init__("invalid_config", message, param=param)


class ResponseDecodeError(LoadGenError):
    def __init__(self, message: str, body: str = ""):
        super().__init__("undecodable_response", message)
        self.body = body


class DispatcherStateError(LoadGenError):
    def __init__(self, message: str):
        super().__init__("invalid_state", message)


def error_body(code: str, message: str, param: str | None = None, type_: str = "invalid_request_error"):
    body = {
        "error": {
            "type": type_,
            "code": code,
            "message": message,
        }
    }
    if param:
        body["error"]["param"] = param
    return body


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(LoadGenError)
    async def loadgen_error_handler(request: Request, exc: LoadGenError):
        return JSONResponse(
            status_code=400,
            content=error_body(exc.code, exc.message, exc.param),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = [str(p) for p in first.get("loc", ()) if p != "body"]
        return JSONResponse(
            status_code=422,
            content=error_body("invalid_transaction", first.get("msg", "invalid request body"), ".".join(loc) or None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        return JSONResponse(
            status_code=500,
            content=error_body("internal_error", f"{type(exc).__name__}: {exc}", type_="api_error"),
        )
