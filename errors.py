import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """
    Error tipado que llega hasta el borde HTTP tal cual.
    Cada subclase fija su `kind` y su código HTTP.
    """
    kind = "InternalError"
    status_code = 500

    def __init__(self, message, reason=None):
        super().__init__(message)
        self.message = message
        self.reason = reason

    def to_dict(self):
        return {"kind": self.kind, "reason": self.reason, "message": self.message}


class ValidationError(ApiError):
    kind = "ValidationError"
    status_code = 400


class NotFound(ApiError):
    kind = "NotFound"
    status_code = 404


class Conflict(ApiError):
    kind = "Conflict"
    status_code = 409


class InvalidState(ApiError):
    kind = "InvalidState"
    status_code = 409


class InternalError(ApiError):
    kind = "InternalError"
    status_code = 500


def register_error_handlers(app: FastAPI):
    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        if exc.status_code >= 500:
            logger.error(f"{request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # Pydantic devuelve 422 por defecto; la API expone 400 para entradas inválidas
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
        fields = []
        for error in exc.errors():
            loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
            fields.append(f"{'.'.join(loc) or 'request'}: {error.get('msg')}")
        err = ValidationError("; ".join(fields) or "Invalid request", reason="invalid-input")
        return JSONResponse(status_code=err.status_code, content=err.to_dict())

    @app.exception_handler(PyMongoError)
    async def storage_error_handler(request: Request, exc: PyMongoError):
        logger.exception(f"Storage failure on {request.url.path}")
        err = InternalError("Storage unavailable", reason="storage")
        return JSONResponse(status_code=err.status_code, content=err.to_dict())

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unexpected error on {request.url.path}")
        err = InternalError("Internal server error")
        return JSONResponse(status_code=err.status_code, content=err.to_dict())
