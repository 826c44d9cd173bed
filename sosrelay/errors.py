# sosrelay/errors.py
"""
Error taxonomy shared by the relay and the viewer client, plus the FastAPI
handlers that turn domain errors into `{"error": reason}` responses.

A failed store mutation raises before anything is broadcast, so these errors
only ever reach the caller that triggered them.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from sosrelay.utils.logger import get_logger

logger = get_logger(__name__)


class SOSRelayError(Exception):
    """Base class for all domain errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(SOSRelayError):
    """Malformed or missing input. Nothing was mutated."""

    status_code = status.HTTP_400_BAD_REQUEST


class AuthError(SOSRelayError):
    """Missing or invalid credential on an operation that requires one."""

    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(SOSRelayError):
    """Reference to an unknown device or event id."""

    status_code = status.HTTP_404_NOT_FOUND


class TransportError(SOSRelayError):
    """Live session lost. Recovered by the reconnection controller."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


def register_error_handlers(app: FastAPI) -> None:
    """Register domain + catch-all exception handlers on the app."""

    @app.exception_handler(SOSRelayError)
    async def handle_domain_error(request: Request, exc: SOSRelayError):
        logger.info(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    # Type checks FastAPI runs before a route body; a malformed event id is an unknown event
    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(part) for part in first.get("loc", ())[1:] if isinstance(part, str))
        if any(tuple(e.get("loc", ())) == ("path", "event_id") for e in errors):
            code, message = status.HTTP_404_NOT_FOUND, "Event not found"
        else:
            code = status.HTTP_400_BAD_REQUEST
            reason = first.get("msg", "invalid request")
            message = f"{field}: {reason}" if field else reason
        logger.info(f"{request.method} {request.url.path} rejected ({code}): {message}")
        return JSONResponse(status_code=code, content={"error": message})

    # Unexpected faults are logged and the process keeps serving
    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )
