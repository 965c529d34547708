"""
Global error handling middleware.
"""
import logging
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Any, Callable

from grouping_service.infrastructure.farm_registry_client import FarmRegistryError


logger = logging.getLogger(__name__)


def _request_context(request: Request, **extra: Any) -> dict[str, Any]:
    return {"path": request.url.path, "method": request.method, **extra}


def _error_body(error: str, detail: str) -> dict[str, str]:
    return {"error": error, "detail": detail}


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Turns exceptions that escape the routers into JSON error responses.

    Mapping:
    - FarmRegistryError: the status code carried by the error
    - ValueError: 400
    - anything else: 500 with a generic message
    """

    async def dispatch(self, request: Request, call_next: Callable):
        try:
            return await call_next(request)

        except FarmRegistryError as e:
            logger.error(f"Farm registry failure: {e.message}",
                         extra=_request_context(request, status_code=e.status_code))
            return JSONResponse(
                status_code=e.status_code,
                content=_error_body("Farm registry error", e.message),
            )

        except ValueError as e:
            logger.warning(f"Rejected request: {str(e)}", extra=_request_context(request))
            return JSONResponse(
                status_code=status.HTTP_400_BAD_REQUEST,
                content=_error_body("Invalid request", str(e)),
            )

        except Exception as e:
            logger.exception(f"Unhandled exception on {request.method} {request.url.path}: {str(e)}",
                             extra=_request_context(request))
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=_error_body("Internal server error", "An unexpected error occurred"),
            )
