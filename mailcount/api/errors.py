"""Translate service-core errors into HTTP responses."""

from __future__ import annotations

import logging
from http import HTTPStatus

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from mailcount.core.exceptions import (
    AuthorizationExchangeError,
    CallbackPortExhaustedError,
    CredentialsNotConfiguredError,
    InvalidCredentialsFormatError,
    KeyFileError,
    MailCountError,
    OperationCancelledError,
    ProviderApiError,
    ProviderErrorKind,
)
from mailcount.schemas import ErrorResponse

logger = logging.getLogger(__name__)

# nginx convention for "client closed request"
CLIENT_CLOSED_REQUEST = 499

_STATUS_BY_ERROR = {
    CredentialsNotConfiguredError: HTTPStatus.BAD_REQUEST,
    InvalidCredentialsFormatError: HTTPStatus.BAD_REQUEST,
    AuthorizationExchangeError: HTTPStatus.UNAUTHORIZED,
    CallbackPortExhaustedError: HTTPStatus.SERVICE_UNAVAILABLE,
    KeyFileError: HTTPStatus.INTERNAL_SERVER_ERROR,
}

_STATUS_BY_PROVIDER_KIND = {
    ProviderErrorKind.AUTH: HTTPStatus.UNAUTHORIZED,
    ProviderErrorKind.RATE_LIMIT: HTTPStatus.TOO_MANY_REQUESTS,
    ProviderErrorKind.OTHER: HTTPStatus.BAD_GATEWAY,
}


def _error_response(request: Request, status: int, message: str) -> JSONResponse:
    body = ErrorResponse(status=status, message=message, path=request.url.path)
    return JSONResponse(status_code=status, content=body.model_dump(mode="json"))


async def _handle_cancelled(request: Request, exc: OperationCancelledError) -> Response:
    logger.info("Request to %s cancelled by the client", request.url.path)
    return Response(status_code=CLIENT_CLOSED_REQUEST)


async def _handle_provider_error(request: Request, exc: ProviderApiError) -> JSONResponse:
    status = _STATUS_BY_PROVIDER_KIND[exc.kind]
    logger.error("Gmail API error (%s, upstream status %s)", exc.kind.value, exc.status_code)
    return _error_response(request, status, exc.public_message)


async def _handle_core_error(request: Request, exc: MailCountError) -> JSONResponse:
    status = next(
        (code for cls, code in _STATUS_BY_ERROR.items() if isinstance(exc, cls)),
        HTTPStatus.INTERNAL_SERVER_ERROR,
    )
    if status >= HTTPStatus.INTERNAL_SERVER_ERROR:
        logger.error("%s: %s", type(exc).__name__, exc)
    else:
        logger.warning("%s: %s", type(exc).__name__, exc)

    # Configuration errors tell the operator how to fix them; others stay generic.
    if isinstance(exc, (CredentialsNotConfiguredError, InvalidCredentialsFormatError)):
        message = str(exc)
    else:
        message = exc.public_message
    return _error_response(request, status, message)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(OperationCancelledError, _handle_cancelled)
    app.add_exception_handler(ProviderApiError, _handle_provider_error)
    app.add_exception_handler(MailCountError, _handle_core_error)


__all__ = ["CLIENT_CLOSED_REQUEST", "register_exception_handlers"]
