"""
FastAPI routes for the mail sender counter.
"""

from __future__ import annotations

import logging
import re
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile

from mailcount.dependencies import (
    get_app_settings,
    get_credential_admin_service,
    get_sender_count_service,
)
from mailcount.schemas import (
    CredentialsClearedResponse,
    CredentialsUploadResponse,
    EmailCountResponse,
)
from mailcount.services.message_counter import CancellationSignal
from mailcount.utils.masking import mask_email, mask_ip

router = APIRouter()
logger = logging.getLogger(__name__)

MAX_EMAIL_LENGTH = 254  # RFC 5321
_EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9._%+\-']+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}$")
_IP_DOMAIN_PATTERN = re.compile(r"^\[?\d{1,3}(\.\d{1,3}){3}\]?$")


def _validate_sender_email(raw: str) -> str:
    """Reject malformed sender addresses before they reach the Gmail query."""
    email = raw.strip()
    if not email:
        raise HTTPException(HTTPStatus.BAD_REQUEST, detail="Email address cannot be empty")
    if len(email) > MAX_EMAIL_LENGTH:
        raise HTTPException(
            HTTPStatus.BAD_REQUEST,
            detail=f"Email address exceeds maximum length of {MAX_EMAIL_LENGTH} characters",
        )
    if not email.isascii():
        raise HTTPException(
            HTTPStatus.BAD_REQUEST, detail="Email address contains invalid characters"
        )

    local_part, _, domain = email.rpartition("@")
    if _IP_DOMAIN_PATTERN.match(domain):
        raise HTTPException(
            HTTPStatus.BAD_REQUEST,
            detail="Email addresses with IP domains are not supported",
        )
    if (
        not _EMAIL_PATTERN.match(email)
        or local_part.startswith(".")
        or local_part.endswith(".")
        or ".." in local_part
    ):
        raise HTTPException(HTTPStatus.BAD_REQUEST, detail="Invalid email format")
    return email


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck(settings: Annotated[Any, Depends(get_app_settings)]) -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok", "environment": settings.environment}


@router.get("/emails/count", response_model=EmailCountResponse)
async def count_emails(
    request: Request,
    counter: Annotated[Any, Depends(get_sender_count_service)],
    sender_email: str = Query(..., description="Email address of the sender to count."),
) -> EmailCountResponse:
    """Return the number of messages received from ``sender_email``."""
    sender = _validate_sender_email(sender_email)
    client_host = request.client.host if request.client else None
    logger.info(
        "Received request to count emails from: %s (client %s)",
        mask_email(sender),
        mask_ip(client_host),
    )

    cancel = CancellationSignal(probe=request.is_disconnected)
    result = await counter.count_from_sender(sender, cancel=cancel)
    return EmailCountResponse(
        sender_email=result.sender,
        email_count=result.count,
        cached_result=result.cached,
    )


@router.post("/credentials", response_model=CredentialsUploadResponse)
async def upload_credentials(
    admin: Annotated[Any, Depends(get_credential_admin_service)],
    file: UploadFile = File(..., description="Google OAuth client secret JSON file."),
) -> CredentialsUploadResponse:
    """Store an OAuth client secret in memory for subsequent Gmail calls."""
    raw = await file.read()
    if not raw.strip():
        raise HTTPException(HTTPStatus.BAD_REQUEST, detail="Credentials file is empty")
    if file.filename and not file.filename.lower().endswith(".json"):
        logger.warning("Uploaded credentials file does not have a .json extension")

    admin.upload_client_secret(raw)
    return CredentialsUploadResponse(filename=file.filename or "unknown", size=len(raw))


@router.delete("/credentials", response_model=CredentialsClearedResponse)
async def clear_credentials(
    admin: Annotated[Any, Depends(get_credential_admin_service)],
) -> CredentialsClearedResponse:
    """Forget the uploaded secret, delete the stored token and flush cached counts."""
    outcome = admin.clear()
    return CredentialsClearedResponse(**outcome)


__all__ = ["router"]
