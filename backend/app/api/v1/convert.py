"""
Conversion API endpoints.

Every endpoint acts on the conversion workflow of the caller's session
(X-Session-ID header, issued by the middleware when missing).

Endpoints:
- GET /api/v1/convert/formats - Supported formats and their targets
- GET /api/v1/convert/status - Current workflow state and remaining quota
- POST /api/v1/convert/file - Upload and select a file
- POST /api/v1/convert/target - Choose the target format
- DELETE /api/v1/convert - Clear the selection
- POST /api/v1/convert/submit - Run the conversion
- POST /api/v1/convert/download - Download the result and reset
- GET /api/v1/convert/history - Conversion history of the authenticated user
"""

from urllib.parse import quote

import structlog
from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from fastapi.responses import Response
from pydantic import BaseModel, Field

from app.api.errors import http_error
from app.auth import AuthenticatedPrincipal, CurrentPrincipal, login_required_error
from app.config import get_settings
from app.constants import FORMAT_LABELS, FORMAT_MEDIA_TYPES
from app.errors import ConverterAppError
from app.models.account import Principal
from app.models.conversion import (
    ConversionRecord,
    ConversionRequest,
    ConversionState,
    ConvertedFile,
    FileDescriptor,
    FormatKey,
    OutcomeKind,
    SubmitOutcome,
)
from app.services.format_registry import accepted_extensions, conversion_targets
from app.services.quota_ledger import QuotaLedger
from app.services.sessions import Session, SessionRegistry

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/convert", tags=["conversion"])


class FormatInfo(BaseModel):
    """A supported format and what it can be converted to."""

    key: FormatKey
    label: str
    targets: list[FormatKey]


class FormatsResponse(BaseModel):
    """Format registry listing."""

    formats: list[FormatInfo]
    accepted_extensions: list[str]


class TargetRequest(BaseModel):
    """Target format selection."""

    target_format: FormatKey = Field(description="Format to convert to")


class ConversionStatusResponse(BaseModel):
    """Snapshot of the session's conversion workflow."""

    session_id: str
    state: ConversionState
    request: ConversionRequest | None = None
    output_filename: str | None = None
    retryable: bool = False
    error: str | None = None
    is_premium: bool = False
    free_limit: int
    remaining_conversions: int | None = None


def _get_sessions(request: Request) -> SessionRegistry:
    sessions = getattr(request.app.state, "sessions", None)
    if sessions is None:
        raise HTTPException(status_code=503, detail="Layanan konversi tidak tersedia")
    return sessions


def _get_session(request: Request) -> Session:
    return _get_sessions(request).get_or_create(request.state.session_id)


def _get_ledger(request: Request) -> QuotaLedger:
    ledger = getattr(request.app.state, "ledger", None)
    if ledger is None:
        raise HTTPException(status_code=503, detail="Layanan konversi tidak tersedia")
    return ledger


def _payment_required_error(outcome: SubmitOutcome, free_limit: int) -> HTTPException:
    return HTTPException(
        status_code=402,
        detail={
            "code": "payment_required",
            "reason": outcome.decision.value,
            "state": outcome.state.value,
            "free_limit": free_limit,
            "message": (
                f"Anda telah menggunakan {free_limit} konversi gratis. "
                "Upgrade ke Premium untuk konversi tanpa batas!"
            ),
        },
    )


async def _status(request: Request, session: Session, principal: Principal) -> ConversionStatusResponse:
    ledger = _get_ledger(request)
    profile = await ledger.get_profile(principal)
    workflow = session.conversion
    return ConversionStatusResponse(
        session_id=session.session_id,
        state=workflow.state,
        request=workflow.request,
        output_filename=workflow.output.filename if workflow.output else None,
        retryable=workflow.retryable,
        error=workflow.last_error,
        is_premium=profile.is_premium,
        free_limit=ledger.free_limit,
        remaining_conversions=None if profile.is_premium else max(0, ledger.remaining(profile)),
    )


@router.get("/formats", response_model=FormatsResponse)
async def list_formats() -> FormatsResponse:
    """List supported formats with their conversion targets."""
    return FormatsResponse(
        formats=[
            FormatInfo(key=f, label=FORMAT_LABELS[f], targets=list(conversion_targets(f)))
            for f in FormatKey
        ],
        accepted_extensions=accepted_extensions(),
    )


@router.get("/status", response_model=ConversionStatusResponse)
async def conversion_status(request: Request, principal: CurrentPrincipal) -> ConversionStatusResponse:
    """Return the session's workflow state and the caller's remaining quota."""
    session = _get_session(request)
    return await _status(request, session, principal)


@router.post("/file", response_model=ConversionStatusResponse)
async def select_file(
    request: Request,
    principal: CurrentPrincipal,
    file: UploadFile = File(...),
) -> ConversionStatusResponse:
    """Upload a document and make it the session's conversion source."""
    max_bytes = get_settings().conversion.max_upload_mb * 1024 * 1024
    content = await file.read(max_bytes + 1)
    if len(content) > max_bytes:
        logger.info("upload_rejected_too_large", filename=file.filename, max_bytes=max_bytes)
        raise HTTPException(status_code=413, detail="Ukuran file melebihi batas")

    session = _get_session(request)
    descriptor = FileDescriptor(name=file.filename or "", size_bytes=len(content))
    try:
        session.conversion.select_file(descriptor, content)
    except ConverterAppError as e:
        raise http_error(e)
    return await _status(request, session, principal)


@router.post("/target", response_model=ConversionStatusResponse)
async def choose_target(
    body: TargetRequest,
    request: Request,
    principal: CurrentPrincipal,
) -> ConversionStatusResponse:
    """Choose the format to convert to."""
    session = _get_session(request)
    try:
        session.conversion.choose_target(body.target_format)
    except ConverterAppError as e:
        raise http_error(e)
    return await _status(request, session, principal)


@router.delete("", response_model=ConversionStatusResponse)
async def clear_selection(request: Request, principal: CurrentPrincipal) -> ConversionStatusResponse:
    """Discard the selected file and return to idle."""
    session = _get_session(request)
    try:
        session.conversion.clear()
    except ConverterAppError as e:
        raise http_error(e)
    return await _status(request, session, principal)


@router.post("/submit", response_model=SubmitOutcome)
async def submit_conversion(request: Request, principal: CurrentPrincipal) -> SubmitOutcome:
    """
    Run the conversion for the session's request.

    Responds 401 when the caller must log in and 402 when the free quota is
    used up. Conversion or persistence failures come back as a 200 with
    state "failed" and a retryable flag.
    """
    session = _get_session(request)
    ledger = _get_ledger(request)
    profile = await ledger.get_profile(principal)

    try:
        outcome = await session.conversion.submit(principal, profile)
    except ConverterAppError as e:
        raise http_error(e)

    if outcome.kind == OutcomeKind.REQUIRES_LOGIN:
        raise login_required_error()
    if outcome.kind == OutcomeKind.REQUIRES_UPGRADE:
        raise _payment_required_error(outcome, ledger.free_limit)
    return outcome


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII fallback name and the UTF-8 name (RFC 5987)."""
    fallback = "".join(
        c if c.isascii() and c.isprintable() and c not in '"\\' else "_" for c in filename
    )
    return f"attachment; filename=\"{fallback or 'download'}\"; filename*=UTF-8''{quote(filename, safe='')}"


@router.post("/download")
async def download_converted(request: Request) -> Response:
    """Return the converted file and reset the session to idle.

    The response is built inside the delivery callback, so the session stays
    in "succeeded" if that fails.
    """
    session = _get_session(request)
    responses: list[Response] = []

    async def deliver(converted: ConvertedFile) -> None:
        responses.append(
            Response(
                content=converted.content,
                media_type=FORMAT_MEDIA_TYPES[converted.format],
                headers={"Content-Disposition": content_disposition(converted.filename)},
            )
        )

    try:
        await session.conversion.download(deliver)
    except ConverterAppError as e:
        raise http_error(e)
    return responses[0]


@router.get("/history", response_model=list[ConversionRecord])
async def conversion_history(request: Request, principal: AuthenticatedPrincipal) -> list[ConversionRecord]:
    """List the authenticated user's past conversions."""
    records = getattr(request.app.state, "conversion_records", None)
    if records is None:
        raise HTTPException(status_code=503, detail="Layanan konversi tidak tersedia")
    return await records.list_for(principal.id)
