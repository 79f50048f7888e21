"""Fusion API router."""
import binascii

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import Response

from emoji_fusion.core.config import Settings, get_settings
from emoji_fusion.core.errors import (
    FusionError,
    FusionFailed,
    FusionInProgress,
    InputValidationError,
    MalformedResponse,
    NetworkError,
    SafetyBlocked,
    UpstreamError,
    UsageLimitReached,
    UsageStoreUnavailable,
)
from emoji_fusion.core.logging import setup_logging
from emoji_fusion.models.fusion import DownloadRequest, EncodedImage, FusionRequest, FusionResponse
from emoji_fusion.models.usage import UsageStatus
from emoji_fusion.services.fusion import FusionService

logger = setup_logging("fusion_router")

router = APIRouter(prefix="/api/fusion", tags=["fusion"])

DOWNLOAD_BASENAME = "fused-emoji"

_FILE_EXTENSIONS: dict[str, str] = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/gif": "gif",
    "image/webp": "webp",
}

# Most specific classes first; the first isinstance match wins.
_STATUS_CODES: list[tuple[type[FusionError], int]] = [
    (InputValidationError, 422),
    (UsageLimitReached, 429),
    (FusionInProgress, 409),
    (UsageStoreUnavailable, 503),
    (NetworkError, 503),
    (UpstreamError, 502),
    (SafetyBlocked, 422),
    (MalformedResponse, 502),
    (FusionFailed, 502),
]


def get_fusion_service(request: Request) -> FusionService:
    """FastAPI dependency: retrieve FusionService from app.state.

    Returns HTTP 503 if the service was not initialized at startup.
    """
    svc: FusionService | None = getattr(request.app.state, "fusion_service", None)
    if svc is None:
        raise HTTPException(
            status_code=503,
            detail="Fusion service unavailable. Service not initialized.",
        )
    return svc


def get_client_id(x_client_id: str | None = Header(default=None, max_length=128)) -> str:
    """Caller identity for the usage gate, taken from the X-Client-Id header."""
    return x_client_id or "anonymous"


def _to_http_error(exc: FusionError) -> HTTPException:
    status_code = next(code for cls, code in _STATUS_CODES if isinstance(exc, cls))
    return HTTPException(status_code=status_code, detail=exc.to_dict())


@router.post("", response_model=FusionResponse)
async def fuse_emojis(
    body: FusionRequest,
    client_id: str = Depends(get_client_id),
    service: FusionService = Depends(get_fusion_service),
) -> FusionResponse:
    """Fuse two emojis (or uploaded images) into a new emoji image.

    Raises:
        HTTPException 422: Invalid item(s) or safety block.
        HTTPException 429: Daily limit reached.
        HTTPException 409: A fusion is already pending for this client.
        HTTPException 502/503: The generation call failed.
    """
    try:
        return await service.fuse(body, client_id)
    except FusionError as exc:
        if isinstance(exc, FusionFailed):
            logger.error(
                "fuse_emojis failed",
                extra={"component": "FusionRouter", "error_type": type(exc).__name__},
            )
        raise _to_http_error(exc) from exc


@router.get("/usage", response_model=UsageStatus)
async def get_usage(
    client_id: str = Depends(get_client_id),
    service: FusionService = Depends(get_fusion_service),
) -> UsageStatus:
    """Return today's fusion count and remaining allowance."""
    try:
        return service.usage_status(client_id)
    except FusionError as exc:
        raise _to_http_error(exc) from exc


@router.post("/usage/bonus", response_model=UsageStatus)
async def grant_bonus(
    client_id: str = Depends(get_client_id),
    service: FusionService = Depends(get_fusion_service),
) -> UsageStatus:
    """Give back one fusion after the user watched an ad."""
    try:
        return service.grant_bonus(client_id)
    except FusionError as exc:
        raise _to_http_error(exc) from exc


@router.post("/download")
async def download_image(
    body: DownloadRequest,
    settings: Settings = Depends(get_settings),
) -> Response:
    """Return a fusion result as a file attachment.

    Fallback for browsers without a native share sheet. Payloads larger than
    `max_image_bytes` are rejected with 413 before decoding.
    """
    try:
        image = EncodedImage.from_data_uri(body.encoded_image)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="encoded_image must be a base64 data URI") from exc
    if len(image.data) // 4 * 3 > settings.max_image_bytes:
        raise HTTPException(
            status_code=413, detail=f"Image exceeds {settings.max_image_bytes} bytes"
        )
    try:
        content = image.to_bytes()
    except (ValueError, binascii.Error) as exc:
        raise HTTPException(status_code=400, detail="encoded_image must be a base64 data URI") from exc
    extension = _FILE_EXTENSIONS.get(image.mime_type)
    if extension is None or not content:
        raise HTTPException(status_code=400, detail=f"Unsupported image type {image.mime_type}")
    return Response(
        content=content,
        media_type=image.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{DOWNLOAD_BASENAME}.{extension}"'},
    )
