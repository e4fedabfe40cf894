"""
Pixel tracking router
Public beacon endpoint: records a tracking event and always answers with a 1x1 GIF
"""
import base64
import math
from typing import Optional, Union

from fastapi import APIRouter, Request, Depends, BackgroundTasks
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from core.config import logger
from core.database import get_db
from models.pixel import find_trackable_pixel
from models.vcard import get_vcard
from utils.event_recorder import loads_json, parse_metadata, record_event
from utils.geolocation import get_client_ip, get_location_data, normalize_ip
from utils.meta_conversions import build_conversion_event, resolve_conversion_target, send_conversion_event
from utils.rate_limit import check_track_rate_limit
from utils.user_agent import normalize_language, parse_user_agent

router = APIRouter(prefix="/pixel", tags=["pixels"])

# 1x1 transparent GIF89a, 42 bytes
TRANSPARENT_GIF = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAIBRAA7")

PIXEL_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
    "Access-Control-Allow-Origin": "*",
    "Cross-Origin-Resource-Policy": "cross-origin",
}


def pixel_response() -> Response:
    """The only response this endpoint ever sends."""
    return Response(content=TRANSPARENT_GIF, media_type="image/gif", status_code=200, headers=PIXEL_HEADERS)


# ============ Request parsing ============

class TrackEventParams(BaseModel):
    """Beacon fields; bad values degrade to defaults instead of failing validation."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    event_type: str = Field("view", alias="eventType")
    block_id: Optional[int] = Field(None, alias="blockId")
    duration: Optional[int] = None
    metadata: Optional[Union[dict, str]] = None
    value: Optional[float] = None
    currency: Optional[str] = None

    @field_validator("event_type", mode="before")
    @classmethod
    def _event_type(cls, v):
        if v is None or isinstance(v, (dict, list)):
            return "view"
        return str(v).strip()[:64] or "view"

    @field_validator("block_id", "duration", mode="before")
    @classmethod
    def _optional_int(cls, v):
        if v is None or v == "" or isinstance(v, bool):
            return None
        try:
            number = float(v)
        except (TypeError, ValueError):
            return None
        return int(number) if math.isfinite(number) else None

    @field_validator("value", mode="before")
    @classmethod
    def _value(cls, v):
        if v is None or v == "" or isinstance(v, bool):
            return None
        try:
            number = float(v)
        except (TypeError, ValueError):
            return None
        return number if math.isfinite(number) else None

    @field_validator("currency", mode="before")
    @classmethod
    def _currency(cls, v):
        if not isinstance(v, str):
            return None
        return v.strip().upper()[:3] or None

    @field_validator("metadata", mode="before")
    @classmethod
    def _metadata(cls, v):
        return v if isinstance(v, (dict, str)) else None


async def _read_body(request: Request) -> dict:
    """JSON, form or sendBeacon text/plain JSON body; {} when unreadable."""
    content_type = (request.headers.get("content-type") or "").lower()
    try:
        if "application/x-www-form-urlencoded" in content_type or "multipart/form-data" in content_type:
            form = await request.form()
            return {k: v for k, v in form.items() if isinstance(v, str)}
        raw = await request.body()
        if not raw:
            return {}
        data = loads_json(raw)
        return data if isinstance(data, dict) else {}
    except Exception as ex:
        logger.warning(f"[tracking] Unreadable request body ({content_type or 'no content-type'}): {ex}")
        return {}


async def read_track_params(request: Request) -> TrackEventParams:
    data = dict(request.query_params)
    if request.method == "POST":
        data.update(await _read_body(request))
    return TrackEventParams.model_validate(data)


# ============ Public Tracking Endpoint ============

@router.api_route("/{pixel_id}/track", methods=["GET", "POST"])
async def track_event(
    pixel_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
):
    """Record one tracking event for a pixel. Always 200 + GIF."""
    try:
        client_ip = normalize_ip(get_client_ip(request))
        if not check_track_rate_limit(client_ip or "unknown"):
            logger.info(f"[tracking] Rate limit hit for {client_ip} on pixel {pixel_id}")
            return pixel_response()

        params = await read_track_params(request)

        pixel = await run_in_threadpool(find_trackable_pixel, db, pixel_id)
        if not pixel:
            logger.debug(f"[tracking] Pixel {pixel_id} not found or inactive")
            return pixel_response()
        vcard = await run_in_threadpool(get_vcard, db, pixel.vcard_id)
        if not vcard:
            logger.debug(f"[tracking] vCard {pixel.vcard_id} for pixel {pixel_id} missing or inactive")
            return pixel_response()

        # Committing the event expires ORM state; read pixel fields up front
        trackable_id = pixel.id
        vcard_id = pixel.vcard_id
        meta_pixel_id = pixel.meta_pixel_id
        meta_token_encrypted = pixel.meta_access_token_encrypted

        # Geo must be resolved before insert; UA and language are local
        geo = await get_location_data(client_ip)
        user_agent = request.headers.get("user-agent", "")
        ua_info = parse_user_agent(user_agent)
        language = normalize_language(request.headers.get("accept-language"))
        metadata = parse_metadata(params.metadata)

        event_id = await run_in_threadpool(
            record_event,
            db,
            trackable_id,
            event_type=params.event_type,
            geo=geo,
            ua_info=ua_info,
            language=language,
            user_agent=user_agent,
            client_ip=client_ip,
            metadata=metadata,
            block_id=params.block_id,
            duration=params.duration,
            value=params.value,
            currency=params.currency,
        )

        # Forward only after the local record exists; runs after the response is sent
        target = resolve_conversion_target(meta_pixel_id, meta_token_encrypted)
        if target:
            conversion_event = build_conversion_event(
                event_type=params.event_type,
                event_id=event_id,
                vcard_id=vcard_id,
                client_ip=client_ip,
                user_agent=user_agent,
                metadata=metadata,
                value=params.value,
                currency=params.currency,
            )
            background_tasks.add_task(send_conversion_event, target, conversion_event)
    except Exception as ex:
        logger.error(f"[tracking] Event tracking error for pixel {pixel_id}: {ex!r}")
        try:
            db.rollback()
        except Exception as rollback_ex:
            logger.warning(f"[tracking] Rollback failed: {rollback_ex}")

    return pixel_response()
