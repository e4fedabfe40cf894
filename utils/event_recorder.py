"""
Event recorder - the only writer of event_trackings
"""
import json
from typing import Any, Optional

from sqlalchemy.orm import Session

from core.config import logger
from models.event_tracking import EventTracking, EVENT_SOURCE_INTERNAL
from utils.geolocation import GeoLocation
from utils.user_agent import UserAgentInfo


def _reject_constant(token: str):
    raise ValueError(f"{token} is not valid JSON")


def loads_json(raw):
    """json.loads without the NaN/Infinity extensions."""
    return json.loads(raw, parse_constant=_reject_constant)


def parse_metadata(raw: Any) -> dict:
    """Metadata from a JSON string or object. Anything unusable becomes {}."""
    if raw is None or raw == "":
        return {}
    if isinstance(raw, dict):
        return dict(raw)
    if isinstance(raw, str):
        try:
            parsed = loads_json(raw)
        except ValueError as ex:
            logger.warning(f"[tracking] Metadata parsing error: {ex}")
            return {}
        if isinstance(parsed, dict):
            return parsed
        logger.warning(f"[tracking] Metadata is not a JSON object ({type(parsed).__name__}); ignoring")
        return {}
    logger.warning(f"[tracking] Unsupported metadata type {type(raw).__name__}; ignoring")
    return {}


def record_event(
    db: Session,
    pixel_id: str,
    *,
    event_type: str,
    geo: GeoLocation,
    ua_info: UserAgentInfo,
    language: Optional[str],
    user_agent: Optional[str],
    client_ip: Optional[str],
    metadata: Optional[dict] = None,
    block_id: Optional[int] = None,
    duration: Optional[int] = None,
    value: Optional[float] = None,
    currency: Optional[str] = None,
) -> str:
    """
    Insert one tracking event and return its id.

    Works with degraded inputs (geo fields None, UA "Unknown").
    Persistence errors propagate; the caller decides how to recover.
    """
    event = EventTracking(
        pixel_id=pixel_id,
        event_type=event_type or "view",
        block_id=block_id,
        duration=duration,
        event_metadata=metadata or {},
        value=value,
        currency=currency,
        user_agent=user_agent or None,
        ip_address=geo.get("ip") or client_ip,
        country=geo.get("country"),
        region=geo.get("region"),
        city=geo.get("city"),
        device_type=ua_info["device_type"],
        os=ua_info["os"],
        browser=ua_info["browser"],
        language=language,
        source=EVENT_SOURCE_INTERNAL,
    )
    db.add(event)
    db.flush()
    event_id = event.id
    db.commit()
    logger.debug(f"[tracking] Recorded {event_type} event {event_id} for pixel {pixel_id}")
    return event_id
