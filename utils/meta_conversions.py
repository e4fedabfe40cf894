"""
Meta Conversions API forwarding for tracking events
Relays a recorded event server-side; delivery is best-effort and never affects the pixel response
"""
import time
from typing import Optional, TypedDict

import httpx

from core.config import logger, META_API_URL, META_API_VERSION, META_FORWARD_TIMEOUT_SEC
from utils.best_effort import best_effort
from utils.crypto import decrypt_token

META_EVENT_MAP = {
    "view": "ViewContent",
    "click": "CustomizeProduct",
    "download": "Lead",
    "share": "Share",
    "heartbeat": "Heartbeat",
    "mouse_move": "MouseMovement",
    "scroll": "Scroll",
    "hover": "Hover",
    "suspicious_activity": "SuspiciousActivity",
    "preference_updated": "PreferenceUpdated",
    "attention_event": "AttentionEvent",
}
META_FALLBACK_EVENT = "CustomEvent"


class ConversionTarget(TypedDict):
    meta_pixel_id: str
    access_token: str


def map_to_meta_event(event_type) -> str:
    """Internal event type -> Meta standard/custom event name. Total over all inputs."""
    try:
        return META_EVENT_MAP.get(event_type, META_FALLBACK_EVENT)
    except TypeError:
        # unhashable input
        return META_FALLBACK_EVENT


def forwarding_configured() -> bool:
    return bool(META_API_URL and META_API_VERSION)


def resolve_conversion_target(meta_pixel_id: Optional[str], encrypted_token: Optional[str]) -> Optional[ConversionTarget]:
    """
    Account and decrypted token to forward to, or None when forwarding does not apply:
    no account on the pixel, token missing or not decryptable, or no global API config.
    """
    if not meta_pixel_id or not encrypted_token:
        return None
    if not forwarding_configured():
        logger.debug("[meta] META_API_URL/META_API_VERSION not configured; skipping forward")
        return None
    access_token = decrypt_token(encrypted_token)
    if not access_token:
        logger.warning(f"[meta] Access token for Meta pixel {meta_pixel_id} could not be decrypted; skipping forward")
        return None
    return {"meta_pixel_id": meta_pixel_id, "access_token": access_token}


def build_conversion_event(
    event_type: str,
    event_id: str,
    vcard_id,
    client_ip: Optional[str],
    user_agent: Optional[str],
    metadata: Optional[dict] = None,
    value: Optional[float] = None,
    currency: Optional[str] = None,
    event_time: Optional[int] = None,
) -> dict:
    custom_data = dict(metadata or {})
    custom_data["event_id"] = event_id
    custom_data["vcard_id"] = vcard_id
    if value is not None and currency:
        custom_data["value"] = value
        custom_data["currency"] = currency

    return {
        "event_name": map_to_meta_event(event_type),
        "event_time": int(event_time if event_time is not None else time.time()),
        "action_source": "website",
        "user_data": {
            "client_ip_address": client_ip,
            "client_user_agent": user_agent,
        },
        "custom_data": custom_data,
    }


@best_effort(default=False, tag="meta")
async def send_conversion_event(target: ConversionTarget, event: dict) -> bool:
    """POST one event to {META_API_URL}/{META_API_VERSION}/{pixel}/events. True if accepted."""
    url = f"{META_API_URL}/{META_API_VERSION}/{target['meta_pixel_id']}/events"
    async with httpx.AsyncClient(timeout=META_FORWARD_TIMEOUT_SEC) as client:
        resp = await client.post(url, json={
            "data": [event],
            "access_token": target["access_token"],
        })
    event_id = (event.get("custom_data") or {}).get("event_id")
    if resp.status_code >= 400:
        logger.warning(f"[meta] Conversions API rejected event {event_id}: HTTP {resp.status_code} {resp.text[:300]}")
        return False
    logger.info(f"[meta] Forwarded {event.get('event_name')} for event {event_id} to pixel {target['meta_pixel_id']}")
    return True
