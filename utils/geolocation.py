"""
Client address and geolocation helpers for tracking requests
Resolves the visitor IP behind proxies and maps it to country/region/city
"""
from typing import Optional, TypedDict

import httpx
from fastapi import Request

from core.config import (
    logger,
    PUBLIC_IP_LOOKUP_URL,
    PUBLIC_IP_LOOKUP_TIMEOUT_SEC,
    GEOIP_LOOKUP_URL,
    GEOIP_LOOKUP_TIMEOUT_SEC,
)
from utils.best_effort import best_effort

LOOPBACK_IPV4 = "127.0.0.1"
LOOPBACK_IPV6 = "::1"
IPV4_MAPPED_PREFIX = "::ffff:"

# Column caps on event_trackings
MAX_COUNTRY_LEN = 64
MAX_REGION_LEN = 100
MAX_CITY_LEN = 100
MAX_IP_LEN = 45


class GeoLocation(TypedDict):
    country: Optional[str]
    region: Optional[str]
    city: Optional[str]
    ip: Optional[str]


def normalize_ip(raw_ip: Optional[str]) -> Optional[str]:
    """
    Reduce a client address candidate to a single IP.

    "10.0.0.1, 10.0.0.2" -> "10.0.0.1"
    "::1"                -> "127.0.0.1"
    "::ffff:192.168.1.1" -> "192.168.1.1"
    """
    if not raw_ip:
        return None
    ip = str(raw_ip).split(",")[0].strip()
    if ip == LOOPBACK_IPV6:
        return LOOPBACK_IPV4
    if ip.lower().startswith(IPV4_MAPPED_PREFIX):
        ip = ip[len(IPV4_MAPPED_PREFIX):]
    return ip[:MAX_IP_LEN] or None


def get_client_ip(request: Request) -> Optional[str]:
    """Raw client address candidate, handling proxies."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded and forwarded.strip():
        return forwarded
    real_ip = request.headers.get("X-Real-IP")
    if real_ip and real_ip.strip():
        return real_ip.strip()
    return request.client.host if request.client else None


def empty_location(ip: Optional[str]) -> GeoLocation:
    return {"country": None, "region": None, "city": None, "ip": ip}


def _clip(value, limit: int) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value[:limit] or None


@best_effort(default=None, tag="geo")
async def get_public_ip() -> Optional[str]:
    """Public address of this host; used when the visitor shows up as loopback (local dev)."""
    async with httpx.AsyncClient(timeout=PUBLIC_IP_LOOKUP_TIMEOUT_SEC) as client:
        resp = await client.get(PUBLIC_IP_LOOKUP_URL)
    resp.raise_for_status()
    data = resp.json()
    ip = data.get("ip") if isinstance(data, dict) else None
    return normalize_ip(ip) if isinstance(ip, str) else None


@best_effort(default=None, tag="geo")
async def _lookup_location(ip: str) -> Optional[GeoLocation]:
    async with httpx.AsyncClient(timeout=GEOIP_LOOKUP_TIMEOUT_SEC) as client:
        resp = await client.get(f"{GEOIP_LOOKUP_URL}/{ip}")
    if resp.status_code != 200:
        logger.warning(f"[geo] Lookup for {ip} returned HTTP {resp.status_code}")
        return None
    data = resp.json()
    if not isinstance(data, dict) or data.get("status") != "success":
        logger.warning(f"[geo] Lookup for {ip} unsuccessful: {str(data)[:200]}")
        return None
    resolved_ip = data.get("query")
    return {
        "country": _clip(data.get("countryCode"), MAX_COUNTRY_LEN),
        "region": _clip(data.get("regionName"), MAX_REGION_LEN),
        "city": _clip(data.get("city"), MAX_CITY_LEN),
        "ip": normalize_ip(resolved_ip) if isinstance(resolved_ip, str) else ip,
    }


async def get_location_data(ip: Optional[str]) -> GeoLocation:
    """
    Resolve country/region/city for a normalized IP.

    Never raises. On any lookup failure every geo field is None and ``ip`` is
    the best address known so far.
    """
    if ip == LOOPBACK_IPV4:
        public_ip = await get_public_ip()
        ip = public_ip or ip
    if not ip:
        return empty_location(None)

    location = await _lookup_location(ip)
    if location is None:
        return empty_location(ip)
    return location
