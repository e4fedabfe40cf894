"""User-Agent and Accept-Language parsing for tracking events"""
from typing import Optional, TypedDict

from user_agents import parse as parse_ua

from core.config import logger

UNKNOWN = "Unknown"
MAX_FAMILY_LEN = 50
MAX_LANGUAGE_LEN = 35


class UserAgentInfo(TypedDict):
    device_type: str
    os: str
    browser: str


def _family(name: Optional[str]) -> str:
    # user_agents reports unmatched families as "Other"
    if not name or name == "Other":
        return UNKNOWN
    return name[:MAX_FAMILY_LEN]


def parse_user_agent(ua_string: Optional[str]) -> UserAgentInfo:
    """Parse user agent to extract device info"""
    if not ua_string or not ua_string.strip():
        return {"device_type": UNKNOWN, "os": UNKNOWN, "browser": UNKNOWN}

    try:
        ua = parse_ua(ua_string)
        if ua.is_tablet:
            device_type = "tablet"
        elif ua.is_mobile:
            device_type = "mobile"
        else:
            device_type = "desktop"
        return {
            "device_type": device_type,
            "os": _family(ua.os.family),
            "browser": _family(ua.browser.family),
        }
    except Exception as ex:
        logger.warning(f"[ua] Failed to parse user agent {ua_string[:120]!r}: {ex}")
        return {"device_type": "desktop", "os": UNKNOWN, "browser": UNKNOWN}


def normalize_language(accept_language: Optional[str]) -> Optional[str]:
    """Primary tag of an Accept-Language header: "en-US,en;q=0.9" -> "en-US"."""
    if not accept_language:
        return None
    tag = accept_language.split(",")[0].split(";")[0].strip()
    return tag[:MAX_LANGUAGE_LEN] or None
