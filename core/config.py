import os
import logging
from dotenv import load_dotenv

# Load .env from project root
try:
    load_dotenv(dotenv_path=os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".env")))
except Exception:
    try:
        load_dotenv()
    except Exception:
        pass

# Visitor context lookups
PUBLIC_IP_LOOKUP_URL = os.getenv("PUBLIC_IP_LOOKUP_URL", "https://api.ipify.org?format=json").strip()
PUBLIC_IP_LOOKUP_TIMEOUT_SEC = float(os.getenv("PUBLIC_IP_LOOKUP_TIMEOUT_SEC", "2"))
GEOIP_LOOKUP_URL = (os.getenv("GEOIP_LOOKUP_URL", "") or "http://ip-api.com/json").strip().rstrip("/")
GEOIP_LOOKUP_TIMEOUT_SEC = float(os.getenv("GEOIP_LOOKUP_TIMEOUT_SEC", "3"))

# Meta Conversions API
META_API_URL = (os.getenv("META_API_URL", "https://graph.facebook.com") or "").strip().rstrip("/")
META_API_VERSION = (os.getenv("META_API_VERSION", "v18.0") or "").strip().strip("/")
META_FORWARD_TIMEOUT_SEC = float(os.getenv("META_FORWARD_TIMEOUT_SEC", "10"))

# Tracking endpoint limiter
TRACK_RATE_LIMIT_PER_MINUTE = int(os.getenv("TRACK_RATE_LIMIT_PER_MINUTE", "100"))

# Public API base used to build tracking URLs
API_URL = (os.getenv("API_URL", "http://localhost:8000") or "").strip().rstrip("/")

# Logging
logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
logger = logging.getLogger("vcard")
