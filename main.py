from fastapi import FastAPI, Request
from fastapi.responses import Response
from fastapi.middleware.cors import CORSMiddleware
import os

from core.config import logger  # type: ignore

# Routers
from routers import pixels  # type: ignore

app = FastAPI(title="vCard API")

# ---- CORS setup ----
# Prefer ALLOWED_ORIGINS, but also support legacy env names used in .env
_default_origins = ",".join([
    "http://localhost:3000",
    "http://localhost:5173",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
])
_origins_env = os.getenv("ALLOWED_ORIGINS") or os.getenv("CORS_ORIGINS") or os.getenv("FRONTEND_ORIGIN") or _default_origins
ALLOWED_ORIGINS = [o.strip() for o in _origins_env.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Beacon paths are embedded by third-party pages
PUBLIC_EMBED_PATHS = ("/pixel/",)


# --- Custom CORS for public endpoints (tracking beacon) ---
@app.middleware("http")
async def public_endpoints_cors(request: Request, call_next):
    """Allow CORS from any origin for the public beacon endpoints"""
    if not request.url.path.startswith(PUBLIC_EMBED_PATHS):
        return await call_next(request)

    allowed_headers = "Content-Type, Accept, Origin, X-Requested-With"
    if request.method == "OPTIONS":
        # Handle preflight
        return Response(
            status_code=200,
            headers={
                "Access-Control-Allow-Origin": "*",
                "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
                "Access-Control-Allow-Headers": allowed_headers,
                "Access-Control-Max-Age": "86400",
            }
        )
    response = await call_next(request)
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = allowed_headers
    return response


# --- Security headers ---
@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    response = await call_next(request)
    try:
        response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains; preload")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        if request.url.path.startswith(PUBLIC_EMBED_PATHS):
            response.headers.setdefault("Cross-Origin-Resource-Policy", "cross-origin")
        else:
            response.headers.setdefault("X-Frame-Options", "DENY")
    except Exception as ex:
        logger.warning(f"security headers failed for {request.url.path}: {ex}")
    return response


# ---- Include routers ----
# public tracking beacon
app.include_router(pixels.router)


@app.on_event("startup")
async def _init_schema():
    try:
        from core.database import init_db
        init_db()
    except Exception as _ex:
        logger.warning(f"init_db failed: {_ex}")


@app.get("/health")
async def health():
    return {"ok": True, "service": "vcard-api"}
