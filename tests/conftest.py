import os
import tempfile
from datetime import timedelta

import httpx
import pytest

# Settings must be in place before core.config / core.database are imported
_DB_DIR = tempfile.mkdtemp(prefix="vcard-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'tracking.db')}"
os.environ["ENCRYPTION_KEY"] = "test-encryption-key"
os.environ["PUBLIC_IP_LOOKUP_URL"] = "https://api.ipify.org?format=json"
os.environ["GEOIP_LOOKUP_URL"] = "http://ip-api.com/json"
os.environ["META_API_URL"] = "https://graph.facebook.com"
os.environ["META_API_VERSION"] = "v18.0"
os.environ.pop("REDIS_URL", None)

from fastapi.testclient import TestClient  # noqa: E402
from throttled import Throttled, RateLimiterType, store, rate_limiter  # noqa: E402

from core.database import Base, SessionLocal, engine  # noqa: E402
from models.vcard import VCard  # noqa: E402
from models.pixel import Pixel  # noqa: E402
from models.event_tracking import EventTracking  # noqa: E402
from utils import rate_limit  # noqa: E402

IPIFY_HOST = "api.ipify.org"
GEOIP_HOST = "ip-api.com"
META_HOST = "graph.facebook.com"


class FakeUpstream:
    """Routes outbound httpx calls by host; unrouted hosts fail like a dead network."""

    def __init__(self):
        self.routes = {}
        self.calls = []

    def route(self, host, responder):
        self.routes[host] = responder

    def json(self, host, payload, status_code=200):
        self.route(host, lambda request: httpx.Response(status_code, json=payload))

    def fail(self, host, exc_type=httpx.ConnectError):
        def _raise(request):
            raise exc_type("upstream unavailable", request=request)
        self.route(host, _raise)

    def calls_to(self, host):
        return [r for r in self.calls if r.url.host == host]

    def handler(self, request):
        self.calls.append(request)
        responder = self.routes.get(request.url.host)
        if responder is None:
            raise httpx.ConnectError(f"no route to {request.url.host}", request=request)
        return responder(request)


def make_throttle(limit):
    return Throttled(
        using=RateLimiterType.FIXED_WINDOW.value,
        quota=rate_limiter.per_duration(timedelta(minutes=1), limit=limit),
        store=store.MemoryStore(),
    )


@pytest.fixture(autouse=True)
def upstream(monkeypatch):
    fake = FakeUpstream()
    real_async_client = httpx.AsyncClient

    def _client(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(fake.handler)
        return real_async_client(*args, **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", _client)
    return fake


@pytest.fixture(autouse=True)
def fresh_track_throttle(monkeypatch):
    monkeypatch.setattr(rate_limit, "track_throttle", make_throttle(100))


@pytest.fixture(scope="session", autouse=True)
def _schema():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()
        session.close()


@pytest.fixture
def client(db):
    from main import app
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_pixel(db):
    def _make(**kwargs):
        vcard = VCard(user_id="user-1", name=kwargs.pop("vcard_name", "Jane Doe"))
        db.add(vcard)
        db.flush()
        pixel = Pixel(name=kwargs.pop("name", "Jane's pixel"), vcard_id=vcard.id, **kwargs)
        db.add(pixel)
        db.commit()
        db.refresh(pixel)
        return pixel
    return _make


@pytest.fixture
def events(db):
    def _events():
        db.expire_all()
        return db.query(EventTracking).all()
    return _events
