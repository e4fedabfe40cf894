import httpx
import pytest
from starlette.requests import Request

from utils.geolocation import get_client_ip, get_location_data, normalize_ip
from conftest import GEOIP_HOST, IPIFY_HOST

SF = {
    "status": "success",
    "countryCode": "US",
    "regionName": "California",
    "city": "San Francisco",
    "query": "8.8.8.8",
}


def _request(headers=None, client=("203.0.113.9", 5000)):
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


@pytest.mark.parametrize("raw, expected", [
    ("::1", "127.0.0.1"),
    ("10.0.0.1, 10.0.0.2", "10.0.0.1"),
    ("::ffff:192.168.1.1", "192.168.1.1"),
    ("  8.8.8.8  ", "8.8.8.8"),
    ("2001:db8::1", "2001:db8::1"),
    (None, None),
    ("", None),
    (" , 10.0.0.2", None),
])
def test_normalize_ip(raw, expected):
    assert normalize_ip(raw) == expected


def test_client_ip_prefers_forwarded_for():
    request = _request({"X-Forwarded-For": "198.51.100.1, 10.0.0.1", "X-Real-IP": "198.51.100.2"})
    assert normalize_ip(get_client_ip(request)) == "198.51.100.1"


def test_client_ip_falls_back_to_real_ip_then_peer():
    assert get_client_ip(_request({"X-Real-IP": " 198.51.100.2 "})) == "198.51.100.2"
    assert get_client_ip(_request()) == "203.0.113.9"
    assert get_client_ip(_request(client=None)) is None


@pytest.mark.asyncio
async def test_location_success(upstream):
    upstream.json(GEOIP_HOST, SF)

    location = await get_location_data("8.8.8.8")

    assert location == {"country": "US", "region": "California", "city": "San Francisco", "ip": "8.8.8.8"}
    assert upstream.calls_to(GEOIP_HOST)[0].url.path == "/json/8.8.8.8"
    assert upstream.calls_to(IPIFY_HOST) == []


@pytest.mark.asyncio
async def test_location_returns_ip_seen_by_service(upstream):
    upstream.json(GEOIP_HOST, {**SF, "query": "8.8.4.4"})

    location = await get_location_data("10.1.1.1")

    assert location["ip"] == "8.8.4.4"


@pytest.mark.asyncio
async def test_loopback_resolves_public_ip_first(upstream):
    upstream.json(IPIFY_HOST, {"ip": "93.184.216.34"})
    upstream.json(GEOIP_HOST, {**SF, "query": "93.184.216.34"})

    location = await get_location_data("127.0.0.1")

    assert upstream.calls_to(GEOIP_HOST)[0].url.path == "/json/93.184.216.34"
    assert location["ip"] == "93.184.216.34"
    assert location["country"] == "US"


@pytest.mark.asyncio
async def test_loopback_keeps_original_ip_when_public_lookup_fails(upstream):
    upstream.fail(IPIFY_HOST, httpx.ReadTimeout)
    upstream.json(GEOIP_HOST, {"status": "fail", "message": "reserved range", "query": "127.0.0.1"})

    location = await get_location_data("127.0.0.1")

    assert upstream.calls_to(GEOIP_HOST)[0].url.path == "/json/127.0.0.1"
    assert location == {"country": None, "region": None, "city": None, "ip": "127.0.0.1"}


@pytest.mark.asyncio
async def test_unavailable_service_is_idempotent(upstream):
    upstream.fail(GEOIP_HOST, httpx.ConnectTimeout)

    first = await get_location_data("8.8.8.8")
    first["country"] = "mutated"
    second = await get_location_data("8.8.8.8")

    assert second == {"country": None, "region": None, "city": None, "ip": "8.8.8.8"}


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code, payload", [
    (500, {"status": "success"}),
    (200, {"status": "fail"}),
    (200, ["not", "an", "object"]),
])
async def test_bad_responses_give_null_fields(upstream, status_code, payload):
    upstream.json(GEOIP_HOST, payload, status_code=status_code)

    location = await get_location_data("8.8.8.8")

    assert location == {"country": None, "region": None, "city": None, "ip": "8.8.8.8"}


@pytest.mark.asyncio
async def test_non_json_body_gives_null_fields(upstream):
    upstream.route(GEOIP_HOST, lambda request: httpx.Response(200, text="<html>rate limited</html>"))

    location = await get_location_data("8.8.8.8")

    assert location["country"] is None
    assert location["ip"] == "8.8.8.8"


@pytest.mark.asyncio
async def test_long_fields_are_truncated(upstream):
    upstream.json(GEOIP_HOST, {**SF, "city": "x" * 500, "regionName": "y" * 500})

    location = await get_location_data("8.8.8.8")

    assert len(location["city"]) == 100
    assert len(location["region"]) == 100


@pytest.mark.asyncio
async def test_missing_ip_skips_lookup(upstream):
    location = await get_location_data(None)

    assert location == {"country": None, "region": None, "city": None, "ip": None}
    assert upstream.calls == []
