"""Tests for the rate limit administration endpoints."""

import pytest
from fastapi.testclient import TestClient
from starlette.middleware.base import BaseHTTPMiddleware

from dealdesk.app_factory import create_application
from dealdesk.domain.entities.caller import AuthenticatedUser

BASE = "/api/v1/admin/rate-limits"
ADMIN_HEADERS = {"X-Test-User-Id": "1", "X-Test-Role": "admin"}
CREATOR_HEADERS = {"X-Test-User-Id": "7", "X-Test-Role": "creator", "X-Test-Plan": "creator"}


class CallerFromHeadersMiddleware(BaseHTTPMiddleware):
    """Stands in for the authentication layer."""

    async def dispatch(self, request, call_next):
        user_id = request.headers.get("X-Test-User-Id")
        if user_id:
            request.state.caller = AuthenticatedUser(
                user_id=user_id,
                role=request.headers.get("X-Test-Role"),
                subscription_plan=request.headers.get("X-Test-Plan"),
            )
        return await call_next(request)


@pytest.fixture
def build_client(make_settings, clock):
    def _build(store):
        app = create_application(settings_override=make_settings(), store_override=store, clock=clock)
        # Added last so it runs before admission control
        app.add_middleware(CallerFromHeadersMiddleware)
        return TestClient(app)

    return _build


@pytest.fixture
def client(build_client, memory_store):
    with build_client(memory_store) as test_client:
        yield test_client


class TestAuthorization:
    @pytest.mark.parametrize("headers", [{}, CREATOR_HEADERS, {"X-API-Key": "k_1"}])
    def test_non_admin_callers_are_forbidden(self, client, headers):
        response = client.get(f"{BASE}/user:42", headers=headers)

        assert response.status_code == 403
        assert response.json()["detail"] == "The user does not have permission to perform this action."

    def test_admin_caller_is_allowed(self, client):
        response = client.get(f"{BASE}/user:42", headers=ADMIN_HEADERS)

        assert response.status_code == 200


class TestWhitelistEndpoints:
    def test_add_permanent_entry(self, client):
        response = client.post(f"{BASE}/whitelist", json={"identifier": "ip:10.0.0.1"}, headers=ADMIN_HEADERS)

        assert response.status_code == 201
        body = response.json()
        assert body["identifier"] == "ip:10.0.0.1"
        assert body["permanent"] is True
        assert body["expires_at"] is None

    def test_add_timed_entry(self, client):
        response = client.post(
            f"{BASE}/whitelist",
            json={"identifier": "user:42", "duration_seconds": 3600},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 201
        assert response.json()["permanent"] is False
        assert response.json()["expires_at"] is not None

    def test_rejects_non_positive_duration(self, client):
        response = client.post(
            f"{BASE}/whitelist",
            json={"identifier": "user:42", "duration_seconds": 0},
            headers=ADMIN_HEADERS,
        )

        assert response.status_code == 422

    def test_whitelisted_caller_bypasses_admission(self, client):
        client.post(f"{BASE}/whitelist", json={"identifier": "ip:testclient"}, headers=ADMIN_HEADERS)

        responses = [client.get(f"{BASE}/user:42") for _ in range(60)]

        # Still forbidden, but never rate limited
        assert {r.status_code for r in responses} == {403}

    def test_remove_entry(self, client):
        client.post(f"{BASE}/whitelist", json={"identifier": "user:42"}, headers=ADMIN_HEADERS)

        first = client.delete(f"{BASE}/whitelist/user:42", headers=ADMIN_HEADERS)
        second = client.delete(f"{BASE}/whitelist/user:42", headers=ADMIN_HEADERS)

        assert first.json() == {"identifier": "user:42", "changed": True}
        assert second.json() == {"identifier": "user:42", "changed": False}


class TestBlacklistEndpoints:
    def test_blacklisted_caller_is_rejected(self, client):
        response = client.post(f"{BASE}/blacklist", json={"identifier": "user:7"}, headers=ADMIN_HEADERS)
        assert response.status_code == 201
        assert response.json()["changed"] is True

        rejected = client.get("/api/v1/anything", headers=CREATOR_HEADERS)

        assert rejected.status_code == 403
        assert rejected.json()["error"]["code"] == 4001
        assert "Retry-After" not in rejected.headers

    def test_remove_lifts_the_block(self, client):
        client.post(f"{BASE}/blacklist", json={"identifier": "user:7"}, headers=ADMIN_HEADERS)

        response = client.delete(f"{BASE}/blacklist/user:7", headers=ADMIN_HEADERS)

        assert response.json() == {"identifier": "user:7", "changed": True}
        assert client.get("/api/v1/anything", headers=CREATOR_HEADERS).status_code == 404


class TestStatusAndReset:
    def test_status_reports_live_counters(self, client):
        for _ in range(3):
            client.get("/api/v1/anything", headers=CREATOR_HEADERS)

        response = client.get(f"{BASE}/user:7", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["identifier"] == "user:7"
        assert body["blocked"] is False
        assert body["whitelisted"] is False
        assert body["violations"] == 0
        assert body["burst_tokens"] == 7
        limits = {limit["key"]: limit for limit in body["active_limits"]}
        assert limits["ratelimit:tier:creator:user:7"]["count"] == 3
        assert limits["ratelimit:global:user:7"]["ttl_seconds"] == 900

    def test_reset_clears_counters(self, client):
        for _ in range(3):
            client.get("/api/v1/anything", headers=CREATOR_HEADERS)

        response = client.post(f"{BASE}/user:7/reset", headers=ADMIN_HEADERS)

        assert response.status_code == 200
        # global, tier and burst bucket
        assert response.json() == {"identifier": "user:7", "keys_cleared": 3}
        status_body = client.get(f"{BASE}/user:7", headers=ADMIN_HEADERS).json()
        assert status_body["active_limits"] == []
        assert status_body["burst_tokens"] is None

    def test_identifiers_containing_slashes(self, client):
        client.post(f"{BASE}/whitelist", json={"identifier": "partner/acme"}, headers=ADMIN_HEADERS)

        status_response = client.get(f"{BASE}/partner/acme", headers=ADMIN_HEADERS)
        reset_response = client.post(f"{BASE}/partner/acme/reset", headers=ADMIN_HEADERS)

        assert status_response.status_code == 200
        assert status_response.json()["identifier"] == "partner/acme"
        assert status_response.json()["whitelisted"] is True
        assert reset_response.status_code == 200
        assert reset_response.json()["identifier"] == "partner/acme"

    def test_reset_keeps_blacklist(self, client):
        client.post(f"{BASE}/blacklist", json={"identifier": "user:7"}, headers=ADMIN_HEADERS)

        client.post(f"{BASE}/user:7/reset", headers=ADMIN_HEADERS)

        assert client.get(f"{BASE}/user:7", headers=ADMIN_HEADERS).json()["blacklisted"] is True


class TestStoreOutage:
    def test_admin_operation_reports_503(self, build_client, flaky_store):
        with build_client(flaky_store) as client:
            flaky_store.fail("set")

            response = client.post(f"{BASE}/whitelist", json={"identifier": "user:42"}, headers=ADMIN_HEADERS)

        assert response.status_code == 503
        body = response.json()
        assert body["success"] is False
        assert body["error"]["details"]["operation"] == "set"

    def test_admission_still_fails_open(self, build_client, flaky_store):
        with build_client(flaky_store) as client:
            flaky_store.fail()

            response = client.get("/api/v1/anything")

        assert response.status_code == 404


class TestHealth:
    def test_health_reports_store_state(self, build_client, flaky_store):
        with build_client(flaky_store) as client:
            assert client.get("/health").json() == {"status": "ok", "counter_store": "ok"}

            flaky_store.fail("ping")
            assert client.get("/health").json() == {"status": "ok", "counter_store": "degraded"}

    def test_health_is_not_rate_limited(self, build_client, memory_store):
        with build_client(memory_store) as client:
            responses = [client.get("/health") for _ in range(30)]

        assert all(r.status_code == 200 for r in responses)
        assert all("X-RateLimit-Limit" not in r.headers for r in responses)
