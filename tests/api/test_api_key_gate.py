"""Tests for the shared X-API-Key gate and its rejected-key limit."""

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from wpmanager.api.middleware.api_key_gate import (
    FailureWindow,
    caller_of,
    is_gated,
    validate_api_key_strength,
)
from wpmanager.config import AppSettings

API_KEY = "a" * 32 + "-test-key"
SITES = "/api/v1/sites"


@pytest.fixture
def keyed(services, monkeypatch):
    """Turn the gate on for the running app."""
    monkeypatch.setattr(services.settings, "api_key", API_KEY)


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_gate_off_by_default(client: TestClient, auth_headers):
    assert client.get(SITES, headers=auth_headers).status_code == 200


def test_gate_enforced_when_key_is_set(client: TestClient, auth_headers, keyed):
    response = client.get(SITES, headers=auth_headers)
    assert response.status_code == 401
    assert response.json() == {"message": "Invalid or missing API key"}

    assert client.get(SITES, headers={**auth_headers, "X-API-Key": "wrong"}).status_code == 401
    assert client.get(SITES, headers={**auth_headers, "X-API-Key": API_KEY}).status_code == 200


def test_health_and_readyz_stay_open(client: TestClient, keyed):
    assert client.get("/health").status_code == 200
    assert client.get("/readyz").status_code in {200, 503}


def test_preflight_passes_through(client: TestClient, keyed):
    assert client.options(SITES).status_code != 401


@pytest.mark.parametrize(
    "path,gated",
    [
        ("/api/v1/sites", True),
        ("/api/v1/ai/providers", True),
        ("/health", False),
        ("/readyz", False),
        ("/docs", False),
        ("/openapi.json", False),
    ],
)
def test_is_gated(path, gated):
    assert is_gated(path) is gated


class TestKeyStrength:

    def test_short_key_rejected(self):
        with pytest.raises(ValueError, match="too short"):
            validate_api_key_strength("too-short")

    def test_minimum_length_accepted(self):
        validate_api_key_strength("a" * 32)

    def test_unset_key_skips_check(self):
        validate_api_key_strength(None)
        validate_api_key_strength("")

    def test_short_key_fails_startup(self, services):
        from wpmanager.api.main import create_app

        services.settings.api_key = "short"
        app = create_app(services=services)
        with pytest.raises(ValueError, match="too short"):
            with TestClient(app):
                pass


class TestRejectedKeyLimit:

    def test_blocks_caller_after_limit(self, client: TestClient, auth_headers, keyed):
        limit = client.app.state.auth_failures.limit
        bad = {**auth_headers, "X-API-Key": "wrong-key"}
        for _ in range(limit):
            assert client.get(SITES, headers=bad).status_code == 401

        response = client.get(SITES, headers=bad)
        assert response.status_code == 429
        assert "too many" in response.json()["message"].lower()

        # Still refused with the right key until the window passes
        assert client.get(SITES, headers={**auth_headers, "X-API-Key": API_KEY}).status_code == 429

    def test_limit_is_per_user(self, client: TestClient, keyed):
        limit = client.app.state.auth_failures.limit
        for _ in range(limit):
            client.get(SITES, headers={"X-User-Id": "user-1", "X-API-Key": "wrong-key"})

        other = {"X-User-Id": "user-2", "X-API-Key": API_KEY}
        assert client.get(SITES, headers=other).status_code == 200

    def test_clear_lifts_block(self, client: TestClient, auth_headers, keyed):
        failures = client.app.state.auth_failures
        bad = {**auth_headers, "X-API-Key": "wrong-key"}
        for _ in range(failures.limit):
            client.get(SITES, headers=bad)
        assert client.get(SITES, headers=bad).status_code == 429

        failures.clear()

        assert client.get(SITES, headers=bad).status_code == 401


class TestFailureWindow:

    def test_failures_expire_after_window(self):
        clock = FakeClock()
        window = FailureWindow(limit=2, window_seconds=60, clock=clock)
        window.record("user:a")
        window.record("user:a")
        assert window.is_blocked("user:a") is True

        clock.now += 60
        assert window.is_blocked("user:a") is False

    def test_old_failures_do_not_count(self):
        clock = FakeClock()
        window = FailureWindow(limit=2, window_seconds=60, clock=clock)
        window.record("user:a")
        clock.now += 59
        window.record("user:a")
        clock.now += 2

        assert window.is_blocked("user:a") is False

    def test_from_settings(self):
        window = FailureWindow.from_settings(
            AppSettings(auth_failure_limit=3, auth_failure_window_seconds=30)
        )
        assert (window.limit, window.window_seconds) == (3, 30)

    def test_unknown_caller_not_blocked(self):
        assert FailureWindow(limit=1, window_seconds=60).is_blocked("user:nobody") is False


class TestCallerIdentity:

    def test_user_header_preferred(self):
        request = MagicMock()
        request.headers = {"X-User-Id": " user-7 "}
        request.client.host = "10.0.0.5"
        assert caller_of(request) == "user:user-7"

    def test_falls_back_to_client_host(self):
        request = MagicMock()
        request.headers = {}
        request.client.host = "10.0.0.5"
        assert caller_of(request) == "host:10.0.0.5"
