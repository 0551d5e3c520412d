"""Tests for /health and /readyz."""

from wpmanager import __version__


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["version"] == __version__
    assert body["ai_providers"] == ["gemini"]
    assert body["monitor_active"] is False
    assert body["uptime_seconds"] >= 0


def test_readyz_ready_with_ai_backend(client):
    response = client.get("/readyz")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ready"
    assert body["checks"]["database"] == {"status": "ok"}
    assert body["checks"]["ai_providers"] == {"status": "configured", "providers": ["gemini"]}


def test_readyz_degraded_without_ai_backend(client, services):
    from wpmanager.config import AppSettings
    from wpmanager.services.ai import AIDispatcher

    services.dispatcher = AIDispatcher(AppSettings())
    body = client.get("/readyz").json()

    assert body["status"] == "degraded"
    assert body["checks"]["ai_providers"]["status"] == "degraded"


def test_readyz_database_down(client, monkeypatch):
    import wpmanager.db.connection as connection

    def broken_context():
        raise RuntimeError("database is locked")

    monkeypatch.setattr(connection, "get_db_context", broken_context)
    response = client.get("/readyz")

    assert response.status_code == 503
    assert response.json()["checks"]["database"]["status"] == "error"


def test_unhandled_error_is_generic_500(client, auth_headers, monkeypatch):
    from wpmanager.services.site_service import SiteService

    def explode(self, user_id):
        raise RuntimeError("password=hunter2 leaked in a stack")

    monkeypatch.setattr(SiteService, "list_sites", explode)
    response = client.get("/api/v1/sites", headers=auth_headers)

    assert response.status_code == 500
    assert response.json() == {"message": "Internal server error"}
