"""Tests for SiteService."""

import json

import pytest

from wpmanager.db.models import Activity, Site, User
from wpmanager.errors import AccessDeniedError, NotFoundError, WPManagerError
from wpmanager.services.site_service import (
    SiteConnectionError,
    SiteService,
    ensure_user,
    normalize_site_url,
)

SITE_URL = "https://blog.example.com"


@pytest.fixture
def service(db_session, codec, gateway) -> SiteService:
    return SiteService(db_session, codec, gateway)


class TestNormalizeSiteUrl:

    def test_strips_trailing_slash_and_whitespace(self):
        assert normalize_site_url("  https://blog.example.com/  ") == SITE_URL

    @pytest.mark.parametrize("bad", ["", "blog.example.com", "ftp://blog.example.com", "https://"])
    def test_rejects_invalid(self, bad):
        with pytest.raises(WPManagerError) as exc_info:
            normalize_site_url(bad)
        assert exc_info.value.code == "E-2001"


def test_ensure_user_provisions_once(db_session):
    first = ensure_user(db_session, "new-user")
    second = ensure_user(db_session, "new-user")
    assert first is second
    assert db_session.query(User).count() == 1


class TestCreateSite:

    @pytest.mark.asyncio
    async def test_successful_connection_saves_encrypted_site(self, service, codec, fake_wp, db_session):
        site = await service.create_site(
            "user-1", "My Blog", SITE_URL + "/", fake_wp.username, fake_wp.password
        )

        assert site.url == SITE_URL
        assert site.user_id == "user-1"
        assert site.is_active is True
        assert site.wp_version == "6.5.2"
        assert site.active_theme == "Twenty Twenty-Four"
        assert site.plugin_count == 2
        assert site.last_connected is not None
        assert site.encrypted_password != fake_wp.password
        assert codec.decrypt(site.encrypted_password) == fake_wp.password

    @pytest.mark.asyncio
    async def test_records_site_connected_activity(self, service, fake_wp, db_session):
        site = await service.create_site("user-1", "Blog", SITE_URL, "admin", fake_wp.password)

        activity = db_session.query(Activity).filter_by(site_id=site.id).one()
        assert activity.activity_type == "site_connected"
        assert json.loads(activity.metadata_json) == {"wpVersion": "6.5.2"}

    @pytest.mark.asyncio
    async def test_failed_connection_saves_nothing(self, service, db_session):
        with pytest.raises(SiteConnectionError) as exc_info:
            await service.create_site("user-1", "Blog", SITE_URL, "admin", "wrong password")

        assert exc_info.value.result.status_code == 401
        assert db_session.query(Site).count() == 0

    @pytest.mark.asyncio
    async def test_unreachable_site_saves_nothing(self, service, fake_wp, db_session):
        fake_wp.connect_error = True
        with pytest.raises(SiteConnectionError) as exc_info:
            await service.create_site("user-1", "Blog", SITE_URL, "admin", fake_wp.password)

        assert exc_info.value.result.error_kind == "connection_refused"
        assert db_session.query(Site).count() == 0

    @pytest.mark.asyncio
    async def test_invalid_url_is_not_contacted(self, service, fake_wp):
        with pytest.raises(WPManagerError):
            await service.create_site("user-1", "Blog", "not a url", "admin", "pw")
        assert fake_wp.requests == []

    @pytest.mark.asyncio
    async def test_blank_name_defaults_to_url(self, service, fake_wp):
        site = await service.create_site("user-1", "  ", SITE_URL, "admin", fake_wp.password)
        assert site.name == SITE_URL

    @pytest.mark.asyncio
    async def test_token_auth_method(self, service, fake_wp):
        site = await service.create_site(
            "user-1", "Blog", SITE_URL, "admin", fake_wp.password, auth_method="token"
        )
        assert site.auth_method == "token"


class TestOwnership:

    def test_get_own_site(self, service, site):
        assert service.get_site("user-1", site.id).id == site.id

    def test_missing_site(self, service, user):
        with pytest.raises(NotFoundError):
            service.get_site("user-1", "does-not-exist")

    def test_other_users_site(self, service, site):
        with pytest.raises(AccessDeniedError):
            service.get_site("user-2", site.id)

    def test_list_only_own_sites(self, service, site, db_session, codec):
        ensure_user(db_session, "user-2")
        db_session.add(Site(
            user_id="user-2", name="Theirs", url="https://other.test",
            username="u", encrypted_password=codec.encrypt("p"),
        ))
        db_session.commit()

        assert [s.id for s in service.list_sites("user-1")] == [site.id]

    def test_delete_other_users_site_denied(self, service, site, db_session):
        with pytest.raises(AccessDeniedError):
            service.delete_site("user-2", site.id)
        assert db_session.get(Site, site.id) is not None


class TestDecryptSecret:

    def test_round_trip(self, service, site, fake_wp):
        assert service.decrypt_secret(site) == fake_wp.password

    def test_unreadable_ciphertext(self, service, site, db_session):
        site.encrypted_password = "v1:garbage"
        db_session.commit()
        with pytest.raises(WPManagerError) as exc_info:
            service.decrypt_secret(site)
        assert exc_info.value.code == "E-5001"
        assert exc_info.value.details == {"site_id": site.id}


class TestCheckStatus:

    @pytest.mark.asyncio
    async def test_online_refreshes_metadata(self, service, site, fake_wp):
        fake_wp.wp_version = "6.6.1"
        fake_wp.plugins.append({"plugin": "new/new", "name": "New", "status": "active"})

        updated, status = await service.check_status("user-1", site.id)

        assert status.is_online is True
        assert updated.is_active is True
        assert updated.is_online is True
        assert updated.wp_version == "6.6.1"
        assert updated.plugin_count == 3
        assert updated.last_connected is not None

    @pytest.mark.asyncio
    async def test_offline_recorded_and_keeps_metadata(self, service, site, fake_wp, db_session):
        fake_wp.connect_error = True

        updated, status = await service.check_status("user-1", site.id)

        assert status.is_online is False
        assert updated.is_online is False
        assert updated.is_active is True
        assert updated.wp_version == "6.5.2"
        assert updated.plugin_count == 2
        activity = db_session.query(Activity).filter_by(activity_type="status_checked").one()
        assert json.loads(activity.metadata_json)["is_online"] is False

    @pytest.mark.asyncio
    async def test_comes_back_online(self, service, site, db_session):
        site.is_online = False
        db_session.commit()

        updated, _ = await service.check_status("user-1", site.id)
        assert updated.is_online is True

    @pytest.mark.asyncio
    async def test_offline_site_stays_monitored(self, service, site, fake_wp, monitor):
        fake_wp.connect_error = True
        await service.check_status("user-1", site.id)
        fake_wp.connect_error = False
        fake_wp.requests.clear()

        assert await monitor.run_once() == {"checked": 1, "alerts": 0}
        assert len(fake_wp.requests_to("GET", "")) == 1
        assert monitor.get_site_metrics(site.id).is_online is True
