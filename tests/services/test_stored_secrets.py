"""Tests for encrypted API keys and hosting accounts."""

import pytest

from tests.helpers import FakeAIProvider
from wpmanager.db.models import ApiKey, HostingAccount
from wpmanager.errors import AccessDeniedError, NotFoundError, ValidationError
from wpmanager.services.ai import AIDispatcher, AIProviderName, ProviderUnavailableError
from wpmanager.services.api_key_service import ApiKeyService, api_key_view
from wpmanager.services.hosting_account_service import (
    HostingAccountService,
    hosting_account_view,
)


@pytest.fixture
def api_keys(db_session, codec) -> ApiKeyService:
    return ApiKeyService(db_session, codec)


@pytest.fixture
def hosting(db_session, codec) -> HostingAccountService:
    return HostingAccountService(db_session, codec)


class TestApiKeyService:

    def test_create_encrypts_and_provisions_user(self, api_keys, codec):
        row = api_keys.create_key("fresh-user", " OpenAI ", "Work key", "sk-live-123")

        assert row.provider == "openai"
        assert row.encrypted_key != "sk-live-123"
        assert "sk-live-123" not in row.encrypted_key
        assert codec.decrypt(row.encrypted_key) == "sk-live-123"

    def test_view_never_contains_key(self, api_keys):
        row = api_keys.create_key("user-1", "openai", "k", "sk-live-123")
        view = api_key_view(row)

        assert view["has_key"] is True
        assert "sk-live-123" not in str(view)
        assert "encrypted_key" not in view

    def test_update_does_not_stamp_last_used(self, api_keys, codec):
        row = api_keys.create_key("user-1", "openai", "old", "sk-1")
        assert row.last_used is None

        updated = api_keys.update_key("user-1", row.id, key_name="new", api_key="sk-2", is_active=False)

        assert updated.key_name == "new"
        assert updated.is_active is False
        assert updated.last_used is None
        assert codec.decrypt(updated.encrypted_key) == "sk-2"

    def test_list_is_per_user(self, api_keys):
        mine = api_keys.create_key("user-1", "openai", "a", "x")
        api_keys.create_key("user-2", "openai", "b", "y")
        assert [k.id for k in api_keys.list_keys("user-1")] == [mine.id]

    def test_ownership(self, api_keys, db_session):
        row = api_keys.create_key("user-1", "openai", "a", "x")
        with pytest.raises(AccessDeniedError):
            api_keys.delete_key("user-2", row.id)
        with pytest.raises(NotFoundError):
            api_keys.get_key("user-1", "missing")

        api_keys.delete_key("user-1", row.id)
        assert db_session.query(ApiKey).count() == 0


class TestHostingAccountService:

    def test_credentials_encrypted(self, hosting, codec):
        creds = {"api_token": "tok", "sftp_user": "deploy"}
        row = hosting.create_account("user-1", "SiteGround", "Main", creds, "https://tools.siteground.com")

        assert row.provider == "siteground"
        assert "tok" not in row.encrypted_credentials
        assert codec.decrypt_json(row.encrypted_credentials) == creds

    def test_view_flags_credentials(self, hosting):
        row = hosting.create_account("user-1", "kinsta", "Main", {"api_token": "tok"})
        view = hosting_account_view(row)

        assert view["has_credentials"] is True
        assert view["server_url"] is None
        assert "tok" not in str(view)

    def test_empty_credentials_rejected(self, hosting, db_session):
        with pytest.raises(ValidationError):
            hosting.create_account("user-1", "kinsta", "Main", {})
        assert db_session.query(HostingAccount).count() == 0

    def test_ownership(self, hosting):
        row = hosting.create_account("user-1", "kinsta", "Main", {"k": "v"})
        with pytest.raises(AccessDeniedError):
            hosting.delete_account("user-2", row.id)
        hosting.delete_account("user-1", row.id)
        with pytest.raises(NotFoundError):
            hosting.get_account("user-1", row.id)


@pytest.fixture
def built_keys() -> list[str]:
    """API keys that per-request backends were constructed with."""
    return []


@pytest.fixture
def keyed_dispatcher(settings, fake_ai, built_keys) -> AIDispatcher:
    """Server has a gemini key only; per-request backends are fakes."""

    def build_openai(s):
        built_keys.append(s.openai_api_key)
        return FakeAIProvider(name="openai")

    def build_gemini(s):
        built_keys.append(s.gemini_api_key)
        return FakeAIProvider(name="gemini")

    return AIDispatcher(
        settings,
        providers={AIProviderName.gemini: fake_ai},
        factories={AIProviderName.openai: build_openai, AIProviderName.gemini: build_gemini},
    )


class TestAiBackend:
    """Stored user keys drive AI requests, with the server key as fallback."""

    def test_server_backend_when_nothing_stored(self, api_keys, keyed_dispatcher, fake_ai, built_keys):
        assert api_keys.ai_backend(keyed_dispatcher, "user-1") is fake_ai
        assert built_keys == []

    def test_stored_key_preferred_and_stamped(self, api_keys, keyed_dispatcher, fake_ai, built_keys):
        row = api_keys.create_key("user-1", "gemini", "mine", "user-gemini-key")

        backend = api_keys.ai_backend(keyed_dispatcher, "user-1")

        assert backend is not fake_ai
        assert backend.name == "gemini"
        assert built_keys == ["user-gemini-key"]
        assert row.last_used is not None

    def test_stored_key_makes_backend_available(self, api_keys, keyed_dispatcher, built_keys):
        api_keys.create_key("user-1", "openai", "mine", "sk-user")
        assert keyed_dispatcher.is_available("openai") is False

        backend = api_keys.ai_backend(keyed_dispatcher, "user-1", "openai")

        assert backend.name == "openai"
        assert built_keys == ["sk-user"]

    def test_key_for_other_backend_not_stamped(self, api_keys, keyed_dispatcher, fake_ai):
        row = api_keys.create_key("user-1", "openai", "mine", "sk-user")

        assert api_keys.ai_backend(keyed_dispatcher, "user-1") is fake_ai
        assert row.last_used is None

    def test_inactive_foreign_and_non_ai_keys_ignored(self, api_keys, keyed_dispatcher):
        row = api_keys.create_key("user-1", "openai", "mine", "sk-user")
        api_keys.update_key("user-1", row.id, is_active=False)
        api_keys.create_key("user-2", "openai", "theirs", "sk-other")
        api_keys.create_key("user-1", "github", "token", "ghp-123")

        assert api_keys.active_ai_keys("user-1") == {}
        with pytest.raises(ProviderUnavailableError):
            api_keys.ai_backend(keyed_dispatcher, "user-1", "openai")

    def test_unreadable_key_falls_back_to_server(
        self, api_keys, keyed_dispatcher, fake_ai, built_keys, db_session
    ):
        row = api_keys.create_key("user-1", "gemini", "mine", "k")
        row.encrypted_key = "v1:not-hex:00:00"
        db_session.commit()

        assert api_keys.ai_backend(keyed_dispatcher, "user-1") is fake_ai
        assert built_keys == []
        assert row.last_used is None
