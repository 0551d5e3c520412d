"""AI backend selection.

The set of backends is closed: ``AIProviderName`` enumerates every
variant, and ``_PROVIDER_FACTORIES`` / ``_API_KEY_FIELDS`` must cover each
one (checked at import). A backend is available when its API key is
configured, or for a single request when the user has stored an active
key for it (``resolve_name`` with ``extra``, then ``provider_with_key``).

Selection policy:
    - Named backend: returned if configured, else ``ProviderUnavailableError``.
    - No name: the configured default if available, else the first
      available backend in enum order.
    - Nothing configured: ``NoProviderConfiguredError``.
"""

import logging
from collections.abc import Callable, Collection, Mapping
from enum import Enum

from wpmanager.config import AppSettings
from wpmanager.errors import WPManagerError
from wpmanager.services.ai.anthropic_provider import AnthropicProvider
from wpmanager.services.ai.base import AIProvider
from wpmanager.services.ai.gemini_provider import GeminiProvider
from wpmanager.services.ai.openai_provider import OpenAIProvider

logger = logging.getLogger(__name__)


class AIProviderName(str, Enum):
    """Closed set of supported AI backends."""

    openai = "openai"
    gemini = "gemini"
    anthropic = "anthropic"


class AIConfigurationError(Exception):
    """Base for AI backend configuration errors."""

    error_code = "E-1001"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_app_error(self) -> WPManagerError:
        return WPManagerError.from_code(self.error_code)


class NoProviderConfiguredError(AIConfigurationError):
    """No backend has credentials configured."""

    def __init__(self) -> None:
        super().__init__(
            "No AI services are configured. Please add OPENAI_API_KEY, "
            "GEMINI_API_KEY or ANTHROPIC_API_KEY to your environment variables."
        )


class ProviderUnavailableError(AIConfigurationError):
    """A specific backend was requested but is unknown or not configured."""

    error_code = "E-1002"

    def __init__(self, provider: str, available: list[str]) -> None:
        super().__init__(
            f"AI service '{provider}' is not available. Please check your API keys."
        )
        self.provider = provider
        self.available = available

    def to_app_error(self) -> WPManagerError:
        return WPManagerError.from_code(
            self.error_code,
            provider=self.provider,
            available=", ".join(self.available) or "none",
        )


ProviderFactory = Callable[[AppSettings], AIProvider]

_API_KEY_FIELDS: dict[AIProviderName, str] = {
    AIProviderName.openai: "openai_api_key",
    AIProviderName.gemini: "gemini_api_key",
    AIProviderName.anthropic: "anthropic_api_key",
}

_PROVIDER_FACTORIES: dict[AIProviderName, ProviderFactory] = {
    AIProviderName.openai: lambda s: OpenAIProvider(
        api_key=s.openai_api_key, model=s.openai_model, timeout=s.ai_request_timeout
    ),
    AIProviderName.gemini: lambda s: GeminiProvider(
        api_key=s.gemini_api_key or "", model=s.gemini_model, timeout=s.ai_request_timeout
    ),
    AIProviderName.anthropic: lambda s: AnthropicProvider(
        api_key=s.anthropic_api_key, model=s.anthropic_model, timeout=s.ai_request_timeout
    ),
}


def check_backend_tables(
    factories: Mapping[AIProviderName, ProviderFactory],
    key_fields: Mapping[AIProviderName, str],
) -> None:
    """Raise RuntimeError unless both tables cover exactly ``AIProviderName``."""
    expected = set(AIProviderName)
    if set(factories) != expected or set(key_fields) != expected:
        missing = expected - (set(factories) & set(key_fields))
        raise RuntimeError(
            "AI backend tables out of sync with AIProviderName; missing: "
            + ", ".join(sorted(n.value for n in missing))
        )


check_backend_tables(_PROVIDER_FACTORIES, _API_KEY_FIELDS)


class AIDispatcher:
    """Holds one instance of each configured backend for the process lifetime.

    Backends built from a user's stored key (``provider_with_key``) are
    per-request and never cached.

    Args:
        settings: Application settings (API keys, models, default backend).
        providers: Pre-built backends keyed by name. When given, exactly
            these are treated as configured (tests pass fakes here).
        factories: Backend constructors overriding the real SDK clients
            per name.
    """

    def __init__(
        self,
        settings: AppSettings,
        providers: dict[AIProviderName, AIProvider] | None = None,
        factories: Mapping[AIProviderName, ProviderFactory] | None = None,
    ) -> None:
        self._settings = settings
        self._factories = {**_PROVIDER_FACTORIES, **(factories or {})}
        self._default = AIProviderName(settings.default_ai_provider)
        if providers is not None:
            self._providers = dict(providers)
        else:
            self._providers = {
                name: self._factories[name](settings)
                for name in AIProviderName
                if getattr(settings, _API_KEY_FIELDS[name])
            }
        logger.info(
            "AI backends configured: %s (default %s)",
            ", ".join(self.available_providers()) or "none",
            self._default.value,
        )

    @property
    def default_provider(self) -> str:
        return self._default.value

    def available_providers(self) -> list[str]:
        """Configured backend names in enum order."""
        return [name.value for name in AIProviderName if name in self._providers]

    def is_available(self, name: str) -> bool:
        try:
            return AIProviderName(name) in self._providers
        except ValueError:
            return False

    def get_provider(self, name: str | None = None) -> AIProvider:
        """Select a process-wide backend by the selection policy.

        Args:
            name: Requested backend, or None to use the default policy.

        Raises:
            NoProviderConfiguredError: If no backend is configured.
            ProviderUnavailableError: If ``name`` is unknown or not configured.
        """
        return self._providers[self.resolve_name(name)]

    def resolve_name(
        self, name: str | None = None, extra: Collection[str] = ()
    ) -> AIProviderName:
        """Apply the selection policy and return the chosen backend name.

        Args:
            name: Requested backend, or None to use the default policy.
            extra: Backend names usable for this request on top of the
                configured ones (a user's stored keys).

        Raises:
            NoProviderConfiguredError: If nothing is available.
            ProviderUnavailableError: If ``name`` is unknown or unavailable.
        """
        usable = set(self._providers)
        for value in extra:
            try:
                usable.add(AIProviderName(value))
            except ValueError:
                continue
        if not usable:
            raise NoProviderConfiguredError()
        ordered = [n for n in AIProviderName if n in usable]

        if name:
            try:
                key = AIProviderName(name.strip().lower())
            except ValueError:
                raise ProviderUnavailableError(name, [n.value for n in ordered]) from None
            if key not in usable:
                raise ProviderUnavailableError(name, [n.value for n in ordered])
            return key

        if self._default in usable:
            return self._default
        return ordered[0]

    def provider_with_key(self, name: AIProviderName, api_key: str) -> AIProvider:
        """Build a one-off backend that authenticates with ``api_key``."""
        settings = self._settings.model_copy(update={_API_KEY_FIELDS[name]: api_key})
        return self._factories[name](settings)
