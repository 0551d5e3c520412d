"""AI provider dispatch: a closed set of interchangeable language-model backends."""

from wpmanager.services.ai.base import (
    AIProvider,
    AIResponse,
    ContentAnalysis,
    PluginRecommendation,
    SiteContext,
    ThemeRecommendation,
)
from wpmanager.services.ai.dispatcher import (
    AIConfigurationError,
    AIDispatcher,
    AIProviderName,
    NoProviderConfiguredError,
    ProviderUnavailableError,
)

__all__ = [
    "AIProvider",
    "AIResponse",
    "ContentAnalysis",
    "ThemeRecommendation",
    "PluginRecommendation",
    "SiteContext",
    "AIDispatcher",
    "AIProviderName",
    "AIConfigurationError",
    "NoProviderConfiguredError",
    "ProviderUnavailableError",
]
