"""
Factory for creating provider instances.

Uses registry-based configuration for easy extensibility. Nothing here is
cached at module level: callers own the instances they build.
"""

from typing import List, Optional

from mathgrade.ai.anthropic_provider import AnthropicProvider
from mathgrade.ai.base_provider import VisionProvider
from mathgrade.ai.gemini_provider import GeminiProvider
from mathgrade.ai.mathpix_provider import MathpixProvider
from mathgrade.ai.openai_provider import OpenAICompatibleProvider
from mathgrade.ai.provider_manager import ProviderManager
from mathgrade.ai.wolfram_provider import WolframProvider
from mathgrade.config.providers import PROVIDER_REGISTRY, get_provider_config
from mathgrade.config.settings import Settings, get_settings
from mathgrade.core.exceptions import ConfigurationError

_BACKENDS = {
    "openai": OpenAICompatibleProvider,
    "anthropic": AnthropicProvider,
    "gemini": GeminiProvider,
}


def create_vision_provider(provider_type: str, settings: Optional[Settings] = None) -> VisionProvider:
    """
    Create a vision provider instance.

    Args:
        provider_type: Provider name from the registry
        settings: Settings instance (default: cached settings)

    Returns:
        Provider instance

    Raises:
        ConfigurationError: Unknown provider or missing API key
    """
    settings = settings or get_settings()
    provider_type = provider_type.lower()

    if provider_type not in PROVIDER_REGISTRY:
        raise ConfigurationError(
            f"Unknown provider: {provider_type}",
            {"available": list(PROVIDER_REGISTRY.keys())},
        )

    config = get_provider_config(provider_type, settings)

    if not config.is_configured:
        raise ConfigurationError(
            f"API key required for {provider_type}. Set MATHGRADE_{provider_type.upper()}_API_KEY"
        )

    return _BACKENDS[config.backend](config)


def get_available_providers(settings: Optional[Settings] = None) -> List[str]:
    """Providers in the configured order that have an API key."""
    settings = settings or get_settings()
    return [
        name for name in settings.provider_order
        if get_provider_config(name, settings).is_configured
    ]


def create_provider_manager(settings: Optional[Settings] = None) -> ProviderManager:
    """
    Build a ProviderManager over every configured provider, in fallback order.

    Providers without an API key are skipped rather than failing later.
    """
    settings = settings or get_settings()
    names = get_available_providers(settings)

    if not names:
        raise ConfigurationError(
            "No vision provider configured",
            {"order": settings.provider_order},
        )

    return ProviderManager(
        [create_vision_provider(name, settings) for name in names],
        max_retries=settings.max_retries,
        retry_delay=settings.retry_delay,
    )


def create_ocr_provider(settings: Optional[Settings] = None) -> Optional[MathpixProvider]:
    """Mathpix client, or None when OCR is disabled or not configured."""
    settings = settings or get_settings()
    if not settings.use_ocr or not settings.mathpix_configured:
        return None
    return MathpixProvider(settings.mathpix_app_id, settings.mathpix_app_key, timeout=settings.ocr_timeout)


def create_solver(settings: Optional[Settings] = None) -> Optional[WolframProvider]:
    """Wolfram client, or None when not configured."""
    settings = settings or get_settings()
    if not settings.wolfram_configured:
        return None
    return WolframProvider(settings.wolfram_app_id, timeout=settings.solver_timeout)
