"""
Provider registry and configuration.

All vision provider settings in one place.
No hardcoded values in provider classes.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from mathgrade.config.constants import (
    DEFAULT_ANTHROPIC_MODEL,
    DEFAULT_GEMINI_MODEL,
    DEFAULT_GROQ_MODEL,
    DEFAULT_OPENAI_MODEL,
)


@dataclass
class ProviderConfig:
    """Configuration for a single vision provider."""
    name: str
    backend: str
    api_key: str = ""
    base_url: Optional[str] = None
    model: Optional[str] = None
    timeout: float = 60.0
    extra_headers: Dict[str, str] = field(default_factory=dict)

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


# Provider metadata - defines how to create each provider.
# "backend" selects the client class: OpenAI-compatible, Anthropic, or Gemini.
PROVIDER_REGISTRY: Dict[str, Dict[str, Any]] = {
    "openai": {
        "backend": "openai",
        "api_key_attr": "openai_api_key",
        "model_attr": "openai_model",
        "default_model": DEFAULT_OPENAI_MODEL,
        "base_url": None,  # Default OpenAI API
    },
    "groq": {
        "backend": "openai",
        "api_key_attr": "groq_api_key",
        "model_attr": "groq_model",
        "default_model": DEFAULT_GROQ_MODEL,
        "base_url": "https://api.groq.com/openai/v1",
    },
    "openrouter": {
        "backend": "openai",
        "api_key_attr": "openrouter_api_key",
        "model_attr": "openrouter_model",
        "default_model": DEFAULT_OPENAI_MODEL,
        "base_url": "https://openrouter.ai/api/v1",
        "extra_headers": {"X-Title": "mathgrade"},
    },
    "anthropic": {
        "backend": "anthropic",
        "api_key_attr": "anthropic_api_key",
        "model_attr": "anthropic_model",
        "default_model": DEFAULT_ANTHROPIC_MODEL,
    },
    "gemini": {
        "backend": "gemini",
        "api_key_attr": "gemini_api_key",
        "model_attr": "gemini_model",
        "default_model": DEFAULT_GEMINI_MODEL,
    },
}


def get_provider_config(provider_name: str, settings) -> ProviderConfig:
    """
    Build ProviderConfig from settings for a given provider.

    Args:
        provider_name: Name of provider (e.g., "openai", "anthropic", "groq")
        settings: Settings instance

    Returns:
        ProviderConfig with all settings populated
    """
    registry = PROVIDER_REGISTRY.get(provider_name.lower())
    if not registry:
        raise ValueError(f"Unknown provider: {provider_name}. Available: {list(PROVIDER_REGISTRY.keys())}")

    return ProviderConfig(
        name=provider_name.lower(),
        backend=registry["backend"],
        api_key=getattr(settings, registry["api_key_attr"], "") or "",
        base_url=registry.get("base_url"),
        model=getattr(settings, registry["model_attr"], None) or registry["default_model"],
        timeout=settings.provider_timeout,
        extra_headers=dict(registry.get("extra_headers", {})),
    )
