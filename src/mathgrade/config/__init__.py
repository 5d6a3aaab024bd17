"""
Configuration module for the math grading pipeline.

Provides settings, constants, provider registry and logging configuration.
"""

from mathgrade.config.settings import get_settings, reload_settings, Settings
from mathgrade.config.logging_config import setup_structured_logging
from mathgrade.config.providers import ProviderConfig, PROVIDER_REGISTRY, get_provider_config
from mathgrade.config.constants import (
    MAX_ATTEMPTS,
    LOCK_TIMEOUT_MINUTES,
    MAX_RETRIES,
    PROVIDER_TIMEOUT,
    DEFAULT_TOLERANCE,
    READABILITY_REVIEW_THRESHOLD,
)

__all__ = [
    # Settings
    'get_settings',
    'reload_settings',
    'Settings',
    # Logging
    'setup_structured_logging',
    # Providers
    'ProviderConfig',
    'PROVIDER_REGISTRY',
    'get_provider_config',
    # Constants
    'MAX_ATTEMPTS',
    'LOCK_TIMEOUT_MINUTES',
    'MAX_RETRIES',
    'PROVIDER_TIMEOUT',
    'DEFAULT_TOLERANCE',
    'READABILITY_REVIEW_THRESHOLD',
]
