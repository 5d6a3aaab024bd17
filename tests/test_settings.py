"""
Tests for settings, provider wiring and prompt selection.
"""

import pytest
from pydantic import ValidationError

from mathgrade.ai.provider_factory import (
    create_ocr_provider,
    create_provider_manager,
    create_solver,
    create_vision_provider,
    get_available_providers,
)
from mathgrade.config.providers import get_provider_config
from mathgrade.config.settings import Settings
from mathgrade.core.exceptions import ConfigurationError
from mathgrade.core.models import Difficulty, OCRResult
from mathgrade.grading.factory import create_orchestrator
from mathgrade.prompts.grading import build_blind_grading_prompt
from mathgrade.prompts.verification import (
    build_algebra_prompt,
    build_verification_prompt,
    build_word_problem_prompt,
    select_verification_prompt,
)


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestSettings:
    def test_defaults(self):
        settings = make_settings()

        assert settings.provider_order == ["openai", "anthropic", "groq"]
        assert settings.max_attempts == 3
        assert settings.lock_timeout_minutes == 5
        assert not settings.mathpix_configured
        assert not settings.wolfram_configured

    def test_primary_moves_to_front(self):
        settings = make_settings(provider_primary="Groq", fallback_order="openai, groq,anthropic")

        assert settings.provider_order == ["groq", "openai", "anthropic"]

    def test_fallback_order_drops_duplicates(self):
        settings = make_settings(fallback_order="gemini,openai,gemini")

        assert settings.provider_order == ["gemini", "openai"]

    def test_empty_fallback_order_means_default(self):
        assert make_settings(fallback_order=" , ").provider_order == ["openai", "anthropic", "groq"]

    def test_unknown_provider_is_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(fallback_order="openai,llamafarm")
        with pytest.raises(ValidationError):
            make_settings(provider_primary="llamafarm")

    def test_bounds(self):
        with pytest.raises(ValidationError):
            make_settings(max_attempts=0)
        with pytest.raises(ValidationError):
            make_settings(provider_timeout=0)

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("MATHGRADE_WOLFRAM_APP_ID", "wa-1")
        monkeypatch.setenv("MATHGRADE_MAX_ATTEMPTS", "5")

        settings = make_settings()

        assert settings.wolfram_configured
        assert settings.max_attempts == 5


class TestProviderFactory:
    def test_provider_config_from_registry(self):
        config = get_provider_config("groq", make_settings(groq_api_key="gsk", provider_timeout=12))

        assert config.backend == "openai"
        assert config.base_url == "https://api.groq.com/openai/v1"
        assert config.timeout == 12
        assert config.is_configured

    def test_unknown_provider(self):
        with pytest.raises(ConfigurationError):
            create_vision_provider("llamafarm", make_settings())

    def test_missing_key(self):
        with pytest.raises(ConfigurationError) as exc_info:
            create_vision_provider("openai", make_settings())
        assert "MATHGRADE_OPENAI_API_KEY" in exc_info.value.message

    def test_available_providers_follow_order(self):
        settings = make_settings(openai_api_key="sk-a", groq_api_key="gsk-b", fallback_order="groq,anthropic,openai")

        assert get_available_providers(settings) == ["groq", "openai"]

    def test_manager_skips_unconfigured(self):
        manager = create_provider_manager(make_settings(groq_api_key="gsk-b", max_retries=2))

        assert manager.provider_names == ["groq"]

    def test_no_providers_configured(self):
        with pytest.raises(ConfigurationError):
            create_provider_manager(make_settings())
        with pytest.raises(ConfigurationError):
            create_orchestrator(make_settings())

    def test_optional_ocr_and_solver(self):
        assert create_ocr_provider(make_settings()) is None
        assert create_solver(make_settings()) is None
        assert create_ocr_provider(make_settings(mathpix_app_id="a", mathpix_app_key="b", use_ocr=False)) is None

        settings = make_settings(mathpix_app_id="a", mathpix_app_key="b", wolfram_app_id="w")
        assert create_ocr_provider(settings).is_available
        assert create_solver(settings).is_available

    def test_orchestrator_wiring(self):
        settings = make_settings(openai_api_key="sk-a", wolfram_app_id="w", enable_verification=False)

        orchestrator = create_orchestrator(settings)

        assert orchestrator.router.solver_available
        assert orchestrator.detector.solver is orchestrator.router.solver
        assert orchestrator.ocr is None
        assert not orchestrator.enable_verification


class TestPrompts:
    def test_grading_prompt_includes_ocr_hint(self):
        plain = build_blind_grading_prompt()
        hinted = build_blind_grading_prompt(OCRResult(success=True, text="1. 6 x 7 =", confidence=0.9))

        assert "6 x 7 =" in hinted
        assert hinted.startswith(plain)

    def test_verification_prompt_selection(self):
        assert select_verification_prompt("solve for x: 2x+5=13", "4", Difficulty.COMPLEX) == \
            build_algebra_prompt("solve for x: 2x+5=13", "4")
        assert select_verification_prompt("Sam has 3 apples and bought 2 more", "5", Difficulty.MODERATE) == \
            build_word_problem_prompt("Sam has 3 apples and bought 2 more", "5")
        assert select_verification_prompt("1/2 + 1/4", "3/4", Difficulty.MODERATE) == \
            build_verification_prompt("1/2 + 1/4", "3/4")
