"""
Factory for the grading pipeline.

Wires providers, router, detector and orchestrator from settings. Every
call builds fresh instances; there are no module-level singletons.
"""

from typing import Optional

from mathgrade.ai.provider_factory import create_ocr_provider, create_provider_manager, create_solver
from mathgrade.ai.provider_manager import ProviderManager
from mathgrade.config.settings import Settings, get_settings
from mathgrade.grading.conflict_detector import ConflictDetector
from mathgrade.grading.orchestrator import GradingOrchestrator
from mathgrade.grading.verification import VerificationRouter
from mathgrade.utils.metrics import MetricsCollector


def create_verification_router(
    manager: Optional[ProviderManager] = None,
    settings: Optional[Settings] = None,
) -> VerificationRouter:
    """Router with the configured solver and, if given, the manager as self-check."""
    settings = settings or get_settings()
    return VerificationRouter(
        solver=create_solver(settings),
        self_check_fn=manager.reason if manager else None,
    )


def create_orchestrator(
    settings: Optional[Settings] = None,
    metrics: Optional[MetricsCollector] = None,
) -> GradingOrchestrator:
    """
    Build a complete grading pipeline from settings.

    Raises:
        ConfigurationError: No vision provider has an API key
    """
    settings = settings or get_settings()
    manager = create_provider_manager(settings)
    router = create_verification_router(manager, settings)

    return GradingOrchestrator(
        manager=manager,
        router=router,
        detector=ConflictDetector(router.solver),
        ocr=create_ocr_provider(settings),
        metrics=metrics,
        enable_verification=settings.enable_verification,
        readability_threshold=settings.readability_review_threshold,
    )
