"""
Provider layer: vision models, OCR and the symbolic solver.
"""

from mathgrade.ai.base_provider import VisionProvider, classify_exception
from mathgrade.ai.provider_manager import ProviderManager
from mathgrade.ai.mathpix_provider import MathpixProvider
from mathgrade.ai.wolfram_provider import WolframProvider, normalize_expression
from mathgrade.ai.provider_factory import (
    create_ocr_provider,
    create_provider_manager,
    create_solver,
    create_vision_provider,
    get_available_providers,
)

__all__ = [
    'VisionProvider',
    'classify_exception',
    'ProviderManager',
    'MathpixProvider',
    'WolframProvider',
    'normalize_expression',
    'create_ocr_provider',
    'create_provider_manager',
    'create_solver',
    'create_vision_provider',
    'get_available_providers',
]
