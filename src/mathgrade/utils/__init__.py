"""
Utility modules for the math grading pipeline.
"""

from mathgrade.utils.json_extractor import DecodeResult, lenient_decode, decode_or_raise
from mathgrade.utils.metrics import MetricsCollector

__all__ = [
    'DecodeResult',
    'lenient_decode',
    'decode_or_raise',
    'MetricsCollector',
]
