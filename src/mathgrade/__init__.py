"""
mathgrade: grading of photographed math homework.

Blind vision grading, OCR cross-checking, difficulty-tiered verification
and a durable processing queue.
"""

__version__ = "0.1.0"
