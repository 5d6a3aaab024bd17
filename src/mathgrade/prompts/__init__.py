"""
Prompt templates for blind grading and self-check verification.
"""

from mathgrade.prompts.grading import GRADING_SYSTEM_PROMPT, build_blind_grading_prompt
from mathgrade.prompts.verification import (
    VERIFICATION_SYSTEM_PROMPT,
    build_algebra_prompt,
    build_verification_prompt,
    build_word_problem_prompt,
    select_verification_prompt,
)

__all__ = [
    'GRADING_SYSTEM_PROMPT',
    'build_blind_grading_prompt',
    'VERIFICATION_SYSTEM_PROMPT',
    'build_algebra_prompt',
    'build_verification_prompt',
    'build_word_problem_prompt',
    'select_verification_prompt',
]
