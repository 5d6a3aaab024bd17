"""
Self-check verification prompts.

A fresh reasoning call recalculates a problem from scratch and reports
whether its answer matches the claimed one. Three variants: general,
word problem and algebra.
"""

import re
from typing import Optional

from mathgrade.core.models import Difficulty

VERIFICATION_SYSTEM_PROMPT = """You are a math verification assistant. Your ONLY job is to verify mathematical calculations.

CRITICAL RULES:
1. RECALCULATE the problem from scratch; do NOT assume the given answer is correct
2. Show every step of your work
3. Be careful with order of operations, signs, fraction arithmetic, decimal places and units
4. After calculating, compare your answer to the provided answer
5. State clearly whether they MATCH or DO NOT MATCH

OUTPUT FORMAT (JSON only):
{
  "steps": ["step 1", "step 2", ...],
  "calculation": "your complete calculation with work shown",
  "your_answer": "your calculated answer",
  "provided_answer": "the answer you were asked to verify",
  "match": true/false,
  "confidence": 0.0-1.0,
  "discrepancy": "explanation if the answers differ, null if they match"
}

Return ONLY valid JSON, no markdown formatting, no code blocks."""

_ALGEBRA_RE = re.compile(r"[a-z]\s*[=+\-*/]|solve\s+for|simplify|factor|expand", re.IGNORECASE)
_WORD_PROBLEM_RE = re.compile(
    r"\b(has|had|have|bought|sold|gave|received|each|total|how many|how much|find|what is)\b",
    re.IGNORECASE,
)


def build_verification_prompt(problem_text: str, answer: str, student_answer: Optional[str] = None) -> str:
    """General recalculation prompt."""
    prompt = f"""VERIFICATION TASK:

Problem: {problem_text}

Answer to verify: {answer}"""

    if student_answer:
        prompt += f"\nStudent's answer (for context only): {student_answer}"

    prompt += """

INSTRUCTIONS:
1. Read the problem carefully
2. Solve the problem yourself, showing all steps
3. Compare YOUR answer to the "Answer to verify"
4. Report whether they match

Recalculate from scratch. Do NOT assume the answer is correct.

Respond with JSON only."""
    return prompt


def build_word_problem_prompt(problem_text: str, answer: str) -> str:
    return f"""WORD PROBLEM VERIFICATION:

Problem: {problem_text}
Answer to verify: {answer}

VERIFICATION STEPS:
1. UNDERSTAND: What is the problem actually asking for?
2. IDENTIFY: What are the given values and unknowns?
3. SETUP: Write the equation(s) needed
4. SOLVE: Calculate step by step
5. CHECK: Does your answer make sense in context?
6. COMPARE: Does your answer match the answer to verify?

Respond with JSON:
{{
  "understanding": "what the problem is asking",
  "given_values": ["given values"],
  "equations": ["equations needed"],
  "steps": ["step-by-step solution"],
  "your_answer": "your calculated answer",
  "provided_answer": "the answer to verify",
  "match": true/false,
  "confidence": 0.0-1.0,
  "discrepancy": "explanation if the answers differ"
}}"""


def build_algebra_prompt(problem_text: str, answer: str) -> str:
    return f"""ALGEBRA VERIFICATION:

Problem: {problem_text}
Answer to verify: {answer}

VERIFICATION STEPS:
1. Identify the equation or expression
2. If solving for a variable, show each algebraic step
3. If simplifying, show the simplification
4. SUBSTITUTE your answer back into the original to check it
5. Compare with the provided answer

Respond with JSON:
{{
  "original_equation": "the equation/expression",
  "algebraic_steps": ["step 1", "step 2", ...],
  "your_answer": "your calculated answer",
  "verification": "substitution check",
  "provided_answer": "the answer to verify",
  "match": true/false,
  "confidence": 0.0-1.0,
  "discrepancy": "explanation if the answers differ"
}}"""


def select_verification_prompt(
    problem_text: str,
    answer: str,
    difficulty: Difficulty,
    student_answer: Optional[str] = None,
) -> str:
    """
    Pick the prompt variant for a problem.

    Algebra for complex problems with variables or algebra keywords,
    word problem for narrative keywords, general otherwise.
    """
    if difficulty == Difficulty.COMPLEX and _ALGEBRA_RE.search(problem_text):
        return build_algebra_prompt(problem_text, answer)
    if _WORD_PROBLEM_RE.search(problem_text):
        return build_word_problem_prompt(problem_text, answer)
    return build_verification_prompt(problem_text, answer, student_answer)
