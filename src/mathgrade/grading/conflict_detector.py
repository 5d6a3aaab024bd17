"""
Reading conflict detection between OCR and the vision model.

Both services transcribe the same problem. Formatting differences
(spacing, x vs ×, LaTeX markup, a trailing '=') are ignored: only a
difference in the numerals, operators or variables of the problem is a
reading conflict. On conflict each reading is solved and the candidates
are returned ranked; a human picks the winner.
"""

import asyncio
import re
from difflib import SequenceMatcher
from typing import Dict, List, Optional

from loguru import logger

from mathgrade.core.models import InterpretationOption, ReadingConflict, SolverResult

_SYMBOLS = {
    "×": "*",
    "÷": "/",
    "−": "-",
    "·": "*",
}

_LATEX_FRAC_RE = re.compile(r"\\frac\{([^}]*)\}\{([^}]*)\}")
_LATEX_OPERATORS = (
    (re.compile(r"\\times"), "*"),
    (re.compile(r"\\cdot"), "*"),
    (re.compile(r"\\div"), "/"),
)
_LATEX_COMMAND_RE = re.compile(r"\\[a-zA-Z]+|\\[()\[\]]")
_TIMES_LETTER_RE = re.compile(r"(?<=\d)\s*x\s*(?=\d)")
# Words; letter runs touching a digit are variable products such as 2ab
_WORD_RE = re.compile(r"(?<![a-z0-9])[a-z]{2,}(?![a-z0-9])")
_CORE_DROP_RE = re.compile(r"[^0-9a-z+\-*/=^.()<>%]")
# "3." or "3)" but not the start of "3.5" or "12:4"
_PROBLEM_NUMBER_RE = re.compile(r"^\s*\(?(\d+)\s*[.):](?!\d)\s*")
# Instruction prefix such as "Solve for x:" (a colon after a letter, not a ratio)
_INSTRUCTION_RE = re.compile(r"^.*[a-z]\s*:\s*", re.IGNORECASE | re.DOTALL)

# Minimum similarity for matching an unnumbered OCR line to a problem
MIN_LINE_SIMILARITY = 0.5


def _replace_symbols(text: str) -> str:
    for symbol, plain in _SYMBOLS.items():
        text = text.replace(symbol, plain)
    return text


def normalize_reading(text: Optional[str]) -> str:
    """Lower-case, drop whitespace, map unicode operators to ASCII."""
    if not text:
        return ""
    return re.sub(r"\s+", "", _replace_symbols(text.lower()))


def _strip_latex(text: str) -> str:
    text = _LATEX_FRAC_RE.sub(r"(\1)/(\2)", text)
    for pattern, replacement in _LATEX_OPERATORS:
        text = pattern.sub(replacement, text)
    text = _LATEX_COMMAND_RE.sub("", text)
    return text.replace("{", "").replace("}", "")


def reading_core(text: Optional[str]) -> str:
    """
    Reduce a reading to numerals, operators and single-letter variables.

    "Solve: 6 x 7 =" and "6 \\times 7" both reduce to "6*7".
    """
    if not text:
        return ""
    core = _strip_latex(text)
    without_instruction = _INSTRUCTION_RE.sub("", core)
    if without_instruction.strip():
        core = without_instruction
    core = _replace_symbols(core.lower())
    core = _TIMES_LETTER_RE.sub("*", core)
    core = _WORD_RE.sub("", core)
    core = _CORE_DROP_RE.sub("", core)
    return core.rstrip("=")


def split_ocr_lines(ocr_text: Optional[str]) -> Dict[int, str]:
    """
    Map problem numbers to OCR lines that start with one ("3.", "3)", "(3)").

    Unnumbered lines are kept under negative keys so they can still be
    matched by similarity.
    """
    lines: Dict[int, str] = {}
    if not ocr_text:
        return lines

    unnumbered = 0
    for raw in ocr_text.splitlines():
        line = raw.strip()
        if not line:
            continue
        match = _PROBLEM_NUMBER_RE.match(line)
        if match:
            number = int(match.group(1))
            lines.setdefault(number, line[match.end():].strip())
        else:
            unnumbered -= 1
            lines[unnumbered] = line
    return lines


def find_ocr_reading(question_number: int, vision_reading: str, ocr_lines: Dict[int, str]) -> Optional[str]:
    """
    OCR reading for one problem.

    Prefers the line numbered like the problem; otherwise the most similar
    line by reading core, if similar enough. None when nothing matches.
    """
    if question_number in ocr_lines:
        return ocr_lines[question_number]

    target = reading_core(vision_reading)
    if not target:
        return None

    best_line, best_ratio = None, 0.0
    for line in ocr_lines.values():
        ratio = SequenceMatcher(None, target, reading_core(line)).ratio()
        if ratio > best_ratio:
            best_line, best_ratio = line, ratio

    return best_line if best_ratio >= MIN_LINE_SIMILARITY else None


class ConflictDetector:
    """
    Compares OCR and vision readings of a problem.

    Args:
        solver: Optional symbolic solver used to compute each interpretation
    """

    def __init__(self, solver=None):
        self.solver = solver

    async def _solve(self, reading: str) -> Optional[str]:
        if self.solver is None or not self.solver.is_available:
            return None
        result: SolverResult = await self.solver.solve(reading)
        return result.answer if result.success else None

    async def detect(
        self,
        vision_reading: str,
        ocr_reading: Optional[str],
        vision_answer: Optional[str] = None,
        vision_confidence: float = 1.0,
        ocr_confidence: float = 0.0,
    ) -> ReadingConflict:
        """
        Check one problem for a reading conflict.

        Args:
            vision_reading: Problem text as read by the vision model
            ocr_reading: Problem text as read by OCR, or None
            vision_answer: The vision model's own answer, used when the solver has none
            vision_confidence: How legible the vision model found the problem
            ocr_confidence: OCR confidence

        Returns:
            ReadingConflict with up to two ranked interpretation options
        """
        if not ocr_reading or not ocr_reading.strip():
            return ReadingConflict(has_conflict=False, vision_reading=vision_reading, reason="No OCR reading")

        if normalize_reading(vision_reading) == normalize_reading(ocr_reading):
            return ReadingConflict(has_conflict=False, vision_reading=vision_reading, ocr_reading=ocr_reading)

        vision_core = reading_core(vision_reading)
        ocr_core = reading_core(ocr_reading)

        if vision_core == ocr_core:
            return ReadingConflict(
                has_conflict=False,
                vision_reading=vision_reading,
                ocr_reading=ocr_reading,
                vision_core=vision_core,
                ocr_core=ocr_core,
                reason="Formatting differences only",
            )

        logger.info(f"Reading conflict: vision={vision_core!r} ocr={ocr_core!r}")

        vision_solved, ocr_solved = await asyncio.gather(
            self._solve(vision_reading),
            self._solve(ocr_reading),
        )

        candidates = [
            ("vision", vision_reading, vision_solved or vision_answer, vision_confidence),
            ("ocr", ocr_reading, ocr_solved, ocr_confidence),
        ]
        # Stable sort: the vision reading stays first on equal confidence
        candidates.sort(key=lambda c: c[3], reverse=True)

        options: List[InterpretationOption] = [
            InterpretationOption(
                rank=rank,
                source=source,
                transcription=transcription,
                computed_answer=answer,
                confidence=round(confidence, 3),
            )
            for rank, (source, transcription, answer, confidence) in enumerate(candidates, start=1)
        ]

        return ReadingConflict(
            has_conflict=True,
            vision_reading=vision_reading,
            ocr_reading=ocr_reading,
            vision_core=vision_core,
            ocr_core=ocr_core,
            options=options,
            reason=f"OCR read '{ocr_core}' but vision read '{vision_core}'",
        )
