"""
Blind grading prompts.

The grading model never sees the answer key. It reads each problem, solves
it itself with shown work, reads the student's answer and grades against
its own calculation. The key is compared only afterwards, to annotate
discrepancies.
"""

from typing import Optional

from mathgrade.core.models import OCRResult

GRADING_SYSTEM_PROMPT = """You are an expert math teacher assistant grading student homework. You can solve any K-12 math problem.

YOUR GRADING PROCESS (follow this exactly):
1. IDENTIFY: Read each math problem on the homework, noting if handwriting is unclear
2. SOLVE: Calculate the correct answer yourself and show your reasoning
3. READ: Extract the student's written answer, noting if it is hard to read
4. COMPARE: Check whether the student's answer matches YOUR calculation
5. GRADE: Mark correct based on mathematical truth
6. FLAG: If ANY text is hard to read, set needs_review=true and explain what is unclear

CRITICAL RULES:
- YOU must solve the math yourself
- Consider equivalent forms as correct (1/2 = 0.5 = 50%, 3/6 = 1/2, etc.)
- Partial credit for work shown even if the final answer is wrong

HANDWRITING QUALITY:
- For EACH question, rate how clearly you can read the problem AND the answer
- "readability_confidence": 1.0 = crystal clear, 0.7 = readable but messy, 0.5 = guessing, 0.3 = very unclear
- Describe what is unclear in "readability_issue" (e.g. "number could be 5 or 2", "smudged", "crossed out")

MESSY HOMEWORK:
- Upside down or sideways text: still read and grade it, note it in readability_issue
- Scribbled out or missing answers: set student_answer to null
- Partially obscured text: give your best reading and lower readability_confidence
- Torn or missing portions: only grade what you can see, note it in review_reason

Look for the student name at the top of the page.

Respond ONLY with valid JSON. No additional text."""


BLIND_GRADING_PROMPT = """Analyze this math homework image and grade it using YOUR OWN CALCULATIONS.

You will NOT be given an answer key. You must solve every problem yourself.

GRADING INSTRUCTIONS:
1. Find the student's name at the top of the page
2. For EACH math problem on the homework:
   a. READ the problem exactly as written (e.g. "6 x 7 = ?")
   b. SOLVE it yourself, showing your step-by-step calculation
   c. RECORD your calculated answer; this is the correct answer
   d. READ what the student wrote as their answer
   e. COMPARE: does the student's answer match YOUR calculated answer?
   f. GRADE: mark correct if the student matches YOUR calculation

Respond with this exact JSON structure:
{
  "student_name": "detected name or null if not found",
  "name_confidence": 0.0 to 1.0,
  "questions": [
    {
      "question_number": 1,
      "problem_text": "the math problem as written (e.g. '6 x 7 =')",
      "ai_calculation": "your step-by-step calculation",
      "ai_answer": "your calculated correct answer (e.g. '42')",
      "student_answer": "what the student wrote, or null if blank/unreadable",
      "is_correct": true/false,
      "confidence": 0.0 to 1.0,
      "readability_confidence": 0.0 to 1.0,
      "readability_issue": "reading difficulties or null",
      "points_awarded": number,
      "points_possible": number
    }
  ],
  "total_score": number,
  "total_possible": number,
  "needs_review": true/false,
  "review_reason": "reason or null"
}"""


def build_blind_grading_prompt(ocr: Optional[OCRResult] = None) -> str:
    """
    Build the grading prompt, with the OCR transcription as a reading hint.

    Args:
        ocr: Optional OCR result for the same image

    Returns:
        Prompt text; never contains the answer key
    """
    if ocr is None or not ocr.success or not (ocr.text or ocr.latex):
        return BLIND_GRADING_PROMPT

    hint = ["", "", "OCR TRANSCRIPTION (a hint only; the image is authoritative):"]
    if ocr.text:
        hint.append(f"Text: {ocr.text}")
    if ocr.latex:
        hint.append(f"LaTeX: {ocr.latex}")
    hint.append(f"OCR confidence: {ocr.confidence:.2f}")
    hint.append("If the image and the transcription disagree, trust what you see in the image.")

    return BLIND_GRADING_PROMPT + "\n".join(hint)
