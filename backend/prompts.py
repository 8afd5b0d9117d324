"""
Prompt templates for the Study Buddy tutoring actions.

Field values are interpolated into the templates verbatim.
"""
from typing import Any, Dict, List, Mapping, Optional

OPTION_LETTERS = ("A", "B", "C", "D")


def _options_block(body: Mapping[str, Any]) -> str:
    return "\n".join(f"{letter}) {body.get(f'option_{letter}')}" for letter in OPTION_LETTERS)


def parse_is_correct(value: Any) -> Optional[bool]:
    """Interpret the optional correctness flag; None when absent or unreadable."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        norm = value.strip().lower()
        if norm in {"true", "yes", "1"}:
            return True
        if norm in {"false", "no", "0"}:
            return False
    return None


def build_persona_prompt(body: Mapping[str, Any]) -> Optional[str]:
    """
    Build the system-role persona instruction, if the caller asked for one.

    An explicit `system_prompt` wins and is used as-is. Otherwise a persona
    is rendered from `buddy_name` and/or `buddy_personality`.

    Returns:
        The system prompt string, or None when no persona fields are set.
    """
    system_prompt = str(body.get("system_prompt") or "").strip()
    if system_prompt:
        return system_prompt

    name = str(body.get("buddy_name") or "").strip()
    personality = str(body.get("buddy_personality") or "").strip()
    if not name and not personality:
        return None

    lines = [f"You are {name or 'a study buddy'}, a friendly study companion helping a student prepare for exams."]
    if personality:
        lines.append(f"Your personality: {personality}.")
    lines.append("Stay in character, keep an encouraging tone, and never make the student feel bad for mistakes.")
    return "\n".join(lines)


def build_messages(system: Optional[str], user: str) -> List[Dict[str, str]]:
    """Return the chat message list: optional system message, then the user prompt."""
    messages: List[Dict[str, str]] = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": user})
    return messages


def build_motivation_prompt(body: Mapping[str, Any]) -> str:
    # Plain forward: the message is the whole prompt.
    return str(body.get("message"))


def build_solution_prompt(body: Mapping[str, Any]) -> str:
    """Step-by-step worked solution for a multiple-choice question."""
    return f"""You are an expert tutor. Write a clear, step-by-step solution for the following multiple-choice question.

Question:
{body.get("question_text")}

Options:
{_options_block(body)}

Reference solution:
{body.get("solution")}

Explain each step of the reasoning, show any working, and finish with the letter of the correct option on its own line in the form "Answer: X"."""


def build_determine_answer_prompt(body: Mapping[str, Any]) -> str:
    return f"""Read the question, the options and the solution below, then decide which option is correct.

Question:
{body.get("question_text")}

Options:
{_options_block(body)}

Solution:
{body.get("solution")}

Reply with ONLY a single letter: A, B, C or D. Do not add any other text."""


def build_explain_5yr_prompt(body: Mapping[str, Any]) -> str:
    return f"""Explain the following question and its solution as if you were talking to a 5-year-old.
Use very simple words, short sentences and a fun everyday example. Avoid jargon.

Question:
{body.get("question_text")}

Solution:
{body.get("solution")}"""


def build_better_understanding_prompt(body: Mapping[str, Any]) -> str:
    """
    Deeper conceptual explanation of a solved question.

    When the correctness flag is known, the prompt either reinforces what the
    student got right or walks through the misconception behind a wrong answer.
    """
    is_correct = parse_is_correct(body.get("is_correct"))
    if is_correct is True:
        framing = "The student answered this question correctly. Reinforce why the reasoning works and how to apply it to similar problems."
    elif is_correct is False:
        framing = "The student answered this question incorrectly. Identify the likely misconception, then rebuild the correct reasoning step by step."
    else:
        framing = "Help the student build a solid understanding of the underlying concept."

    return f"""{framing}

Question:
{body.get("question_text")}

Solution:
{body.get("solution")}

Structure your answer as:
1) Key concept (2-3 sentences)
2) Step-by-step reasoning
3) Common mistakes to avoid
4) One quick tip to remember it"""


def build_dig_deeper_prompt(body: Mapping[str, Any]) -> str:
    """Follow-up MCQ on the same concept, requested as strict JSON."""
    is_correct = parse_is_correct(body.get("is_correct"))
    if is_correct is False:
        difficulty = "at a similar or slightly easier difficulty, targeting the concept the student missed"
    else:
        difficulty = "that is slightly harder and tests a deeper aspect of the same concept"

    return f"""Based on the question and solution below, write ONE new multiple-choice question {difficulty}.

Original question:
{body.get("question_text")}

Original solution:
{body.get("solution")}

Respond with ONLY a JSON object, no markdown and no extra text, in exactly this shape:
{{
  "question": "the new question text",
  "options": ["option A text", "option B text", "option C text", "option D text"],
  "correctAnswer": "A",
  "explanation": "why the correct option is right"
}}
"correctAnswer" must be one of "A", "B", "C" or "D"."""
