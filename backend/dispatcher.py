"""
Action dispatcher for the Study Buddy backend.

Every tutoring request follows one linear pipeline:
validate -> build prompt -> one completion call -> extract/parse -> respond.
Each action is described by an entry in ACTIONS; handle() looks the action
up and runs the pipeline.
"""
import json
import math
import re
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Tuple

from completion_ai import extract_content, generate_completion
from config import FALLBACK_TEXT, LLM_MODEL, logger
from prompts import (
    OPTION_LETTERS,
    build_better_understanding_prompt,
    build_determine_answer_prompt,
    build_dig_deeper_prompt,
    build_explain_5yr_prompt,
    build_messages,
    build_motivation_prompt,
    build_persona_prompt,
    build_solution_prompt,
)

DEFAULT_ACTION = "default"

ANSWER_NOT_FOUND_ERROR = "Could not determine answer from AI response"
MCQ_PARSE_ERROR = "Could not parse MCQ JSON from AI response"

_ANSWER_LETTER_RE = re.compile(r"[ABCD]")
# Greedy: from the first "{" to the last "}"
_JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

Response = Tuple[Dict[str, Any], int]


class ActionSpec(NamedTuple):
    """Static description of one action."""

    required: Tuple[str, ...]
    build_prompt: Callable[[Mapping[str, Any]], str]
    temperature: float
    max_tokens: int
    shape: Callable[[Optional[str], Dict[str, Any]], Response]
    accepts_persona: bool = False


def extract_answer_letter(text: Optional[str]) -> Optional[str]:
    """First A-D character of the trimmed, uppercased text, or None."""
    match = _ANSWER_LETTER_RE.search((text or "").strip().upper())
    return match.group(0) if match else None


def parse_mcq(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Parse a multiple-choice question object out of free-form model output.

    The first "{" to the last "}" is taken as the JSON candidate. The object
    must carry a question, exactly four options and a correctAnswer in A-D.
    Options given as an {"A": ..., "D": ...} mapping are flattened in letter
    order.

    Returns:
        The normalized MCQ dict, or None when nothing usable was found.
    """
    match = _JSON_OBJECT_RE.search(text or "")
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None

    question = data.get("question")
    options = data.get("options")
    correct = str(data.get("correctAnswer") or "").strip().upper()
    explanation = data.get("explanation")

    if isinstance(options, dict):
        options = [options.get(letter) for letter in OPTION_LETTERS]
    if not isinstance(question, str) or not question.strip():
        return None
    if not isinstance(options, list) or len(options) != 4:
        return None
    if any(opt is None or isinstance(opt, (dict, list)) for opt in options):
        return None
    if correct not in OPTION_LETTERS:
        return None

    return {
        "question": question,
        "options": [str(opt) for opt in options],
        "correctAnswer": correct,
        "explanation": "" if explanation is None else str(explanation),
    }


def _shape_text(field: str) -> Callable[[Optional[str], Dict[str, Any]], Response]:
    def shape(content: Optional[str], payload: Dict[str, Any]) -> Response:
        return {field: content or FALLBACK_TEXT, "full_response": payload}, 200

    return shape


def _shape_answer(content: Optional[str], payload: Dict[str, Any]) -> Response:
    letter = extract_answer_letter(content)
    if letter is None:
        return {"error": ANSWER_NOT_FOUND_ERROR, "aiResponse": content}, 500
    return {"correct_answer": letter, "raw_response": content}, 200


def _shape_mcq(content: Optional[str], payload: Dict[str, Any]) -> Response:
    mcq = parse_mcq(content)
    if mcq is None:
        return {"error": MCQ_PARSE_ERROR, "aiResponse": content}, 500
    return {"mcq": mcq, "full_response": payload}, 200


def _shape_passthrough(content: Optional[str], payload: Dict[str, Any]) -> Response:
    return payload, 200


_QUESTION_FIELDS = ("question_text",) + tuple(f"option_{letter}" for letter in OPTION_LETTERS) + ("solution",)
_EXPLAIN_FIELDS = ("question_text", "solution")

ACTIONS: Mapping[str, ActionSpec] = MappingProxyType({
    DEFAULT_ACTION: ActionSpec(
        required=("message",),
        build_prompt=build_motivation_prompt,
        temperature=0.7,
        max_tokens=800,
        shape=_shape_passthrough,
        accepts_persona=True,
    ),
    "generate_solution": ActionSpec(
        required=_QUESTION_FIELDS,
        build_prompt=build_solution_prompt,
        temperature=0.5,
        max_tokens=1500,
        shape=_shape_text("solution"),
        accepts_persona=True,
    ),
    "determine_answer": ActionSpec(
        required=_QUESTION_FIELDS,
        build_prompt=build_determine_answer_prompt,
        temperature=0.1,
        max_tokens=10,
        shape=_shape_answer,
    ),
    "explain_5yr": ActionSpec(
        required=_EXPLAIN_FIELDS,
        build_prompt=build_explain_5yr_prompt,
        temperature=0.7,
        max_tokens=800,
        shape=_shape_text("explanation"),
        accepts_persona=True,
    ),
    "better_understanding": ActionSpec(
        required=_EXPLAIN_FIELDS,
        build_prompt=build_better_understanding_prompt,
        temperature=0.7,
        max_tokens=800,
        shape=_shape_text("explanation"),
        accepts_persona=True,
    ),
    "dig_deeper": ActionSpec(
        required=_EXPLAIN_FIELDS,
        build_prompt=build_dig_deeper_prompt,
        temperature=0.7,
        max_tokens=1000,
        shape=_shape_mcq,
    ),
})


def resolve_action(body: Mapping[str, Any]) -> str:
    """Action name for the request; absent or unknown names fall back to the plain forward."""
    action = body.get("action")
    if isinstance(action, str) and action in ACTIONS:
        return action
    return DEFAULT_ACTION


def missing_fields(body: Mapping[str, Any], required: Tuple[str, ...]) -> List[str]:
    missing = []
    for field in required:
        value = body.get(field)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(field)
        elif isinstance(value, (list, dict)) and not value:
            missing.append(field)
    return missing


def _sampling_params(body: Mapping[str, Any], spec: ActionSpec) -> Tuple[float, int]:
    # Raises ValueError/TypeError/OverflowError on non-numeric or non-finite overrides.
    temperature = body.get("temperature")
    max_tokens = body.get("max_tokens")
    temperature = spec.temperature if temperature is None else float(temperature)
    if not math.isfinite(temperature):
        raise ValueError("temperature must be finite")
    return temperature, spec.max_tokens if max_tokens is None else int(max_tokens)


def handle(body: Any, request_id: str) -> Response:
    """
    Run one tutoring request through its action's pipeline.

    Args:
        body: The parsed JSON request body (None when it could not be parsed)
        request_id: A unique identifier for logging/tracking

    Returns:
        A tuple of (json_payload, http_status).
    """
    if not isinstance(body, dict):
        return {"error": "Request body must be a valid JSON object."}, 400

    action = resolve_action(body)
    spec = ACTIONS[action]

    missing = missing_fields(body, spec.required)
    if missing:
        logger.info("dispatch_invalid request_id=%s action=%s missing=%s", request_id, action, ",".join(missing))
        return {
            "error": f"Missing required fields for {action}: {', '.join(missing)}",
            "details": {"action": action, "missing": missing},
        }, 400

    try:
        temperature, max_tokens = _sampling_params(body, spec)
    except (TypeError, ValueError, OverflowError):
        return {
            "error": f"Fields 'temperature' and 'max_tokens' must be finite numbers for {action}.",
            "details": {"action": action},
        }, 400

    model = body.get("model") or LLM_MODEL
    system = build_persona_prompt(body) if spec.accepts_persona else None
    messages = build_messages(system, spec.build_prompt(body))

    logger.info(
        "dispatch request_id=%s action=%s model=%s temperature=%s max_tokens=%s persona=%s prompt_len=%s",
        request_id,
        action,
        model,
        temperature,
        max_tokens,
        bool(system),
        len(messages[-1]["content"]),
    )

    payload, err = generate_completion(
        messages,
        model=model,
        temperature=temperature,
        max_tokens=max_tokens,
        request_id=request_id,
    )
    if err is not None or payload is None:
        status = (err or {}).get("status") or 500
        return {"error": "AI provider error", "details": err}, status

    result, status = spec.shape(extract_content(payload), payload)
    if status != 200:
        logger.warning("dispatch_shape_error request_id=%s action=%s error=%s", request_id, action, result.get("error"))
    return result, status
