"""
Completion provider module for the Study Buddy backend.

This module handles the single outbound call to an OpenAI-compatible
chat-completion endpoint, including request building, error handling,
and content extraction.
"""
import time
from typing import Any, Dict, List, Optional, Tuple

import requests

from config import (
    LLM_API_KEY,
    LLM_BASE_URL,
    REQUEST_TIMEOUT_S,
    logger,
)

# HTTP session for connection pooling
_http_session: Optional[requests.Session] = None


def _get_http_session() -> requests.Session:
    """Get or create a reusable HTTP session for connection pooling."""
    global _http_session
    if _http_session is None:
        _http_session = requests.Session()
    return _http_session


def extract_content(payload: Any) -> Optional[str]:
    """Return choices[0].message.content from a provider payload, or None."""
    if not isinstance(payload, dict):
        return None
    choices = payload.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None
    message = choices[0].get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    return content if isinstance(content, str) else None


def generate_completion(
    messages: List[Dict[str, str]],
    model: str,
    temperature: float,
    max_tokens: int,
    request_id: str,
) -> Tuple[Optional[Dict[str, Any]], Optional[Dict[str, Any]]]:
    """
    Send one chat-completion request to the provider. Never retries.

    Args:
        messages: Chat messages, each a {"role", "content"} dict
        model: Model identifier, passed through unchanged
        temperature: Sampling temperature
        max_tokens: Upper bound on generated tokens
        request_id: A unique identifier for logging/tracking

    Returns:
        A tuple of (payload, error_dict). On success, error_dict is None and
        payload is the provider's full JSON response. On failure, payload is
        None and error_dict contains error details; "status" is set when the
        provider answered with an HTTP error.
    """
    if not LLM_API_KEY:
        return None, {"message": "Missing LLM_API_KEY in environment."}

    url = f"{LLM_BASE_URL}/chat/completions"
    headers = {
        "Authorization": f"Bearer {LLM_API_KEY}",
        "Content-Type": "application/json",
    }
    payload: Dict[str, Any] = {
        "model": model,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
    }

    session = _get_http_session()
    try:
        t0 = time.time()
        resp = session.post(
            url,
            headers=headers,
            json=payload,
            timeout=REQUEST_TIMEOUT_S,
        )
        dt_ms = int((time.time() - t0) * 1000)
    except requests.Timeout:
        logger.warning("completion_timeout request_id=%s timeout_s=%s", request_id, REQUEST_TIMEOUT_S)
        return None, {"message": "AI provider request timed out."}
    except requests.RequestException as req_exc:
        logger.warning("completion_request_exception request_id=%s err=%s", request_id, req_exc)
        return None, {"message": "AI provider request failed.", "exception": str(req_exc)}

    if not resp.ok:
        try:
            body = resp.json()
        except ValueError:
            body = {"text": resp.text[:2000]}
        logger.warning(
            "completion_http_error request_id=%s status=%s dt_ms=%s",
            request_id,
            resp.status_code,
            dt_ms,
        )
        return None, {
            "message": "AI provider HTTP error",
            "status": resp.status_code,
            "body": body,
        }

    try:
        data = resp.json()
    except ValueError as parse_exc:
        logger.error("completion_parse_error request_id=%s dt_ms=%s", request_id, dt_ms)
        return None, {"message": "Failed to parse AI provider response.", "exception": str(parse_exc)}

    logger.info("completion_ok request_id=%s model=%s dt_ms=%s", request_id, model, dt_ms)
    return data, None
