"""JSON extraction for text-generation responses."""

import json
import re
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

# ```json ... ``` is preferred over a bare ``` ... ``` fence
_JSON_FENCE = re.compile(r"```json[ \t]*\r?\n(.*?)\r?\n?[ \t]*```", re.DOTALL | re.IGNORECASE)
_BARE_FENCE = re.compile(r"```[ \t]*\r?\n(.*?)\r?\n?[ \t]*```", re.DOTALL)


def find_fenced_block(response_text: str) -> Optional[str]:
    """
    Locate the first fenced code block in a markdown-style response.

    Args:
        response_text: Raw text from the model

    Returns:
        The block body, or None when the text has no fence
    """
    for pattern in (_JSON_FENCE, _BARE_FENCE):
        match = pattern.search(response_text)
        if match:
            return match.group(1)
    return None


def _load_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    if not isinstance(parsed, dict):
        return None
    return parsed


def extract_json_from_response(response_text: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Extract a JSON object from a model response.

    Two stages: a fenced code block if one exists, otherwise the whole body.
    A fence that holds invalid JSON is a failure; the whole body is not
    tried again in that case.

    Args:
        response_text: Raw text from the model

    Returns:
        Parsed JSON object, or None if nothing usable was found
    """
    if not response_text or not response_text.strip():
        logger.warning("Empty response from analysis backend")
        return None

    block = find_fenced_block(response_text)
    if block is not None:
        result = _load_object(block)
        if result is None:
            logger.error(f"Fenced block is not a JSON object: {block[:200]}...")
        return result

    result = _load_object(response_text.strip())
    if result is None:
        logger.error(f"Could not parse JSON from response: {response_text[:200]}...")
    return result
