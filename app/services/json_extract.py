# =============================================================================
# JSON Block Extraction — Pull Structured Data Out of Free-Form LLM Text
# =============================================================================
#
# LLMs asked for "ONLY valid JSON" still wrap it in prose or markdown
# fences. This module finds the first balanced `{...}` (or `[...]`) region
# that parses as JSON and returns the decoded value.
#
# Failure mode: returns None. It never raises, so callers can route a
# None straight into their fallback path.
# =============================================================================

from __future__ import annotations

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

_CLOSERS = {"{": "}", "[": "]"}


def extract_json_block(text: str | None, opener: str = "{") -> Any | None:
    """
    Return the first balanced JSON object (or array) embedded in `text`.

    Scans each occurrence of `opener` in order, finds its matching closer
    (ignoring brackets inside string literals), and tries to decode that
    region. The first region that decodes wins.

    Args:
        text: Raw model output.
        opener: "{" for objects, "[" for arrays.

    Returns:
        The decoded value, or None if no region decodes.
    """
    if not text or opener not in _CLOSERS:
        return None

    start = text.find(opener)
    while start != -1:
        end = _find_balanced_end(text, start, opener, _CLOSERS[opener])
        if end is not None:
            try:
                return json.loads(text[start:end + 1])
            # RecursionError: balanced but too deeply nested for the decoder
            except (ValueError, RecursionError):
                logger.debug("Discarding undecodable block at offset %d", start)
        start = text.find(opener, start + 1)

    return None


def _find_balanced_end(
    text: str,
    start: int,
    opener: str,
    closer: str,
) -> int | None:
    """Index of the closer matching text[start], or None if unbalanced."""
    depth = 0
    in_string = False
    escaped = False

    for i in range(start, len(text)):
        char = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return i

    return None
