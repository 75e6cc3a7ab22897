"""
Common utility functions and helpers.
"""
from typing import Any, Iterator, Tuple
import hashlib
import json
import logging
import re

logger = logging.getLogger(__name__)


def generate_hash(text: str) -> str:
    """
    Generate SHA256 hash of text.

    Args:
        text: Text to hash

    Returns:
        Hex digest of hash
    """
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def truncate_text(text: str, max_length: int = 200, suffix: str = "...") -> str:
    """
    Truncate text to ``max_length`` characters and append ``suffix`` when cut.

    Unlike a display ellipsis the suffix is *added* after the kept prefix, so
    ``truncate_text(p, 150)`` keeps exactly 150 characters of ``p``.
    """
    if len(text) <= max_length:
        return text
    return text[:max_length] + suffix


def split_paragraphs(text: str) -> list:
    """Split on one or more blank lines, dropping whitespace-only parts."""
    return [p for p in re.split(r"\n\s*\n", text) if p.strip()]


# ---------------------------------------------------------------------------
# Lenient JSON parsing for completion replies
# ---------------------------------------------------------------------------

_FENCED_BLOCK_RE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_PYTHON_LITERAL_RE = re.compile(r"\b(True|False|None)\b")
_JSON_LITERALS = {"True": "true", "False": "false", "None": "null"}
# Closers tried on a reply cut off inside the answer object
_TRUNCATION_CLOSERS = ("}", "]}", "}]}")


def parse_json_robust(response: str) -> Tuple[bool, Any]:
    """
    Recover the JSON answer from a completion reply.

    The analysis prompts ask for one JSON object, but replies arrive wrapped in
    a ```json fence, surrounded by prose, with trailing commas or Python
    literals, or cut off by the token limit.  Candidates are tried in order
    (the whole reply, the fenced body, the outermost ``{...}`` span, then the
    truncated tail closed off), each as-is and after repair.

    Returns ``(success, parsed_value)``.
    """
    if not response or not response.strip():
        return False, None

    for candidate in _json_candidates(response.strip()):
        for text in (candidate, _repair_json(candidate)):
            try:
                return True, json.loads(text)
            except ValueError:
                continue

    logger.warning("parse_json_robust: no JSON recovered. Preview: %s", response[:400])
    return False, None


def _json_candidates(text: str) -> Iterator[str]:
    yield text

    fenced = _FENCED_BLOCK_RE.search(text)
    if fenced:
        text = fenced.group(1)
        yield text

    start, end = text.find("{"), text.rfind("}")
    if start == -1:
        return
    if end > start:
        yield text[start:end + 1]
    for closer in _TRUNCATION_CLOSERS:
        yield text[start:] + closer


def _repair_json(text: str) -> str:
    """Drop trailing commas and map Python literals to JSON ones."""
    text = _TRAILING_COMMA_RE.sub(r"\1", text)
    return _PYTHON_LITERAL_RE.sub(lambda m: _JSON_LITERALS[m.group(1)], text)
