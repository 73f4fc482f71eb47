"""
Query normalization for keyword search.

Turns noisy free text ("uhmm can you search for tech stuff") into a canonical,
deduplicated token list ("technology", "stuff"). Pure and total: any input,
including the empty string, yields a list.
"""

import re
from typing import Dict, List

FILLER_PHRASES = [
    "please", "pls", "hey", "hi", "hello",
    "can you", "could you", "i want to", "i wanna", "help me", "show me",
    "find", "search for", "search", "looking for", "look for",
]

SYNONYMS: Dict[str, str] = {
    "tech": "technology",
    "edu": "education",
}

# Longest phrase first so "search for" is removed before "search".
_FILLER_RE = re.compile(
    r"\b(?:uh+ ?m+|um+|"
    + "|".join(re.escape(p) for p in sorted(FILLER_PHRASES, key=len, reverse=True))
    + r")\b"
)
_DISALLOWED_RE = re.compile(r"[^a-z0-9$ .-]+")
_WHITESPACE_RE = re.compile(r"\s+")
_SYNONYM_RE = re.compile(r"\b(" + "|".join(re.escape(k) for k in SYNONYMS) + r")\b")
_ES_PLURAL_RE = re.compile(r"(x|ch|sh|ss|z|o)es$")

_MAX_PASSES = 5


def singularize(token: str) -> str:
    """Simple plural -> singular heuristics for tokens of 4+ characters."""
    if len(token) < 4:
        return token
    if token.endswith("ies"):
        return token[:-3] + "y"
    if _ES_PLURAL_RE.search(token):
        return token[:-2]
    if token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


def _normalize_once(text: str) -> List[str]:
    cleaned = (text or "").lower().strip()
    cleaned = _FILLER_RE.sub(" ", cleaned)
    cleaned = _DISALLOWED_RE.sub(" ", cleaned)
    cleaned = _WHITESPACE_RE.sub(" ", cleaned).strip()
    cleaned = _SYNONYM_RE.sub(lambda m: SYNONYMS[m.group(1)], cleaned)

    tokens: List[str] = []
    for raw in cleaned.split(" "):
        if not raw:
            continue
        token = singularize(raw)
        if token not in tokens:
            tokens.append(token)
    return tokens


def normalize_query(text: str) -> List[str]:
    """
    Normalize `text` into ordered, unique lowercase tokens.

    The pipeline is re-applied until it stops changing the token list, so
    the result is already canonical: a token that only becomes a filler or
    synonym after singularization ("finds" -> "find") is handled here rather
    than on the next call.
    """
    tokens = _normalize_once(text)
    for _ in range(_MAX_PASSES):
        again = _normalize_once(" ".join(tokens))
        if again == tokens:
            break
        tokens = again
    return tokens
