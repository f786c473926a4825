"""
Conversation fingerprints used as response cache keys.
"""

import json
from typing import Any, Mapping, Optional, Sequence

DEFAULT_FINGERPRINT_LENGTH = 300


def last_user_text(history: Sequence[Any]) -> Optional[str]:
    """Return the first part's text of the most recent user turn.

    Only the most recent user turn is considered; if its first part carries
    no usable text the result is None even when older user turns have some.
    """
    for turn in reversed(history):
        if not isinstance(turn, Mapping) or turn.get("role") != "user":
            continue

        parts = turn.get("parts")
        if not isinstance(parts, Sequence) or isinstance(parts, (str, bytes)) or not parts:
            return None
        first = parts[0]
        if not isinstance(first, Mapping):
            return None
        text = first.get("text")
        if isinstance(text, str) and text:
            return text
        return None

    return None


def make_fingerprint(history: Sequence[Any], max_length: int = DEFAULT_FINGERPRINT_LENGTH) -> str:
    """Derive the cache key for a conversation.

    The key is the trailing user utterance, stripped, lowercased and cut to
    ``max_length`` characters. Conversations without one fall back to the
    compact JSON form of the whole history. Two conversations ending in the
    same user utterance share a key.
    """
    text = last_user_text(history)
    if text is None:
        text = json.dumps(list(history), separators=(",", ":"), ensure_ascii=False)

    return text.strip().lower()[:max_length]
