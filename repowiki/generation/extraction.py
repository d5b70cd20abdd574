"""Delimited-tag extraction from free-text model output.

Models are asked to wrap their payload in a known tag (``<blog>``,
``<readme>``, ``<documentation_structure>`` ...) but do not always
comply. A missing tag is not an error: the raw text is the payload.
"""

import re
from functools import lru_cache


@lru_cache(maxsize=32)
def _tag_pattern(tag: str) -> re.Pattern:
    escaped = re.escape(tag)
    return re.compile(rf"<{escaped}>(.*?)</{escaped}>", re.DOTALL)


def extract_tagged(text: str, tag: str) -> str:
    """Return the inner text of the first ``<tag>...</tag>`` pair in *text*.

    Matching is case-sensitive and spans newlines. When no complete pair
    is present the input is returned unchanged, so the function is
    idempotent on already-unwrapped text.
    """
    match = _tag_pattern(tag).search(text)
    if match:
        return match.group(1)
    return text
