from __future__ import annotations

import re

from .errors import ValidationError

_FENCE = "```"
_OPENING_FENCE_RE = re.compile(r"^```[^\n]*\n?")


def sanitize_response(raw: str | None) -> str:
    """Isolate the JSON object in a model response.

    Strips a surrounding ``` fence (with or without a language tag), then drops
    any prose before the first "{" and after the last "}". Raises ValidationError when nothing that
    could be an object remains.
    """
    if raw is None:
        raise ValidationError("Empty analysis response")
    cleaned = raw.strip()
    if not cleaned:
        raise ValidationError("Empty analysis response")

    if cleaned.startswith(_FENCE):
        cleaned = _OPENING_FENCE_RE.sub("", cleaned, count=1)
        end = cleaned.rfind(_FENCE)
        if end != -1:
            cleaned = cleaned[:end]
        cleaned = cleaned.strip()

    start = cleaned.find("{")
    if start == -1:
        raise ValidationError("No JSON object found in analysis response")
    if start > 0:
        cleaned = cleaned[start:]
    # Trailing chatter or a closing fence after the object
    end = cleaned.rfind("}")
    if end != -1:
        cleaned = cleaned[:end + 1]
    return cleaned
