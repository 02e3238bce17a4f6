"""Parsing of JSON replies from the completion service."""

from __future__ import annotations

import json
import re
from typing import Any

_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def load_json_reply(raw: str) -> Any | None:
    """Decode a model reply as JSON, tolerating a surrounding code fence.

    Returns None when the reply is not JSON.
    """
    text = (raw or "").strip()
    m = _FENCE.match(text)
    if m:
        text = m.group(1)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None
