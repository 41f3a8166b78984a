"""Parameter resolution helpers shared by node handlers.

Resolution order everywhere: run configuration, then node params, then a
raw fallback. Empty strings count as absent.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, Optional

from ..engine.errors import ContentError


def first_value(*candidates: Any) -> Any:
    """First candidate that is neither None nor an empty string."""
    for value in candidates:
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def param(params: Dict[str, Any], *keys: str) -> Any:
    return first_value(*(params.get(key) for key in keys))


def int_param(params: Dict[str, Any], *keys: str, default: int) -> int:
    value = param(params, *keys)
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ContentError(f"Parameter '{keys[0]}' must be an integer, got {value!r}")


def default_title() -> str:
    return f"Workflow Result - {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}"


def humanize_action(action: str) -> str:
    """``extract_next_meeting_date`` -> ``Extract Next Meeting Date``."""
    return " ".join(word[:1].upper() + word[1:] for word in action.split("_"))


_GITHUB_PATTERNS = (
    re.compile(r"github\.com/([^/]+)/([^/?#]+)"),
    re.compile(r"git@github\.com:([^/]+)/(.+?)(?:\.git)?$"),
    re.compile(r"raw\.githubusercontent\.com/([^/]+)/([^/]+)"),
)


def parse_github_repo(value: str) -> Optional[str]:
    """Normalise a repository reference to ``owner/repo``.

    Accepts ``owner/repo``, https/ssh clone URLs and raw content URLs.
    Returns None when nothing usable can be extracted.
    """
    clean = value.strip().lower()
    for pattern in _GITHUB_PATTERNS:
        match = pattern.search(clean)
        if match:
            repo = re.sub(r"\.git$", "", match.group(2))
            return f"{match.group(1)}/{repo}"
    if "/" in clean:
        owner, _, rest = clean.partition("/")
        repo = rest.split("/")[0]
        if owner and repo:
            return f"{owner}/{repo}"
    return None
