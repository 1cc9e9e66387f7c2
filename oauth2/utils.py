"""
Utility functions for the OAuth2 provider.

Handles:
- UTC timestamps
- Scope id normalisation
- Authorization header parsing
"""

from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple

from storage.relational.database import utcnow  # noqa: F401


def unix_now() -> int:
    return int(datetime.now(timezone.utc).timestamp())


def from_unix(timestamp: int) -> datetime:
    """Unix seconds -> naive UTC datetime"""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).replace(tzinfo=None)


def normalize_scope_ids(raw_ids: Optional[Iterable]) -> List[int]:
    """
    De-duplicate and numerically normalise scope ids from a consent request.

    Entries that are not integers ("abc", "", None) are dropped; order of
    first appearance is preserved.

    Example:
        >>> normalize_scope_ids(["2", "1", "2", "x", 3])
        [2, 1, 3]
    """
    normalized = []
    seen = set()
    for raw in raw_ids or []:
        if isinstance(raw, bool):
            continue
        try:
            scope_id = int(str(raw).strip())
        except (TypeError, ValueError):
            continue
        if scope_id not in seen:
            seen.add(scope_id)
            normalized.append(scope_id)
    return normalized


def split_authorization_header(header: Optional[str]) -> Optional[Tuple[str, str]]:
    """Split "<type> <token>" into its two parts; None when malformed"""
    if not header:
        return None
    parts = header.split()
    if len(parts) != 2:
        return None
    return parts[0], parts[1]
