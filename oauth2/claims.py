"""
Scope-to-claim mapping.

Only the scope items listed in SUPPORTED_SCOPES release user data. Each
maps to an explicit extractor; scopes outside the set still count for
consent but never contribute a claim.
"""

from typing import Any, Callable, Dict, Iterable

from auth.models import User

SUPPORTED_SCOPES: Dict[str, Callable[[User], Any]] = {
    "username": lambda user: user.username,
    "email": lambda user: user.email,
    "schoolNumber": lambda user: user.school_number,
}

# ID token claim names that differ from the scope item
ID_TOKEN_CLAIM_NAMES = {
    "schoolNumber": "school_number",
}

USER_INFO_PREFIX = "debuggers_acc."


def _supported_items(scopes: Iterable) -> list:
    items = []
    for scope in scopes or []:
        item = getattr(scope, "item", scope)
        if item in SUPPORTED_SCOPES and item not in items:
            items.append(item)
    return items


def id_token_claims(user: User, scopes: Iterable) -> Dict[str, Any]:
    """Claims embedded in an ID token for the granted scopes"""
    return {
        ID_TOKEN_CLAIM_NAMES.get(item, item): SUPPORTED_SCOPES[item](user)
        for item in _supported_items(scopes)
    }


def user_info_claims(user: User, scopes: Iterable) -> Dict[str, Any]:
    """Namespaced attributes returned by the user-info endpoint for the granted scopes"""
    return {
        f"{USER_INFO_PREFIX}{item}": SUPPORTED_SCOPES[item](user)
        for item in _supported_items(scopes)
    }
