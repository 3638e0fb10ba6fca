"""
Role-based capability checks.

Every handler asks one question, `can(role, action)`, instead of comparing
role names inline.
"""
from enum import Enum
from typing import Dict, FrozenSet, Iterable


class Role(str, Enum):
    """Role of a user profile within its organization."""
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class Action(str, Enum):
    """Operations gated by role."""
    VIEW = "view"
    SEARCH = "search"
    EDIT = "edit"                      # create/update documents, categories, collections, shared views
    DELETE = "delete"
    MANAGE_API_KEYS = "manage_api_keys"
    VIEW_USAGE = "view_usage"


_READER: FrozenSet[Action] = frozenset({Action.VIEW, Action.SEARCH})
_WRITER: FrozenSet[Action] = _READER | {Action.EDIT, Action.DELETE}

CAPABILITIES: Dict[Role, FrozenSet[Action]] = {
    Role.ADMIN: frozenset(Action),
    Role.EDITOR: _WRITER,
    Role.VIEWER: _READER,
}


def can(role: Role | str, action: Action | str) -> bool:
    """
    Check whether a role may perform an action.

    Unknown roles and actions are denied.
    """
    try:
        role = Role(role)
        action = Action(action)
    except ValueError:
        return False
    return action in CAPABILITIES[role]


def role_for_api_key(permissions: Iterable[str]) -> Role:
    """API keys act as editors when granted "write", viewers otherwise."""
    if "write" in set(permissions or ()):
        return Role.EDITOR
    return Role.VIEWER


# Key permission an API key needs for each action; actions not listed are
# never available to keys.
API_KEY_GRANTS: Dict[Action, str] = {
    Action.VIEW: "read",
    Action.SEARCH: "search",
    Action.EDIT: "write",
    Action.DELETE: "write",
}


def api_key_can(permissions: Iterable[str], action: Action | str) -> bool:
    """Check whether an API key's permission list covers an action."""
    try:
        action = Action(action)
    except ValueError:
        return False
    required = API_KEY_GRANTS.get(action)
    return required is not None and required in set(permissions or ())
