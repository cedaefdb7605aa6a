"""
Team-scoped access policy.

Pure functions over (role, actor team, action, author team). Nothing here
touches the store or caches a result: callers resolve teams through the team
directory on every call, so a team reassignment takes effect on the next
request.

Rules:
- Administrators hold every grantable action on every record.
- Contributors may create; read/edit/delete only records whose author is on
  the contributor's own (non-empty) team. Team comparison is exact string
  equality: "Rome" and "rome" are different teams.
- Nobody holds ``publish``. Records stay draft; a publish request is denied
  silently by mapping it to this non-grantable action.
- Unknown roles are denied everything.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from lcp_shared.schemas.common import Role


class Action(str, Enum):
    CREATE = "create"
    READ = "read"
    EDIT = "edit"
    DELETE = "delete"
    LIST = "list"
    PUBLISH = "publish"


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"

    @property
    def allowed(self) -> bool:
        return self is Decision.ALLOW


# Bump when the table below changes meaning.
POLICY_VERSION = 1

CAPABILITIES: Mapping[Role, frozenset[Action]] = MappingProxyType(
    {
        Role.ADMIN: frozenset(
            {Action.CREATE, Action.READ, Action.EDIT, Action.DELETE, Action.LIST}
        ),
        Role.CONTRIBUTOR: frozenset(
            {Action.CREATE, Action.READ, Action.EDIT, Action.DELETE, Action.LIST}
        ),
    }
)

# Actions a contributor may only perform on records authored by a teammate.
TEAM_SCOPED_ACTIONS = frozenset({Action.READ, Action.EDIT, Action.DELETE})


def parse_role(role: object) -> Optional[Role]:
    """Return the Role for a stored role value, or None if it is not one."""
    if isinstance(role, Role):
        return role
    try:
        return Role(role)
    except ValueError:
        return None


def same_team(actor_team: Optional[str], author_team: Optional[str]) -> bool:
    """Exact, non-empty team equality."""
    return bool(actor_team) and actor_team == author_team


def decide(
    role: object,
    actor_team: Optional[str],
    action: Action,
    author_team: Optional[str] = None,
) -> Decision:
    """Decide whether ``action`` is permitted.

    ``author_team`` is the team of the target record's author; it is only
    consulted for per-record actions (read/edit/delete).
    """
    parsed = parse_role(role)
    if parsed is None:
        return Decision.DENY

    if action not in CAPABILITIES.get(parsed, frozenset()):
        return Decision.DENY

    if parsed is Role.ADMIN:
        return Decision.ALLOW

    if action in TEAM_SCOPED_ACTIONS and not same_team(actor_team, author_team):
        return Decision.DENY

    return Decision.ALLOW


@dataclass(frozen=True)
class ListScope:
    """Visibility filter for list queries.

    Unrestricted scopes see everything. A restricted scope sees records
    authored by members of ``team``, and nothing when ``team`` is empty.
    """

    restricted: bool
    team: str = ""

    @property
    def unrestricted(self) -> bool:
        return not self.restricted

    @property
    def matches_nothing(self) -> bool:
        return self.restricted and not self.team


def list_scope(role: object, actor_team: Optional[str]) -> ListScope:
    """Compute the list-view visibility filter for an actor."""
    if decide(role, actor_team, Action.LIST) is Decision.DENY:
        return ListScope(restricted=True)
    if parse_role(role) is Role.ADMIN:
        return ListScope(restricted=False)
    return ListScope(restricted=True, team=actor_team or "")
