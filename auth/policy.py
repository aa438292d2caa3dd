"""
auth/policy.py -- Route access rules.

ACCESS_RULES is an ordered table of (methods, path pattern, requirement).
check_access() walks it top to bottom and the first matching rule decides.

Path patterns use two wildcards:
  *   one path segment          (/api/v1/loans/*/approve)
  **  any remainder, incl. none (/api/v1/admin/**)

A requirement is PUBLIC, AUTHENTICATED, or a frozenset of roles that may pass.

Layer rule: no imports from api/ or loans/.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from auth.models import Principal, Role


class Access(str, Enum):
    PUBLIC = "public"
    AUTHENTICATED = "authenticated"


class AccessDecision(str, Enum):
    ALLOWED = "allowed"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"


def _compile(pattern: str) -> re.Pattern:
    parts = []
    for chunk in re.split(r"(\*\*|\*)", pattern):
        if chunk == "**":
            parts.append(".*")
        elif chunk == "*":
            parts.append("[^/]+")
        else:
            parts.append(re.escape(chunk))
    # "/api/v1/**" should also match "/api/v1" itself.
    regex = "".join(parts)
    if regex.endswith("/.*"):
        regex = regex[:-3] + "(?:/.*)?"
    return re.compile(f"^{regex}$")


@dataclass(frozen=True)
class AccessRule:
    pattern: str
    requirement: Access | frozenset[Role]
    methods: frozenset[str] | None = None  # None = any method
    _regex: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_regex", _compile(self.pattern))

    def matches(self, method: str, path: str) -> bool:
        if self.methods is not None and method.upper() not in self.methods:
            return False
        return self._regex.match(path) is not None


_REVIEWERS = frozenset({Role.ANALYST, Role.ADMIN})

ACCESS_RULES: tuple[AccessRule, ...] = (
    # CORS pre-flight probes carry no credentials.
    AccessRule("/**", Access.PUBLIC, methods=frozenset({"OPTIONS"})),
    AccessRule("/api/v1/auth/register", Access.PUBLIC),
    AccessRule("/api/v1/auth/login", Access.PUBLIC),
    AccessRule("/api/v1/admin/**", frozenset({Role.ADMIN})),
    AccessRule("/api/v1/loans/*/approve", _REVIEWERS, methods=frozenset({"PATCH"})),
    AccessRule("/api/v1/loans/*/reject", _REVIEWERS, methods=frozenset({"PATCH"})),
    AccessRule("/api/v1/**", Access.AUTHENTICATED),
    AccessRule("/**", Access.PUBLIC),
)


def check_access(
    method: str,
    path: str,
    principal: Principal | None,
    rules: tuple[AccessRule, ...] = ACCESS_RULES,
) -> AccessDecision:
    """Decide whether principal (None = anonymous) may call method on path.

    Paths no rule matches are public; the table above ends with a catch-all
    so this only matters for custom rule sets.
    """
    for rule in rules:
        if not rule.matches(method, path):
            continue
        if rule.requirement is Access.PUBLIC:
            return AccessDecision.ALLOWED
        if principal is None:
            return AccessDecision.UNAUTHENTICATED
        if rule.requirement is Access.AUTHENTICATED or principal.role in rule.requirement:
            return AccessDecision.ALLOWED
        return AccessDecision.FORBIDDEN
    return AccessDecision.ALLOWED
