"""Authorization gate for admin operations.

Authentication happens upstream; this module only answers "may this
admin perform this action on this resource", using a static role to
capability mapping.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

import structlog

logger = structlog.get_logger()


class AdminRole(str, Enum):
    """Back office roles."""

    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    CONTENT_EDITOR = "CONTENT_EDITOR"
    SUPPORT_AGENT = "SUPPORT_AGENT"


def _crud(resource: str, *actions: str) -> frozenset[str]:
    return frozenset(f"{resource}:{action}" for action in actions)


_ALL = ("create", "read", "update", "delete")

# Every role can see the dashboard
_COMMON = frozenset({"dashboard:read"})

ROLE_CAPABILITIES: dict[AdminRole, frozenset[str]] = {
    AdminRole.SUPER_ADMIN: _COMMON
    | _crud("admins", *_ALL)
    | _crud("users", *_ALL)
    | _crud("products", *_ALL)
    | _crud("orders", *_ALL)
    | _crud("categories", *_ALL)
    | _crud("reviews", *_ALL)
    | _crud("settings", "read", "update")
    | _crud("inventory", *_ALL)
    | _crud("coupons", *_ALL),
    AdminRole.ADMIN: _COMMON
    | _crud("users", "read", "update")
    | _crud("products", "create", "read", "update")
    | _crud("orders", "read", "update")
    | _crud("categories", "create", "read", "update")
    | _crud("reviews", "read", "update")
    | _crud("inventory", *_ALL)
    | _crud("coupons", "create", "read", "update"),
    AdminRole.MANAGER: _COMMON
    | _crud("users", "read")
    | _crud("products", "read", "update")
    | _crud("orders", "read", "update")
    | _crud("categories", "read")
    | _crud("reviews", "read", "update")
    | _crud("inventory", "create", "read")
    | _crud("coupons", "read"),
    AdminRole.CONTENT_EDITOR: _COMMON
    | _crud("products", "read", "update")
    | _crud("categories", "read", "update"),
    AdminRole.SUPPORT_AGENT: _COMMON
    | _crud("users", "read")
    | _crud("orders", "read")
    | _crud("products", "read")
    | _crud("reviews", "read")
    | _crud("inventory", "read"),
}


@dataclass(frozen=True)
class Principal:
    """Authenticated admin as asserted by the upstream auth layer."""

    admin_id: str
    role: str


@dataclass(frozen=True)
class AuthorizationDecision:
    """Outcome of an authorization check.

    Attributes:
        allowed: Whether the action may proceed.
        admin_id: Acting admin, recorded in audit entries.
    """

    allowed: bool
    admin_id: str | None = None


class AuthorizationGate(Protocol):
    """Decides whether a principal may act on a resource."""

    def authorize(self, principal: Principal | None, resource: str, action: str) -> AuthorizationDecision:
        ...


class RoleAuthorizationGate:
    """Gate backed by a role to capability mapping.

    Example usage:
        gate = RoleAuthorizationGate()
        decision = gate.authorize(Principal("adm-1", "MANAGER"), "inventory", "create")
        assert decision.allowed
    """

    def __init__(self, capabilities: dict[AdminRole, frozenset[str]] | None = None) -> None:
        self.capabilities = capabilities or ROLE_CAPABILITIES

    def capabilities_for(self, role: str) -> frozenset[str]:
        """Capabilities of a role; unknown roles have none."""
        try:
            return self.capabilities.get(AdminRole(role), frozenset())
        except ValueError:
            return frozenset()

    def authorize(self, principal: Principal | None, resource: str, action: str) -> AuthorizationDecision:
        """Check a ``resource:action`` capability.

        Args:
            principal: Acting admin, None when unauthenticated.
            resource: Resource name (e.g., "products").
            action: Action name (create, read, update, delete).

        Returns:
            Decision carrying the acting admin id.
        """
        if principal is None:
            return AuthorizationDecision(allowed=False)

        allowed = f"{resource}:{action}" in self.capabilities_for(principal.role)
        if not allowed:
            logger.warning(
                "Authorization denied",
                admin_id=principal.admin_id,
                role=principal.role,
                resource=resource,
                action=action,
            )
        return AuthorizationDecision(allowed=allowed, admin_id=principal.admin_id)


# Global gate instance
_authorization_gate: AuthorizationGate | None = None


def get_authorization_gate() -> AuthorizationGate:
    """Get the authorization gate singleton.

    Returns:
        AuthorizationGate instance.
    """
    global _authorization_gate
    if _authorization_gate is None:
        _authorization_gate = RoleAuthorizationGate()
    return _authorization_gate
