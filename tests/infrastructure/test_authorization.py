"""Tests for the role based authorization gate."""

import pytest

from backoffice.infrastructure.authorization import (
    AdminRole,
    Principal,
    RoleAuthorizationGate,
)


@pytest.fixture
def gate() -> RoleAuthorizationGate:
    return RoleAuthorizationGate()


class TestRoleAuthorizationGate:
    """Tests for capability checks."""

    def test_unauthenticated_denied(self, gate: RoleAuthorizationGate) -> None:
        decision = gate.authorize(None, "products", "read")
        assert not decision.allowed
        assert decision.admin_id is None

    @pytest.mark.parametrize(
        ("role", "resource", "action", "allowed"),
        [
            (AdminRole.SUPER_ADMIN, "products", "delete", True),
            (AdminRole.ADMIN, "products", "delete", False),
            (AdminRole.ADMIN, "inventory", "update", True),
            (AdminRole.MANAGER, "inventory", "create", True),
            (AdminRole.MANAGER, "inventory", "update", False),
            (AdminRole.CONTENT_EDITOR, "categories", "update", True),
            (AdminRole.CONTENT_EDITOR, "categories", "create", False),
            (AdminRole.SUPPORT_AGENT, "inventory", "read", True),
            (AdminRole.SUPPORT_AGENT, "products", "update", False),
        ],
    )
    def test_role_capabilities(
        self,
        gate: RoleAuthorizationGate,
        role: AdminRole,
        resource: str,
        action: str,
        allowed: bool,
    ) -> None:
        decision = gate.authorize(Principal("adm-1", role.value), resource, action)
        assert decision.allowed is allowed
        assert decision.admin_id == "adm-1"

    def test_unknown_role_has_no_capabilities(self, gate: RoleAuthorizationGate) -> None:
        assert gate.capabilities_for("INTERN") == frozenset()
        assert not gate.authorize(Principal("adm-1", "INTERN"), "products", "read").allowed

    def test_custom_mapping(self) -> None:
        """The mapping can be replaced."""
        gate = RoleAuthorizationGate({AdminRole.SUPPORT_AGENT: frozenset({"products:delete"})})
        assert gate.authorize(Principal("adm-2", "SUPPORT_AGENT"), "products", "delete").allowed
