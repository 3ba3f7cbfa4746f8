"""
Tests for role permissions, per-user overrides and organization scoping.
"""

import pytest
from fastapi import HTTPException

from portal.models import UserPermissionOverride
from portal.permissions import (
    ALL_PERMISSIONS,
    ROLE_PERMISSIONS,
    ensure_permission,
    get_user_permissions,
    has_all_permissions,
    has_any_permission,
    has_permission,
    set_permission_override,
)
from portal.scoping import accessible_organization_ids, can_access_org, ensure_org_access

# =============================================================================
# Role defaults
# =============================================================================


class TestRoleDefaults:
    """Tests for the default permission set of each role."""

    def test_super_admin_has_everything(self):
        """super_admin carries every defined permission."""
        assert ROLE_PERMISSIONS["super_admin"] == ALL_PERMISSIONS

    def test_client_cannot_manage_invoices(self):
        """Clients can view invoices but never create or record payments."""
        assert "invoices.view" in ROLE_PERMISSIONS["client"]
        assert "invoices.create" not in ROLE_PERMISSIONS["client"]
        assert "invoices.payment" not in ROLE_PERMISSIONS["client"]

    def test_client_can_sign_contracts(self):
        assert "contracts.sign" in ROLE_PERMISSIONS["client"]

    def test_partner_can_view_audit(self):
        assert "audit.view" in ROLE_PERMISSIONS["partner"]
        assert "audit.view" not in ROLE_PERMISSIONS["staff"]


# =============================================================================
# Overrides
# =============================================================================


class TestOverrides:
    """Tests for grants and revocations layered over role defaults."""

    def test_grant_adds_permission(self, db, client_user, super_admin):
        """A granted override adds a permission the role lacks."""
        assert not has_permission(db, client_user, "reports.export")
        set_permission_override(db, client_user, "reports.export", True, super_admin)
        permissions = get_user_permissions(db, client_user)
        assert permissions["reports.export"] == "user_override"
        assert has_permission(db, client_user, "reports.export")

    def test_revoke_removes_role_default(self, db, client_user):
        """A revoked override removes a role default."""
        db.add(UserPermissionOverride(user_id=client_user.id, permission="tickets.create", granted=False))
        db.commit()
        assert "tickets.create" not in get_user_permissions(db, client_user)
        assert not has_permission(db, client_user, "tickets.create")

    def test_unknown_permission_rejected(self, db, client_user, super_admin):
        with pytest.raises(HTTPException) as exc:
            set_permission_override(db, client_user, "tickets.teleport", True, super_admin)
        assert exc.value.status_code == 400

    def test_inactive_user_has_nothing(self, db, client_user):
        client_user.is_active = False
        db.commit()
        assert not has_permission(db, client_user, "tickets.view")

    def test_ensure_permission_raises_403(self, db, client_user):
        with pytest.raises(HTTPException) as exc:
            ensure_permission(db, client_user, "audit.view")
        assert exc.value.status_code == 403


class TestPermissionSets:
    """Tests for checking several permissions at once."""

    def test_any_matches_single_held_permission(self, db, client_user):
        assert has_any_permission(db, client_user, ["audit.view", "contracts.sign"])
        assert not has_any_permission(db, client_user, ["audit.view", "invoices.create"])

    def test_all_requires_every_permission(self, db, client_user):
        assert has_all_permissions(db, client_user, ["tickets.view", "contracts.sign"])
        assert not has_all_permissions(db, client_user, ["tickets.view", "invoices.create"])

    def test_revoked_override_applies_to_sets(self, db, client_user):
        db.add(UserPermissionOverride(user_id=client_user.id, permission="contracts.sign", granted=False))
        db.commit()
        assert not has_any_permission(db, client_user, ["contracts.sign", "audit.view"])
        assert not has_all_permissions(db, client_user, ["tickets.view", "contracts.sign"])

    def test_granted_override_completes_set(self, db, client_user, super_admin):
        set_permission_override(db, client_user, "reports.view", True, super_admin)
        assert has_all_permissions(db, client_user, ["tickets.view", "reports.view"])

    def test_empty_set(self, db, client_user):
        assert not has_any_permission(db, client_user, [])
        assert has_all_permissions(db, client_user, [])

    def test_inactive_super_admin_holds_nothing(self, db, super_admin):
        super_admin.is_active = False
        db.commit()
        assert not has_any_permission(db, super_admin, ["audit.view"])
        assert not has_all_permissions(db, super_admin, ["audit.view"])


# =============================================================================
# Scoping
# =============================================================================


class TestOrganizationScoping:
    """Tests for which organizations each role can reach."""

    def test_super_admin_is_unrestricted(self, db, super_admin):
        assert accessible_organization_ids(db, super_admin) is None

    def test_client_sees_only_own_org(self, db, client_user, client_org, other_org):
        assert accessible_organization_ids(db, client_user) == {client_org.id}
        assert not can_access_org(db, client_user, other_org.id)

    def test_staff_sees_assigned_orgs(self, db, staff, agency_org, client_org, other_org):
        """Staff reach their home organization plus explicit assignments."""
        assert accessible_organization_ids(db, staff) == {agency_org.id, client_org.id}
        assert not can_access_org(db, staff, other_org.id)

    def test_partner_sees_child_orgs(self, db, partner, partner_org, client_org):
        assert accessible_organization_ids(db, partner) == {partner_org.id, client_org.id}

    def test_out_of_scope_is_404(self, db, client_user, other_org):
        """Records outside scope look missing rather than forbidden."""
        with pytest.raises(HTTPException) as exc:
            ensure_org_access(db, client_user, other_org.id)
        assert exc.value.status_code == 404

    def test_missing_org_is_never_accessible(self, db, super_admin):
        assert not can_access_org(db, super_admin, None)
