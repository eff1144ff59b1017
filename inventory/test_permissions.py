"""
inventory/test_permissions.py

Permission resolver and guard behaviour.

Tests:
1. Role -> permission membership (single, any, all)
2. Fail closed: unknown user, no role, empty id, broken connection
3. Guards on routes return 403 with the error body

Run:
    pytest inventory/test_permissions.py -v
"""

from inventory.models import Identity
from inventory.permissions import (
    Capability,
    get_user_permissions,
    has_all_permissions,
    has_any_permission,
    has_permission,
    is_admin,
)


class TestHasPermission:
    """Membership checks against the seeded roles."""

    def test_staff_can_borrow(self, conn, seed):
        assert has_permission(conn, Identity(user_id=seed.users.staff), Capability.BORROW_ITEMS)

    def test_staff_cannot_approve(self, conn, seed):
        assert not has_permission(conn, Identity(user_id=seed.users.staff), Capability.APPROVE_BORROWINGS)

    def test_admin_holds_everything(self, conn, seed):
        admin = Identity(user_id=seed.users.admin)
        assert is_admin(conn, admin)
        assert get_user_permissions(conn, seed.users.admin) == {
            "borrow_items",
            "approve_borrowings",
            "manage_borrowings",
            "view_all_borrowings",
            "manage_roles",
            "manage_permissions",
            "admin_access",
        }

    def test_role_name_in_token_is_ignored(self, conn, seed):
        """Only the stored role counts, not whatever the token claims."""
        assert not is_admin(conn, Identity(user_id=seed.users.staff, role="admin"))

    def test_any_and_all(self, conn, seed):
        approver = Identity(user_id=seed.users.approver)
        assert has_any_permission(conn, approver, [Capability.MANAGE_ROLES, Capability.APPROVE_BORROWINGS])
        assert not has_any_permission(conn, approver, [Capability.MANAGE_ROLES, Capability.ADMIN_ACCESS])
        assert has_all_permissions(conn, approver, [Capability.BORROW_ITEMS, Capability.APPROVE_BORROWINGS])
        assert not has_all_permissions(conn, approver, [Capability.BORROW_ITEMS, Capability.ADMIN_ACCESS])

    def test_empty_lists(self, conn, seed):
        guest = Identity(user_id=seed.users.guest)
        assert not has_any_permission(conn, guest, [])
        assert has_all_permissions(conn, guest, [])


class TestFailClosed:
    """Anything that cannot be resolved answers False."""

    def test_unknown_user(self, conn, seed):
        assert not has_permission(conn, Identity(user_id="does-not-exist"), Capability.BORROW_ITEMS)

    def test_user_without_role(self, conn, seed):
        assert not has_permission(conn, Identity(user_id=seed.users.no_role), Capability.BORROW_ITEMS)
        assert get_user_permissions(conn, seed.users.no_role) == set()

    def test_empty_user_id(self, conn, seed):
        assert not has_permission(conn, Identity(user_id=""), Capability.BORROW_ITEMS)
        assert get_user_permissions(conn, "") == set()

    def test_database_error_denies(self, app, seed):
        broken = app.state.db.connect()
        broken.close()
        assert not has_permission(broken, Identity(user_id=seed.users.admin), Capability.ADMIN_ACCESS)
        assert get_user_permissions(broken, seed.users.admin) == set()


class TestGuards:
    """require_permission / require_admin on real routes."""

    def test_admin_route_forbidden_for_staff(self, client, seed):
        response = client.get("/api/users", headers=seed.headers(seed.users.staff))
        assert response.status_code == 403
        assert response.json() == {"error": "Admin only"}

    def test_admin_route_allowed_for_admin(self, client, seed):
        response = client.get("/api/users", headers=seed.headers(seed.users.admin))
        assert response.status_code == 200

    def test_missing_token_is_401(self, client, seed):
        response = client.get("/api/users")
        assert response.status_code == 401
        assert response.json() == {"message": "No JWT token"}

    def test_garbage_token_is_401(self, client, seed):
        response = client.get("/api/users", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json() == {"message": "Invalid JWT"}
