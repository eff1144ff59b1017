"""
inventory/test_admin.py

Administration endpoints: lookup tables, permissions/roles, users.

Run:
    pytest inventory/test_admin.py -v
"""

from inventory.db import fetch_one


class TestLookupTables:
    def test_seeded_item_statuses(self, client, seed):
        response = client.get("/api/lookup/item-statuses", headers=seed.headers(seed.users.guest))
        names = [row["name"] for row in response.json()]
        assert sorted(names) == ["active", "borrowed", "damaged", "lost", "maintenance"]
        assert all(row["color"] for row in response.json())

    def test_crud(self, client, seed):
        headers = seed.headers(seed.users.admin)
        created = client.post("/api/lookup/locations", json={"name": "Lab 2", "description": "2nd floor"}, headers=headers)
        assert created.status_code == 200
        entry_id = created.json()["id"]

        renamed = client.patch(f"/api/lookup/locations/{entry_id}", json={"name": "Lab 3"}, headers=headers)
        assert renamed.json() == {"id": entry_id, "name": "Lab 3", "description": "2nd floor"}

        assert client.delete(f"/api/lookup/locations/{entry_id}", headers=headers).json() == {"success": True}
        assert client.delete(f"/api/lookup/locations/{entry_id}", headers=headers).status_code == 404

    def test_name_only_tables_ignore_extra_fields(self, client, seed):
        response = client.post(
            "/api/lookup/procurement-statuses",
            json={"name": "Ordered", "description": "ignored"},
            headers=seed.headers(seed.users.admin),
        )
        assert set(response.json()) == {"id", "name"}

    def test_duplicate_name(self, client, seed):
        response = client.post("/api/lookup/categories", json={"name": "Electronics"}, headers=seed.headers(seed.users.admin))
        assert response.status_code == 400

    def test_referenced_entry_cannot_be_deleted(self, client, seed):
        seed.make_item()
        response = client.delete(f"/api/lookup/categories/{seed.lookups.category}", headers=seed.headers(seed.users.admin))
        assert response.status_code == 400

    def test_writes_are_admin_only(self, client, seed):
        response = client.post("/api/lookup/categories", json={"name": "Tools"}, headers=seed.headers(seed.users.staff))
        assert response.status_code == 403

    def test_unknown_table(self, client, seed):
        assert client.get("/api/lookup/widgets", headers=seed.headers(seed.users.admin)).status_code == 404


class TestPermissions:
    def test_list_is_open_to_authenticated_users(self, client, seed):
        response = client.get("/api/permissions", headers=seed.headers(seed.users.guest))
        assert "borrow_items" in [p["name"] for p in response.json()]

    def test_create_update_delete(self, client, seed):
        headers = seed.headers(seed.users.admin)
        created = client.post("/api/permissions", json={"name": "export_reports"}, headers=headers).json()

        updated = client.patch(f"/api/permissions/{created['id']}", json={"description": "CSV export"}, headers=headers)
        assert updated.json()["description"] == "CSV export"

        assert client.delete(f"/api/permissions/{created['id']}", headers=headers).status_code == 200
        assert client.delete(f"/api/permissions/{created['id']}", headers=headers).status_code == 404

    def test_manage_permissions_required(self, client, seed):
        response = client.post("/api/permissions", json={"name": "x"}, headers=seed.headers(seed.users.staff))
        assert response.status_code == 403
        assert response.json() == {"error": "Insufficient permissions"}

    def test_assign_grants_capability(self, client, seed):
        headers = seed.headers(seed.users.admin)
        approve = next(
            p["id"] for p in client.get("/api/permissions", headers=headers).json() if p["name"] == "approve_borrowings"
        )
        item_id = seed.make_item()
        borrowing_id = client.post(
            "/api/borrowings",
            json={"item_id": item_id, "expected_return_date": "2030-01-01"},
            headers=seed.headers(seed.users.staff),
        ).json()["id"]
        approve_url = f"/api/borrowings/{borrowing_id}/approve"
        assert client.patch(approve_url, headers=seed.headers(seed.users.other_staff)).status_code == 403

        assigned = client.post("/api/permissions/role", json={"role_id": seed.roles.staff, "permission_id": approve}, headers=headers)
        assert assigned.status_code == 200
        names = [p["name"] for p in client.get(f"/api/permissions/role/{seed.roles.staff}", headers=headers).json()]
        assert names == ["approve_borrowings", "borrow_items"]

        # Role changes apply to existing tokens immediately
        assert client.patch(approve_url, headers=seed.headers(seed.users.other_staff)).status_code == 200

    def test_duplicate_assignment(self, client, conn, seed):
        borrow = fetch_one(conn, "SELECT id FROM permissions WHERE name = 'borrow_items'")["id"]
        response = client.post(
            "/api/permissions/role",
            json={"role_id": seed.roles.staff, "permission_id": borrow},
            headers=seed.headers(seed.users.admin),
        )
        assert response.status_code == 400
        assert response.json() == {"error": "This permission is already assigned to the role"}

    def test_revoke(self, client, conn, seed):
        borrow = fetch_one(conn, "SELECT id FROM permissions WHERE name = 'borrow_items'")["id"]
        headers = seed.headers(seed.users.admin)
        url = f"/api/permissions/role/{seed.roles.staff}/permission/{borrow}"

        assert client.delete(url, headers=headers).status_code == 200
        assert client.delete(url, headers=headers).json() == {"error": "Role-permission mapping not found"}

        item_id = seed.make_item()
        response = client.post(
            "/api/borrowings",
            json={"item_id": item_id, "expected_return_date": "2030-01-01"},
            headers=seed.headers(seed.users.staff),
        )
        assert response.status_code == 403


class TestUsers:
    def test_list_and_create(self, client, seed):
        headers = seed.headers(seed.users.admin)
        created = client.post("/api/users", json={"name": "newbie"}, headers=headers)

        assert created.status_code == 200
        assert created.json()["role"] == "staff"
        assert "newbie" in [u["name"] for u in client.get("/api/users", headers=headers).json()]
        assert client.post("/api/check-user", json={"name": "newbie"}).json()["password_exists"] is False

    def test_duplicate_name(self, client, seed):
        response = client.post("/api/users", json={"name": "staff"}, headers=seed.headers(seed.users.admin))
        assert response.status_code == 400

    def test_delete(self, client, seed):
        headers = seed.headers(seed.users.admin)
        assert client.delete(f"/api/users/{seed.users.guest}", headers=headers).json() == {"success": True}
        assert client.delete(f"/api/users/{seed.users.guest}", headers=headers).status_code == 404

    def test_borrower_cannot_be_deleted(self, client, seed):
        item_id = seed.make_item()
        client.post(
            "/api/borrowings",
            json={"item_id": item_id, "expected_return_date": "2030-01-01"},
            headers=seed.headers(seed.users.staff),
        )

        response = client.delete(f"/api/users/{seed.users.staff}", headers=seed.headers(seed.users.admin))

        assert response.status_code == 400
        assert response.json() == {"error": "User has borrowing records and cannot be deleted"}
        assert client.post("/api/check-user", json={"name": "staff"}).status_code == 200

    def test_user_updates_own_profile(self, client, seed):
        response = client.patch(
            f"/api/users/{seed.users.staff}",
            json={"email": "staff@example.com", "phone_number": "555-0100"},
            headers=seed.headers(seed.users.staff),
        )
        assert response.status_code == 200
        assert response.json()["email"] == "staff@example.com"

    def test_user_cannot_update_someone_else(self, client, seed):
        response = client.patch(
            f"/api/users/{seed.users.other_staff}", json={"email": "x@example.com"}, headers=seed.headers(seed.users.staff)
        )
        assert response.status_code == 403

    def test_only_admin_changes_roles(self, client, seed):
        response = client.patch(
            f"/api/users/{seed.users.staff}", json={"role_id": seed.roles.admin}, headers=seed.headers(seed.users.staff)
        )
        assert response.status_code == 403

        response = client.patch(
            f"/api/users/{seed.users.staff}", json={"role_id": seed.roles.approver}, headers=seed.headers(seed.users.admin)
        )
        assert response.json()["role"] == "approver"

    def test_nothing_to_update(self, client, seed):
        response = client.patch(f"/api/users/{seed.users.staff}", json={}, headers=seed.headers(seed.users.staff))
        assert response.status_code == 400
        assert response.json() == {"error": "No fields to update"}

    def test_onboarding_sets_first_password(self, client, seed):
        response = client.patch(f"/api/users/{seed.users.guest}", json={"password": "first-pass", "from_login": True})

        assert response.status_code == 200
        assert response.json()["redirect"] is True
        assert client.post("/api/login", json={"name": "guest", "password": "first-pass"}).status_code == 200

    def test_onboarding_cannot_overwrite_password(self, client, seed):
        response = client.patch(f"/api/users/{seed.users.staff}", json={"password": "hijack", "from_login": True})
        assert response.status_code == 403
        assert client.post("/api/login", json={"name": "staff", "password": "staff-pass"}).status_code == 200

    def test_password_change_when_signed_in(self, client, seed):
        response = client.patch(
            f"/api/users/{seed.users.staff}", json={"password": "rotated"}, headers=seed.headers(seed.users.staff)
        )
        assert response.json() == {"message": "Password updated"}
        assert client.post("/api/login", json={"name": "staff", "password": "rotated"}).status_code == 200
