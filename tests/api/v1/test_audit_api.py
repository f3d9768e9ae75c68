"""
Tests for the audit log API (/api/v1/audit).
"""
from datetime import datetime, timedelta, timezone

from inventory_api.models.audit_log import AuditLog
from tests.factories import InventoryItemPayloadFactory

AUDIT_PREFIX = "/api/v1/audit"


async def _create_item_as(client, headers):
    response = await client.post("/api/v1/inventory", json=InventoryItemPayloadFactory(), headers=headers)
    assert response.status_code == 201
    return response.json()


class TestAuditListing:
    async def test_admin_actions_are_listed(self, client, admin_headers):
        item = await _create_item_as(client, admin_headers)

        response = await client.get(AUDIT_PREFIX, headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        entry = body["items"][0]
        assert entry["action"] == "CREATE_INVENTORY_ITEM"
        assert entry["resource_id"] == item["id"]
        assert entry["user_name"] == "Admin User"
        assert entry["changes"]["method"] == "POST"

    async def test_regular_user_actions_are_not_recorded(self, client, user_headers, admin_headers):
        await _create_item_as(client, user_headers)

        response = await client.get(AUDIT_PREFIX, headers=admin_headers)

        assert response.json()["total"] == 0

    async def test_forbidden_for_regular_users(self, client, user_headers):
        response = await client.get(AUDIT_PREFIX, headers=user_headers)

        assert response.status_code == 403
        assert response.json()["code"] == "AUTH_002"

    async def test_filters(self, client, admin_headers, admin_user):
        item = await _create_item_as(client, admin_headers)

        by_user = await client.get(f"{AUDIT_PREFIX}/user/{admin_user.id}", headers=admin_headers)
        by_type = await client.get(f"{AUDIT_PREFIX}/resource-type/InventoryItem", headers=admin_headers)
        by_resource = await client.get(f"{AUDIT_PREFIX}/resource/{item['id']}", headers=admin_headers)
        other_type = await client.get(f"{AUDIT_PREFIX}/resource-type/User", headers=admin_headers)

        assert by_user.json()["total"] == 1
        assert by_type.json()["total"] == 1
        assert by_resource.json()["total"] == 1
        assert other_type.json()["total"] == 0


class TestAuditDateRange:
    async def test_range(self, client, admin_headers):
        await _create_item_as(client, admin_headers)
        now = datetime.now(timezone.utc)

        inside = await client.get(
            f"{AUDIT_PREFIX}/date-range",
            params={"start_date": (now - timedelta(hours=1)).isoformat(), "end_date": (now + timedelta(hours=1)).isoformat()},
            headers=admin_headers,
        )
        before = await client.get(
            f"{AUDIT_PREFIX}/date-range",
            params={"start_date": (now - timedelta(days=3)).isoformat(), "end_date": (now - timedelta(days=2)).isoformat()},
            headers=admin_headers,
        )

        assert inside.json()["total"] == 1
        assert before.json()["total"] == 0

    async def test_inverted_range(self, client, admin_headers):
        response = await client.get(
            f"{AUDIT_PREFIX}/date-range",
            params={"start_date": "2026-02-01T00:00:00", "end_date": "2026-01-01T00:00:00"},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Start date must be before end date"

    async def test_dates_required(self, client, admin_headers):
        response = await client.get(f"{AUDIT_PREFIX}/date-range", headers=admin_headers)
        assert response.status_code == 422


class TestAuditCleanup:
    async def test_prunes_old_entries(self, client, admin_headers, admin_user, test_db):
        test_db.add(
            AuditLog(
                action="UPDATE_USER",
                resource_type="User",
                resource_id=admin_user.id,
                changes={"method": "PUT", "status_code": 200},
                user_id=admin_user.id,
                created_at=datetime.now(timezone.utc) - timedelta(days=200),
            )
        )
        await test_db.commit()

        response = await client.delete(f"{AUDIT_PREFIX}/cleanup", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {"deleted_count": 1, "days": 90}

        remaining = (await client.get(AUDIT_PREFIX, headers=admin_headers)).json()
        assert [e["action"] for e in remaining["items"]] == ["CLEANUP_AUDIT_LOGS"]

    async def test_days_must_be_positive(self, client, admin_headers):
        response = await client.delete(f"{AUDIT_PREFIX}/cleanup?days=0", headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Days must be a positive integer"
