"""Tests for organization endpoints."""

import json

from sqlalchemy import select

from conftest import days_ago
from email_platform.api.endpoints import organizations
from email_platform.api.endpoints.organizations import usage_percentage
from email_platform.models import AuditLog, Campaign, Contact, Organization


def _org(db, organization_id):
    return db.get(Organization, organization_id)


class TestGetOrganization:
    """Tests for GET /api/organizations."""

    def test_returns_own_organization_with_counts(self, client, admin, member, db):
        org_id = admin["user"]["organizationId"]
        db.add_all([
            Contact(organization_id=org_id, email="a@example.com"),
            Contact(organization_id=org_id, email="b@example.com"),
            Campaign(organization_id=org_id, name="Launch"),
        ])
        db.commit()

        response = client.get("/api/organizations", headers=admin["headers"])
        assert response.status_code == 200
        data = response.json()

        assert data["id"] == org_id
        assert data["name"] == "Acme Mail"
        assert data["plan"] == "free"
        assert data["user_count"] == 2
        assert data["contact_count"] == 2
        assert data["campaign_count"] == 1

    def test_inactive_users_not_counted(self, client, admin, member):
        client.put(f"/api/users/{member['user']['id']}/deactivate", headers=admin["headers"])

        data = client.get("/api/organizations", headers=admin["headers"]).json()
        assert data["user_count"] == 1

    def test_tenant_isolation(self, client, admin, other_admin):
        mine = client.get("/api/organizations", headers=admin["headers"]).json()
        theirs = client.get("/api/organizations", headers=other_admin["headers"]).json()

        assert mine["id"] != theirs["id"]
        assert theirs["name"] == "Rival Inc"

    def test_requires_authentication(self, client):
        response = client.get("/api/organizations")
        assert response.status_code == 401
        assert response.json() == {"error": "Access token required"}


class TestUpdateOrganization:
    """Tests for PUT /api/organizations."""

    def test_update_writes_audit_entry(self, client, admin, db):
        response = client.put(
            "/api/organizations",
            json={"name": "Acme Marketing", "plan": "professional"},
            headers=admin["headers"],
        )
        assert response.status_code == 200
        assert response.json() == {"message": "Organization updated successfully"}

        org = _org(db, admin["user"]["organizationId"])
        assert org.name == "Acme Marketing"
        assert org.plan == "professional"

        entry = db.scalars(
            select(AuditLog).where(AuditLog.action == "organization_updated")
        ).one()
        assert AuditLog.decode(entry.old_values) == {"name": "Acme Mail", "plan": "free"}
        assert AuditLog.decode(entry.new_values) == {"name": "Acme Marketing", "plan": "professional"}
        assert entry.user_id == admin["user"]["id"]

    def test_plan_is_kept_when_omitted(self, client, admin, db):
        client.put("/api/organizations", json={"name": "Renamed"}, headers=admin["headers"])

        org = _org(db, admin["user"]["organizationId"])
        assert org.name == "Renamed"
        assert org.plan == "free"

    def test_name_is_required(self, client, admin, db):
        response = client.put("/api/organizations", json={"name": "  "}, headers=admin["headers"])
        assert response.status_code == 400
        assert response.json() == {"error": "Organization name is required"}

        assert db.scalars(
            select(AuditLog).where(AuditLog.action == "organization_updated")
        ).first() is None

    def test_failed_audit_write_rolls_back_update(self, client, admin, db, monkeypatch):
        real_record_audit = organizations.record_audit

        def record_unstorable_audit(session, **kwargs):
            # resource_type is NOT NULL, so the commit fails on the audit insert
            real_record_audit(session, **{**kwargs, "resource_type": None})

        monkeypatch.setattr(organizations, "record_audit", record_unstorable_audit)

        response = client.put(
            "/api/organizations",
            json={"name": "Acme Marketing", "plan": "professional"},
            headers=admin["headers"],
        )
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to update organization"}

        org = _org(db, admin["user"]["organizationId"])
        assert org.name == "Acme Mail"
        assert org.plan == "free"
        assert db.scalars(
            select(AuditLog).where(AuditLog.action == "organization_updated")
        ).first() is None

    def test_invalid_plan(self, client, admin):
        response = client.put(
            "/api/organizations",
            json={"name": "Acme", "plan": "platinum"},
            headers=admin["headers"],
        )
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid plan"}

    def test_manager_is_forbidden(self, client, manager):
        response = client.put("/api/organizations", json={"name": "Hijack"}, headers=manager["headers"])
        assert response.status_code == 403
        assert response.json() == {"error": "Insufficient permissions"}


class TestOrganizationSettings:
    """Tests for the settings key/value store."""

    def test_upsert_and_read_back(self, client, admin, db):
        response = client.put(
            "/api/organizations/settings",
            json={"timezone": "UTC", "sender_name": "Acme"},
            headers=admin["headers"],
        )
        assert response.status_code == 200
        assert response.json() == {"message": "Settings updated successfully"}

        client.put(
            "/api/organizations/settings",
            json={"timezone": "Europe/Paris"},
            headers=admin["headers"],
        )

        settings = client.get("/api/organizations/settings", headers=admin["headers"]).json()
        assert settings == {"timezone": "Europe/Paris", "sender_name": "Acme"}

        entries = db.scalars(
            select(AuditLog).where(AuditLog.action == "settings_updated")
        ).all()
        assert len(entries) == 2

    def test_non_string_values_are_stored_as_json(self, client, admin):
        client.put(
            "/api/organizations/settings",
            json={"notifications": True, "branding": {"color": "red"}, "sender": "Acme", "footer": None},
            headers=admin["headers"],
        )

        settings = client.get("/api/organizations/settings", headers=admin["headers"]).json()
        assert settings["notifications"] == "true"
        assert json.loads(settings["branding"]) == {"color": "red"}
        assert settings["sender"] == "Acme"
        assert settings["footer"] is None

    def test_settings_are_per_organization(self, client, admin, other_admin):
        client.put("/api/organizations/settings", json={"timezone": "UTC"}, headers=admin["headers"])

        theirs = client.get("/api/organizations/settings", headers=other_admin["headers"]).json()
        assert theirs == {}

    def test_non_object_body_is_rejected(self, client, admin):
        response = client.put(
            "/api/organizations/settings",
            json=["timezone", "UTC"],
            headers=admin["headers"],
        )
        assert response.status_code == 400
        assert "error" in response.json()

    def test_requires_manage_organization(self, client, member):
        response = client.get("/api/organizations/settings", headers=member["headers"])
        assert response.status_code == 403


class TestUsage:
    """Tests for GET /api/organizations/usage."""

    def test_usage_percentages(self, client, admin, db):
        org = _org(db, admin["user"]["organizationId"])
        org.contact_limit = 100
        org.monthly_email_limit = 10000
        db.add_all(
            [Contact(organization_id=org.id, email=f"c{i}@example.com") for i in range(25)]
            + [Contact(organization_id=org.id, email="gone@example.com", status="unsubscribed")]
        )
        db.add_all([
            Campaign(organization_id=org.id, name="Recent", status="sent", send_count=2500, sent_at=days_ago(10)),
            Campaign(organization_id=org.id, name="Old", status="sent", send_count=9000, sent_at=days_ago(45)),
        ])
        db.commit()

        response = client.get("/api/organizations/usage", headers=admin["headers"])
        assert response.status_code == 200
        data = response.json()

        assert data["contact_limit"] == 100
        assert data["current_contacts"] == 25
        assert data["emails_sent_this_month"] == 2500
        assert data["usage_percentages"] == {"contacts": 25, "emails": 25}

    def test_zero_limit_yields_zero_percent(self, client, admin, db):
        org = _org(db, admin["user"]["organizationId"])
        org.contact_limit = 0
        org.monthly_email_limit = 0
        db.add(Contact(organization_id=org.id, email="solo@example.com"))
        db.add(Campaign(organization_id=org.id, name="Blast", send_count=500, sent_at=days_ago(1)))
        db.commit()

        data = client.get("/api/organizations/usage", headers=admin["headers"]).json()
        assert data["current_contacts"] == 1
        assert data["emails_sent_this_month"] == 500
        assert data["usage_percentages"] == {"contacts": 0, "emails": 0}

    def test_empty_organization(self, client, admin):
        data = client.get("/api/organizations/usage", headers=admin["headers"]).json()
        assert data["current_contacts"] == 0
        assert data["emails_sent_this_month"] == 0
        assert data["usage_percentages"] == {"contacts": 0, "emails": 0}

    def test_usage_percentage_helper(self):
        assert usage_percentage(50, 200) == 25
        assert usage_percentage(10, 0) == 0
        assert usage_percentage(10, None) == 0


class TestAuditLogs:
    """Tests for GET /api/organizations/audit-logs."""

    def _seed(self, db, organization_id, user_id, count):
        for i in range(count):
            db.add(AuditLog(
                organization_id=organization_id,
                user_id=user_id,
                action="contact_created",
                resource_type="contact",
                resource_id=i,
            ))
        db.commit()

    def test_default_pagination(self, client, admin, db):
        self._seed(db, admin["user"]["organizationId"], admin["user"]["id"], 120)

        response = client.get("/api/organizations/audit-logs", headers=admin["headers"])
        assert response.status_code == 200
        data = response.json()

        assert len(data["logs"]) == 50
        assert data["pagination"]["page"] == 1
        assert data["pagination"]["limit"] == 50
        # 120 seeded plus the organization_created entry from registration
        assert data["pagination"]["total"] == 121
        assert data["pagination"]["pages"] == 3

    def test_last_page(self, client, admin, db):
        self._seed(db, admin["user"]["organizationId"], admin["user"]["id"], 120)

        data = client.get(
            "/api/organizations/audit-logs?page=3&limit=50",
            headers=admin["headers"],
        ).json()
        assert len(data["logs"]) == 21

    def test_entries_carry_actor_and_decoded_values(self, client, admin):
        client.put("/api/organizations", json={"name": "Acme 2"}, headers=admin["headers"])

        logs = client.get("/api/organizations/audit-logs", headers=admin["headers"]).json()["logs"]
        newest = logs[0]

        assert newest["action"] == "organization_updated"
        assert newest["new_values"] == {"name": "Acme 2", "plan": "free"}
        assert newest["email"] == "admin@example.com"
        assert newest["first_name"] == "Ada"

    def test_logs_are_scoped_to_organization(self, client, admin, other_admin):
        client.put("/api/organizations", json={"name": "Acme 2"}, headers=admin["headers"])

        logs = client.get("/api/organizations/audit-logs", headers=other_admin["headers"]).json()["logs"]
        assert [log["action"] for log in logs] == ["organization_created"]

    def test_manager_can_view_member_cannot(self, client, manager, member):
        assert client.get("/api/organizations/audit-logs", headers=manager["headers"]).status_code == 200
        assert client.get("/api/organizations/audit-logs", headers=member["headers"]).status_code == 403
