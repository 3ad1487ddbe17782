"""Tests for the Campaign Manager queue and managed-approval settings."""

from datetime import timedelta

import pytest

from database.models import utcnow
from database.marketplace_models import Notification, ApprovalStatusDB, EscalationReasonDB, ManagedApprovalModeDB
from services.approval_service import ApprovalService

VIDEO_URL = "https://youtu.be/dQw4w9WgXcQ"


@pytest.fixture
def escalated_collab(db, brand, creator, admin, make_campaign, make_collaboration):
    campaign = make_campaign(brand, funded=100_000, title="Holiday Push")
    collab = make_collaboration(campaign, creator)
    service = ApprovalService(db)
    service.submit_content(collab.id, creator, submission_url=VIDEO_URL)
    service.request_escalation(collab.id, brand)
    db.commit()
    return collab


class TestToggle:
    """Test PATCH /api/managed-approvals/campaigns/{id}/toggle."""

    def test_enable_auto_managed(self, client, brand, auth_headers, make_campaign) -> None:
        campaign = make_campaign(brand)
        response = client.patch(
            f"/api/managed-approvals/campaigns/{campaign.id}/toggle",
            headers=auth_headers(brand),
            json={"enabled": True, "mode": "AutoManaged"},
        )
        assert response.status_code == 200
        assert response.json() == {
            "campaign_id": campaign.id,
            "is_managed_approval": True,
            "managed_approval_mode": "AutoManaged",
        }

    def test_disable_resets_mode(self, client, brand, auth_headers, make_campaign) -> None:
        campaign = make_campaign(
            brand, is_managed_approval=True, managed_approval_mode=ManagedApprovalModeDB.AUTO_MANAGED
        )
        response = client.patch(
            f"/api/managed-approvals/campaigns/{campaign.id}/toggle",
            headers=auth_headers(brand),
            json={"enabled": False},
        )
        assert response.json()["managed_approval_mode"] == "Manual"

    def test_only_owner(self, client, make_user, auth_headers, make_campaign, brand) -> None:
        campaign = make_campaign(brand)
        response = client.patch(
            f"/api/managed-approvals/campaigns/{campaign.id}/toggle",
            headers=auth_headers(make_user()),
            json={"enabled": True},
        )
        assert response.status_code == 403


class TestEscalation:
    """Test a brand handing a submission to a Campaign Manager."""

    def test_escalate(self, client, db, brand, admin, creator, auth_headers, make_campaign, make_collaboration) -> None:
        collab = make_collaboration(make_campaign(brand, funded=100_000), creator)
        ApprovalService(db).submit_content(collab.id, creator, submission_url=VIDEO_URL)
        db.commit()

        response = client.post(f"/api/managed-approvals/{collab.id}/escalate", headers=auth_headers(brand))

        assert response.status_code == 200
        assert response.json()["approval_status"] == "CMEscalated"
        assert response.json()["escalated_reason"] == "brand_request"
        queue_notes = db.query(Notification).filter(
            Notification.user_id == admin.id,
            Notification.type == "cm_queue_item"
        ).count()
        assert queue_notes == 1

    def test_escalate_twice(self, client, brand, auth_headers, escalated_collab) -> None:
        response = client.post(f"/api/managed-approvals/{escalated_collab.id}/escalate", headers=auth_headers(brand))
        assert response.status_code == 409

    def test_brand_view(self, client, brand, auth_headers, escalated_collab) -> None:
        response = client.get(f"/api/managed-approvals/brand/{brand.id}", headers=auth_headers(brand))
        assert response.status_code == 200
        assert [item["id"] for item in response.json()] == [escalated_collab.id]


class TestCampaignManagerQueue:
    """Test the admin-only CM endpoints."""

    def test_queue(self, client, admin, auth_headers, escalated_collab) -> None:
        response = client.get("/api/managed-approvals/cm-queue", headers=auth_headers(admin))

        assert response.status_code == 200
        item = response.json()[0]
        assert item["id"] == escalated_collab.id
        assert item["campaign_title"] == "Holiday Push"
        assert item["brand_id"] == escalated_collab.campaign.brand_id
        assert item["hours_in_queue"] >= 0

    def test_queue_is_admin_only(self, client, brand, auth_headers) -> None:
        response = client.get("/api/managed-approvals/cm-queue", headers=auth_headers(brand))
        assert response.status_code == 403

    def test_pickup_then_approve(self, client, admin, auth_headers, escalated_collab) -> None:
        headers = auth_headers(admin)
        pickup = client.post(f"/api/managed-approvals/{escalated_collab.id}/cm-pickup", headers=headers)
        assert pickup.json()["approval_status"] == "CMReview"
        assert pickup.json()["status"] == "Under_Review"

        approved = client.post(
            f"/api/managed-approvals/{escalated_collab.id}/cm-approve",
            headers=headers,
            json={"note": "Meets brief"},
        )
        data = approved.json()
        assert data["status"] == "Approved"
        assert data["approval_status"] == "ApprovedByCM"
        assert data["approved_by"] == admin.id
        assert data["approved_by_role"] == "admin"
        assert data["managed_note"] == "Meets brief"

    def test_pickup_only_escalated(self, client, admin, auth_headers, escalated_collab) -> None:
        url = f"/api/managed-approvals/{escalated_collab.id}/cm-pickup"
        assert client.post(url, headers=auth_headers(admin)).status_code == 200
        assert client.post(url, headers=auth_headers(admin)).status_code == 409

    def test_reject_needs_feedback(self, client, admin, auth_headers, escalated_collab) -> None:
        response = client.post(
            f"/api/managed-approvals/{escalated_collab.id}/cm-reject", headers=auth_headers(admin), json={}
        )
        assert response.status_code == 400

    def test_reject_sends_back_for_changes(self, client, admin, auth_headers, escalated_collab) -> None:
        response = client.post(
            f"/api/managed-approvals/{escalated_collab.id}/cm-reject",
            headers=auth_headers(admin),
            json={"feedback": "Audio is muted"},
        )
        data = response.json()
        assert data["status"] == "Changes_Requested"
        assert data["approval_status"] == "RejectedByCM"
        assert data["feedback_notes"] == "Audio is muted"

    def test_approve_outside_queue(self, client, db, admin, brand, auth_headers, escalated_collab) -> None:
        ApprovalService(db).cm_approve(escalated_collab.id, admin)
        db.commit()
        response = client.post(
            f"/api/managed-approvals/{escalated_collab.id}/cm-approve", headers=auth_headers(admin), json={}
        )
        assert response.status_code == 409

    def test_stats(self, client, db, admin, auth_headers, escalated_collab) -> None:
        escalated_collab.escalated_at = utcnow() - timedelta(hours=2)
        db.commit()
        ApprovalService(db).cm_approve(escalated_collab.id, admin)
        db.commit()

        stats = client.get("/api/managed-approvals/stats", headers=auth_headers(admin)).json()

        assert stats["approved_today"] == 1
        assert stats["pending_escalated"] == 0
        assert stats["total_pending"] == 0
        assert 1.9 < stats["avg_response_time_hours"] < 2.1

    def test_timeout_escalations_land_in_queue(self, client, db, admin, brand, creator, auth_headers, make_campaign, make_collaboration) -> None:
        collab = make_collaboration(make_campaign(brand, funded=100_000), creator)
        ApprovalService(db).submit_content(collab.id, creator, submission_url=VIDEO_URL)
        collab.approval_deadline = utcnow() - timedelta(seconds=1)
        db.commit()
        ApprovalService(db).run_deadline_sweep()
        db.commit()

        queue = client.get("/api/managed-approvals/cm-queue", headers=auth_headers(admin)).json()

        assert queue[0]["escalated_reason"] == EscalationReasonDB.TIMEOUT.value
        assert queue[0]["approval_status"] == ApprovalStatusDB.CM_ESCALATED.value
