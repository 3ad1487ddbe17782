"""Tests for the brand campaign and escrow endpoints."""

from database.marketplace_models import CampaignStatusDB, CollaborationStatusDB


class TestCampaignEndpoints:
    """Test /api/brands campaign management."""

    def test_create_campaign_starts_as_unfunded_draft(self, client, brand, auth_headers) -> None:
        response = client.post("/api/brands/campaigns", headers=auth_headers(brand), json={
            "title": "Summer Launch",
            "platform": "youtube",
            "deliverables": ["1 YouTube video"],
            "target_budget": 250_000,
        })
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "Draft"
        assert data["escrow_status"] == "Unfunded"
        assert data["remaining_budget"] == 250_000
        assert data["managed_approval_mode"] == "Manual"

    def test_create_campaign_rejects_zero_budget(self, client, brand, auth_headers) -> None:
        response = client.post("/api/brands/campaigns", headers=auth_headers(brand), json={
            "title": "Free Campaign",
            "target_budget": 0,
        })
        assert response.status_code == 422

    def test_list_filters_by_status(self, client, brand, auth_headers, make_campaign) -> None:
        make_campaign(brand, title="Draft one")
        make_campaign(brand, funded=100_000, title="Funded one")

        response = client.get("/api/brands/campaigns", headers=auth_headers(brand), params={"status": "Active"})

        assert response.status_code == 200
        assert [c["title"] for c in response.json()] == ["Funded one"]

    def test_budget_cannot_drop_below_funded(self, client, brand, auth_headers, make_campaign) -> None:
        campaign = make_campaign(brand, target_budget=100_000, funded=60_000)
        response = client.put(
            f"/api/brands/campaigns/{campaign.id}", headers=auth_headers(brand), json={"target_budget": 50_000}
        )
        assert response.status_code == 400

    def test_raising_budget_reopens_funding(self, client, brand, auth_headers, make_campaign) -> None:
        campaign = make_campaign(brand, target_budget=100_000, funded=100_000)
        response = client.put(
            f"/api/brands/campaigns/{campaign.id}", headers=auth_headers(brand), json={"target_budget": 150_000}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "Pending Payment"
        assert response.json()["remaining_budget"] == 50_000

    def test_other_brand_cannot_read_campaign(self, client, brand, make_user, auth_headers, make_campaign) -> None:
        campaign = make_campaign(make_user())
        response = client.get(f"/api/brands/campaigns/{campaign.id}", headers=auth_headers(brand))
        assert response.status_code == 403

    def test_complete_campaign(self, client, db, brand, auth_headers, make_campaign) -> None:
        campaign = make_campaign(brand, funded=100_000)
        response = client.post(f"/api/brands/campaigns/{campaign.id}/complete", headers=auth_headers(brand))
        assert response.status_code == 200
        assert response.json()["refunded"] == 100_000
        db.refresh(campaign)
        assert campaign.status == CampaignStatusDB.COMPLETED

    def test_profile_created_on_first_access(self, client, brand, auth_headers) -> None:
        response = client.get("/api/brands/profile", headers=auth_headers(brand))
        assert response.status_code == 200
        assert response.json()["company_name"] == "Acme Brand"

        updated = client.put("/api/brands/profile", headers=auth_headers(brand), json={"industry": "Beauty"})
        assert updated.json()["industry"] == "Beauty"
        assert updated.json()["company_name"] == "Acme Brand"


class TestVaultEndpoints:
    """Test /api/escrow vault movements."""

    def test_deposit_fund_withdraw(self, client, brand, auth_headers, make_campaign) -> None:
        headers = auth_headers(brand)
        campaign = make_campaign(brand, target_budget=100_000)

        deposit = client.post("/api/escrow/deposit", headers=headers, json={"amount": 80_000})
        assert deposit.status_code == 200
        assert deposit.json()["vault_balance"] == 80_000

        fund = client.post("/api/escrow/fund", headers=headers, json={"campaign_id": campaign.id, "amount": 50_000})
        assert fund.status_code == 200
        assert fund.json()["escrow_balance"] == 50_000
        assert fund.json()["vault_balance"] == 30_000

        withdraw = client.post("/api/escrow/withdraw", headers=headers, json={"amount": 40_000})
        assert withdraw.status_code == 400
        assert "Insufficient" in withdraw.json()["detail"]

    def test_release_is_guarded_per_milestone(self, client, brand, auth_headers, make_campaign) -> None:
        headers = auth_headers(brand)
        campaign = make_campaign(brand, funded=100_000)
        payload = {"campaign_id": campaign.id, "amount": 20_000, "milestone_id": "m1"}

        first = client.post("/api/escrow/release", headers=headers, json=payload)
        second = client.post("/api/escrow/release", headers=headers, json=payload)

        assert first.status_code == 200
        assert first.json()["escrow_balance"] == 80_000
        assert second.status_code == 400

    def test_release_to_paid_collaboration(self, client, brand, creator, auth_headers, make_campaign, make_collaboration) -> None:
        headers = auth_headers(brand)
        campaign = make_campaign(brand, funded=100_000)
        collab = make_collaboration(campaign, creator, status=CollaborationStatusDB.APPROVED)
        assert client.post(f"/api/concierge/release-payout/{collab.id}", headers=headers).status_code == 200

        response = client.post(
            "/api/escrow/release",
            headers=headers,
            json={"campaign_id": campaign.id, "amount": 40_000, "milestone_id": "m1", "collaboration_id": collab.id},
        )

        assert response.status_code == 400
        assert "already paid" in response.json()["detail"]

    def test_refund(self, client, brand, auth_headers, make_campaign) -> None:
        campaign = make_campaign(brand, funded=100_000)
        response = client.post(
            "/api/escrow/refund", headers=auth_headers(brand), json={"campaign_id": campaign.id, "amount": 10_000}
        )
        assert response.status_code == 200
        assert response.json()["escrow_balance"] == 90_000

    def test_creators_have_no_vault(self, client, creator, auth_headers) -> None:
        response = client.get("/api/escrow/overview", headers=auth_headers(creator))
        assert response.status_code == 403


class TestEscrowReporting:
    """Test /api/escrow reporting endpoints."""

    def test_overview_and_summary(self, client, brand, creator, auth_headers, make_campaign, make_collaboration) -> None:
        campaign = make_campaign(brand, funded=100_000)
        make_collaboration(campaign, creator, agreed_price=40_000, status=CollaborationStatusDB.APPROVED)
        headers = auth_headers(brand)

        overview = client.get("/api/escrow/overview", headers=headers).json()
        summary = client.get("/api/escrow/summary", headers=headers).json()

        assert overview["coverage_ratio"] == 2.5
        assert overview["liquidity_state"] == "healthy"
        assert summary["locked"] == 100_000
        assert summary["pending"] == 40_000

    def test_ledger_pagination(self, client, brand, auth_headers, make_campaign) -> None:
        for n in range(3):
            make_campaign(brand, funded=10_000 * (n + 1), title=f"Campaign {n}")

        response = client.get("/api/escrow/transactions", headers=auth_headers(brand), params={"limit": 2})

        assert response.status_code == 200
        data = response.json()
        assert len(data["transactions"]) == 2
        assert data["pagination"] == {"page": 1, "limit": 2, "total": 3, "total_pages": 2}

    def test_ledger_rejects_unknown_sort(self, client, brand, auth_headers) -> None:
        response = client.get("/api/escrow/transactions", headers=auth_headers(brand), params={"sort_by": "name"})
        assert response.status_code == 422

    def test_campaign_rows(self, client, brand, auth_headers, make_campaign) -> None:
        make_campaign(brand, funded=25_000)
        rows = client.get("/api/escrow/campaigns", headers=auth_headers(brand)).json()
        assert rows[0]["funded_amount"] == 25_000
        assert rows[0]["escrow_status"] == "Locked"

    def test_system_status(self, client, brand, auth_headers) -> None:
        data = client.get("/api/escrow/system-status", headers=auth_headers(brand)).json()
        assert data["database"] == "operational"
        assert data["payment_gateway"] == "operational"
        assert data["status"] == "operational"
