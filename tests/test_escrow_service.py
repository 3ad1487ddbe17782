"""Tests for escrow accounting, the vault and the escrow ledger."""

from datetime import timedelta

import pytest

from core.exceptions import EscrowError, InsufficientFundsError, NotFoundError, PermissionDeniedError
from database.models import utcnow
from database.marketplace_models import (
    EscrowLedger, Transaction, Wallet,
    CampaignStatusDB, CampaignEscrowStatusDB, CollaborationStatusDB, CollaborationEscrowStatusDB,
    LedgerEntryTypeDB, TransactionTypeDB,
)
from reconcile_escrow import check_campaign
from services.escrow_service import EscrowService


def _vault(db, user) -> Wallet:
    return db.query(Wallet).filter(Wallet.user_id == user.id).first()


class TestCreditCampaignEscrow:
    """Test crediting escrow from a settled payment."""

    def test_partial_funding_keeps_pending_payment(self, db, brand, make_campaign) -> None:
        campaign = make_campaign(brand, target_budget=100_000, funded=30_000)
        assert campaign.total_funded == 30_000
        assert campaign.escrow_balance == 30_000
        assert campaign.status == CampaignStatusDB.PENDING_PAYMENT
        assert campaign.escrow_status == CampaignEscrowStatusDB.LOCKED

    def test_full_funding_activates_campaign(self, db, brand, make_campaign) -> None:
        campaign = make_campaign(brand, target_budget=100_000, funded=100_000)
        assert campaign.status == CampaignStatusDB.ACTIVE
        assert campaign.remaining_budget == 0
        assert campaign.funding_progress == 100.0

    def test_excess_goes_to_vault(self, db, brand, make_campaign) -> None:
        """Test that funded never exceeds target; the overflow lands in the vault."""
        campaign = make_campaign(brand, target_budget=100_000, funded=90_000)
        credited, excess = EscrowService(db).credit_campaign_escrow(campaign, 25_000, "Late payment")
        db.commit()

        assert (credited, excess) == (10_000, 15_000)
        assert campaign.total_funded == 100_000
        assert campaign.escrow_balance == 100_000
        assert _vault(db, brand).balance == 15_000

        overflow = db.query(Transaction).filter(
            Transaction.user_id == brand.id,
            Transaction.type == TransactionTypeDB.DEPOSIT
        ).one()
        assert overflow.amount == 15_000
        assert overflow.campaign_id == campaign.id
        assert overflow.metadata_json == {"reason": "overfunding"}

    def test_writes_funding_ledger_entry(self, db, brand, make_campaign) -> None:
        campaign = make_campaign(brand, funded=20_000)
        entries = db.query(EscrowLedger).filter(EscrowLedger.campaign_id == campaign.id).all()
        assert len(entries) == 1
        assert entries[0].type == LedgerEntryTypeDB.FUNDING
        assert entries[0].amount == 20_000
        assert check_campaign(db, campaign) == []


class TestVault:
    """Test deposits, withdrawals and funding from the vault."""

    def test_deposit_and_withdraw(self, db, brand) -> None:
        service = EscrowService(db)
        deposit = service.deposit(brand, 50_000, "ACH")
        assert deposit["vault_balance"] == 50_000
        assert deposit["method"] == "ACH"

        withdrawal = service.withdraw(brand, 20_000)
        assert withdrawal["vault_balance"] == 30_000

        types = [t.type for t in db.query(Transaction).filter(Transaction.user_id == brand.id).all()]
        assert sorted(t.value for t in types) == ["Deposit", "Withdrawal"]

    def test_withdraw_more_than_available(self, db, brand) -> None:
        service = EscrowService(db)
        service.deposit(brand, 10_000)
        with pytest.raises(InsufficientFundsError):
            service.withdraw(brand, 10_001)

    @pytest.mark.parametrize("amount", [0, -5])
    def test_rejects_non_positive_amounts(self, db, brand, amount) -> None:
        with pytest.raises(EscrowError):
            EscrowService(db).deposit(brand, amount)

    def test_fund_campaign_from_vault(self, db, brand, make_campaign) -> None:
        campaign = make_campaign(brand, target_budget=100_000)
        service = EscrowService(db)
        service.deposit(brand, 60_000)

        result = service.fund_campaign(brand, campaign.id, 40_000)

        assert result["escrow_balance"] == 40_000
        assert result["vault_balance"] == 20_000
        assert result["campaign_status"] == CampaignStatusDB.PENDING_PAYMENT.value

    def test_fund_campaign_needs_vault_balance(self, db, brand, make_campaign) -> None:
        campaign = make_campaign(brand)
        with pytest.raises(InsufficientFundsError):
            EscrowService(db).fund_campaign(brand, campaign.id, 1_000)

    def test_fund_campaign_cannot_exceed_budget(self, db, brand, make_campaign) -> None:
        campaign = make_campaign(brand, target_budget=100_000, funded=90_000)
        service = EscrowService(db)
        service.deposit(brand, 50_000)
        with pytest.raises(EscrowError, match="exceed the campaign budget"):
            service.fund_campaign(brand, campaign.id, 20_000)

    def test_fund_someone_elses_campaign(self, db, brand, make_user, make_campaign) -> None:
        other_brand = make_user()
        campaign = make_campaign(other_brand)
        with pytest.raises(PermissionDeniedError):
            EscrowService(db).fund_campaign(brand, campaign.id, 1_000)

    def test_unknown_campaign(self, db, brand) -> None:
        with pytest.raises(NotFoundError):
            EscrowService(db).get_owned_campaign("missing", brand)


class TestRelease:
    """Test milestone releases and collaboration payouts."""

    def test_release_milestone_to_creator(self, db, brand, creator, make_campaign, make_collaboration) -> None:
        campaign = make_campaign(brand, funded=100_000)
        collab = make_collaboration(
            campaign, creator,
            milestones=[{"id": "m1", "title": "Draft video", "amount": 15_000}],
        )

        result = EscrowService(db).release_milestone(
            brand, campaign.id, 15_000, milestone_id="m1", collaboration_id=collab.id
        )
        db.commit()

        assert result["escrow_balance"] == 85_000
        assert campaign.total_released == 15_000
        assert campaign.escrow_status == CampaignEscrowStatusDB.PARTIALLY_RELEASED
        assert _vault(db, creator).balance == 15_000
        assert collab.milestones[0]["status"] == "released"
        assert check_campaign(db, campaign) == []

    def test_milestone_released_only_once(self, db, brand, make_campaign) -> None:
        campaign = make_campaign(brand, funded=100_000)
        service = EscrowService(db)
        service.release_milestone(brand, campaign.id, 10_000, milestone_id="m1")

        with pytest.raises(EscrowError, match="already been released"):
            service.release_milestone(brand, campaign.id, 10_000, milestone_id="m1")
        assert campaign.escrow_balance == 90_000

    def test_release_more_than_escrow(self, db, brand, make_campaign) -> None:
        campaign = make_campaign(brand, funded=5_000)
        with pytest.raises(InsufficientFundsError):
            EscrowService(db).release_milestone(brand, campaign.id, 6_000)

    def test_payout_approved_collaboration(self, db, brand, creator, make_campaign, make_collaboration) -> None:
        campaign = make_campaign(brand, funded=40_000)
        collab = make_collaboration(campaign, creator, status=CollaborationStatusDB.APPROVED)

        transaction = EscrowService(db).release_collaboration_payout(collab)
        db.commit()

        assert transaction.type == TransactionTypeDB.PAYMENT
        assert transaction.user_id == creator.id
        assert collab.status == CollaborationStatusDB.PAID
        assert collab.payout_released is True
        assert collab.escrow_status == CollaborationEscrowStatusDB.RELEASED
        assert campaign.escrow_balance == 0
        assert campaign.escrow_status == CampaignEscrowStatusDB.RELEASED

    def test_payout_requires_approval(self, db, brand, creator, make_campaign, make_collaboration) -> None:
        campaign = make_campaign(brand, funded=40_000)
        collab = make_collaboration(campaign, creator, status=CollaborationStatusDB.PENDING_REVIEW)
        with pytest.raises(EscrowError, match="approved"):
            EscrowService(db).release_collaboration_payout(collab)

    def test_payout_never_twice(self, db, brand, creator, make_campaign, make_collaboration) -> None:
        campaign = make_campaign(brand, funded=100_000)
        collab = make_collaboration(campaign, creator, status=CollaborationStatusDB.APPROVED)
        service = EscrowService(db)
        service.release_collaboration_payout(collab)

        with pytest.raises(EscrowError, match="already released"):
            service.release_collaboration_payout(collab)
        assert campaign.escrow_balance == 60_000

    def test_no_milestone_release_after_payout(self, db, brand, creator, make_campaign, make_collaboration) -> None:
        campaign = make_campaign(brand, funded=100_000)
        collab = make_collaboration(campaign, creator, status=CollaborationStatusDB.APPROVED)
        service = EscrowService(db)
        service.release_collaboration_payout(collab)
        db.commit()

        with pytest.raises(EscrowError, match="already paid"):
            service.release_milestone(brand, campaign.id, 40_000, milestone_id="m1", collaboration_id=collab.id)
        assert _vault(db, creator).balance == 40_000
        assert campaign.escrow_balance == 60_000

    @pytest.mark.parametrize("status", [
        CollaborationStatusDB.REJECTED,
        CollaborationStatusDB.APPLIED,
    ])
    def test_no_milestone_release_to_closed_collaboration(self, db, brand, creator, make_campaign, make_collaboration, status) -> None:
        campaign = make_campaign(brand, funded=100_000)
        collab = make_collaboration(campaign, creator, status=status)

        with pytest.raises(EscrowError):
            EscrowService(db).release_milestone(brand, campaign.id, 10_000, milestone_id="m1", collaboration_id=collab.id)
        assert _vault(db, creator) is None
        assert campaign.escrow_balance == 100_000

    def test_milestones_capped_at_agreed_price(self, db, brand, creator, make_campaign, make_collaboration) -> None:
        campaign = make_campaign(brand, funded=100_000)
        collab = make_collaboration(campaign, creator, agreed_price=40_000)
        service = EscrowService(db)
        service.release_milestone(brand, campaign.id, 30_000, milestone_id="m1", collaboration_id=collab.id)

        with pytest.raises(EscrowError, match="exceeds the unpaid agreed price"):
            service.release_milestone(brand, campaign.id, 15_000, milestone_id="m2", collaboration_id=collab.id)
        assert _vault(db, creator).balance == 30_000

    def test_milestones_covering_price_settle_collaboration(self, db, brand, creator, make_campaign, make_collaboration) -> None:
        campaign = make_campaign(brand, funded=100_000)
        collab = make_collaboration(campaign, creator, agreed_price=40_000, status=CollaborationStatusDB.APPROVED)
        service = EscrowService(db)
        service.release_milestone(brand, campaign.id, 15_000, milestone_id="m1", collaboration_id=collab.id)
        service.release_milestone(brand, campaign.id, 25_000, milestone_id="m2", collaboration_id=collab.id)
        db.commit()

        assert collab.payout_released is True
        assert collab.status == CollaborationStatusDB.PAID
        with pytest.raises(EscrowError):
            service.release_collaboration_payout(collab)
        assert _vault(db, creator).balance == 40_000

    def test_payout_covers_only_unreleased_remainder(self, db, brand, creator, make_campaign, make_collaboration) -> None:
        campaign = make_campaign(brand, funded=100_000)
        collab = make_collaboration(campaign, creator, agreed_price=40_000, status=CollaborationStatusDB.APPROVED)
        service = EscrowService(db)
        service.release_milestone(brand, campaign.id, 10_000, milestone_id="m1", collaboration_id=collab.id)

        transaction = service.release_collaboration_payout(collab)
        db.commit()

        assert transaction.amount == 30_000
        assert _vault(db, creator).balance == 40_000
        assert campaign.escrow_balance == 60_000
        assert check_campaign(db, campaign) == []


class TestRefund:
    """Test returning unreserved escrow to the vault."""

    def test_refund_only_unreserved(self, db, brand, creator, make_campaign, make_collaboration) -> None:
        campaign = make_campaign(brand, funded=100_000)
        make_collaboration(campaign, creator, agreed_price=40_000)
        service = EscrowService(db)

        assert service.reserved_amount(campaign) == 40_000
        with pytest.raises(EscrowError, match="unreserved"):
            service.refund_campaign(brand, campaign.id, 70_000)

        result = service.refund_campaign(brand, campaign.id)
        db.commit()
        assert result["refunded"] == 60_000
        assert campaign.escrow_balance == 40_000
        assert campaign.total_refunded == 60_000
        assert _vault(db, brand).balance == 60_000
        assert check_campaign(db, campaign) == []

    def test_rejected_collaborations_reserve_nothing(self, db, brand, creator, make_campaign, make_collaboration) -> None:
        campaign = make_campaign(brand, funded=100_000)
        make_collaboration(campaign, creator, status=CollaborationStatusDB.REJECTED)
        assert EscrowService(db).reserved_amount(campaign) == 0

    def test_rejected_collaboration_refund(self, db, brand, creator, make_campaign, make_collaboration) -> None:
        campaign = make_campaign(brand, funded=100_000)
        collab = make_collaboration(campaign, creator, agreed_price=40_000)

        EscrowService(db).refund_collaboration(collab)
        db.commit()

        assert collab.escrow_status == CollaborationEscrowStatusDB.REFUNDED
        assert campaign.escrow_balance == 60_000
        assert _vault(db, brand).balance == 40_000

    def test_complete_campaign_refunds_remainder(self, db, brand, make_campaign) -> None:
        campaign = make_campaign(brand, funded=100_000)
        service = EscrowService(db)
        service.release_milestone(brand, campaign.id, 30_000, milestone_id="m1")

        result = service.complete_campaign(brand, campaign.id)
        db.commit()

        assert result["refunded"] == 70_000
        assert campaign.status == CampaignStatusDB.COMPLETED
        assert campaign.escrow_balance == 0
        assert campaign.completed_at is not None
        with pytest.raises(EscrowError):
            service.complete_campaign(brand, campaign.id)


class TestReporting:
    """Test the vault overview and ledger."""

    def test_overview_coverage(self, db, brand, creator, make_campaign, make_collaboration) -> None:
        campaign = make_campaign(brand, funded=100_000)
        make_collaboration(campaign, creator, agreed_price=40_000, status=CollaborationStatusDB.APPROVED)

        overview = EscrowService(db).get_overview(brand)

        assert overview["allocated_funds"] == 100_000
        assert overview["pending_releases"] == 40_000
        assert overview["coverage_ratio"] == 2.5
        assert overview["liquidity_state"] == "healthy"
        assert len(overview["history"]["dates"]) == 7
        assert overview["history"]["funded"][-1] == 100_000

    def test_overview_watch_and_risk(self, db, brand, make_user, make_campaign, make_collaboration) -> None:
        campaign = make_campaign(brand, funded=50_000)
        make_collaboration(campaign, make_user(), agreed_price=40_000, status=CollaborationStatusDB.PENDING_REVIEW)
        assert EscrowService(db).get_overview(brand)["liquidity_state"] == "watch"

        make_collaboration(campaign, make_user(), agreed_price=40_000, status=CollaborationStatusDB.PENDING_REVIEW)
        overview = EscrowService(db).get_overview(brand)
        assert overview["coverage_ratio"] == 0.62
        assert overview["liquidity_state"] == "risk"

    def test_overview_with_nothing_pending(self, db, brand, make_campaign) -> None:
        make_campaign(brand, funded=10_000)
        overview = EscrowService(db).get_overview(brand)
        assert overview["coverage_ratio"] == 99
        assert overview["liquidity_explanation"] == "No upcoming releases scheduled."

    def test_active_work_is_not_pending(self, db, brand, creator, make_campaign, make_collaboration) -> None:
        """Test that accepted work with nothing submitted does not count toward pending releases."""
        campaign = make_campaign(brand, funded=10_000)
        make_collaboration(campaign, creator, agreed_price=40_000)
        make_collaboration(campaign, creator, agreed_price=5_000, status=CollaborationStatusDB.CHANGES_REQUESTED)

        overview = EscrowService(db).get_overview(brand)

        assert overview["pending_releases"] == 0
        assert overview["liquidity_state"] == "healthy"

    def test_ledger_running_balance(self, db, brand, make_campaign) -> None:
        campaign = make_campaign(brand, funded=100_000)
        funding = db.query(EscrowLedger).filter(EscrowLedger.campaign_id == campaign.id).one()
        funding.created_at = utcnow() - timedelta(hours=1)
        db.commit()
        EscrowService(db).refund_campaign(brand, campaign.id, 25_000)
        db.commit()

        ledger = EscrowService(db).get_ledger(brand)

        assert ledger["pagination"]["total"] == 2
        newest, oldest = ledger["transactions"]
        assert newest["type"] == "Refund"
        assert newest["running_balance"] == 75_000
        assert oldest["running_balance"] == 100_000

    def test_ledger_filters(self, db, brand, make_campaign) -> None:
        make_campaign(brand, funded=10_000, title="Winter Drop")
        make_campaign(brand, funded=20_000, title="Spring Sale")
        service = EscrowService(db)

        assert service.get_ledger(brand, search="Winter")["pagination"]["total"] == 1
        assert service.get_ledger(brand, entry_type="Refund")["pagination"]["total"] == 0
        by_amount = service.get_ledger(brand, sort_by="amount", sort_order="asc")["transactions"]
        assert [t["amount"] for t in by_amount] == [10_000, 20_000]
        with pytest.raises(EscrowError):
            service.get_ledger(brand, entry_type="Bogus")

    def test_campaign_rows(self, db, brand, creator, make_campaign, make_collaboration) -> None:
        campaign = make_campaign(brand, funded=50_000)
        make_collaboration(
            campaign, creator,
            milestones=[{"id": "m1", "title": "Teaser", "amount": 5_000}, {"id": "m2", "title": "Main", "amount": 35_000}],
        )
        EscrowService(db).release_milestone(brand, campaign.id, 5_000, milestone_id="m1")
        db.commit()

        row = EscrowService(db).get_campaigns(brand)[0]

        assert row["funded_amount"] == 50_000
        assert row["released_amount"] == 5_000
        assert [m["status"] for m in row["milestones"]] == ["Released", "Pending"]
        assert row["upcoming_release_amount"] == 35_000
        assert row["allocation_breakdown"]["total_required"] == 107_900
