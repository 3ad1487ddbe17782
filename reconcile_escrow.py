"""Compare every campaign's escrow columns against its ledger rows.

Usage: python reconcile_escrow.py [--campaign-id ID]
Exits with status 1 when any campaign is out of balance.
"""
import argparse
import sys
from sqlalchemy import func
from dotenv import load_dotenv

from database.config import get_db_context
from database.marketplace_models import Campaign, EscrowLedger, LedgerEntryTypeDB, LedgerEntryStatusDB

load_dotenv()


def ledger_totals(db, campaign_id):
    rows = db.query(EscrowLedger.type, func.coalesce(func.sum(EscrowLedger.amount), 0)).filter(
        EscrowLedger.campaign_id == campaign_id,
        EscrowLedger.status == LedgerEntryStatusDB.COMPLETED
    ).group_by(EscrowLedger.type).all()
    totals = {entry_type: int(amount) for entry_type, amount in rows}
    return {
        "funded": totals.get(LedgerEntryTypeDB.FUNDING, 0) + totals.get(LedgerEntryTypeDB.ADJUSTMENT, 0),
        "released": totals.get(LedgerEntryTypeDB.RELEASE, 0),
        "refunded": totals.get(LedgerEntryTypeDB.REFUND, 0),
    }


def check_campaign(db, campaign):
    totals = ledger_totals(db, campaign.id)
    expected_balance = totals["funded"] - totals["released"] - totals["refunded"]
    problems = []

    if (campaign.escrow_balance or 0) != expected_balance:
        problems.append(f"escrow_balance {campaign.escrow_balance} != ledger {expected_balance}")
    if (campaign.total_funded or 0) != totals["funded"]:
        problems.append(f"total_funded {campaign.total_funded} != ledger {totals['funded']}")
    if (campaign.total_released or 0) != totals["released"]:
        problems.append(f"total_released {campaign.total_released} != ledger {totals['released']}")
    if (campaign.total_refunded or 0) != totals["refunded"]:
        problems.append(f"total_refunded {campaign.total_refunded} != ledger {totals['refunded']}")
    if (campaign.total_funded or 0) > (campaign.target_budget or 0):
        problems.append(f"total_funded {campaign.total_funded} exceeds target {campaign.target_budget}")
    if (campaign.escrow_balance or 0) < 0:
        problems.append("escrow_balance is negative")
    return problems


def reconcile(campaign_id=None):
    with get_db_context() as db:
        query = db.query(Campaign)
        if campaign_id:
            query = query.filter(Campaign.id == campaign_id)

        failures = 0
        for campaign in query.all():
            problems = check_campaign(db, campaign)
            if problems:
                failures += 1
                print(f"❌ {campaign.id} ({campaign.title})")
                for problem in problems:
                    print(f"   - {problem}")
            else:
                print(f"✅ {campaign.id} ({campaign.title}) balanced at {campaign.escrow_balance}")
        return failures


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Reconcile campaign escrow against the ledger")
    parser.add_argument("--campaign-id", help="Only check this campaign")
    args = parser.parse_args()
    sys.exit(1 if reconcile(args.campaign_id) else 0)
