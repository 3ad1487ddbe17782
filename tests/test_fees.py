"""Tests for funding fee calculation."""

import pytest

from core.exceptions import MarketplaceError
from core.fees import calculate_fees, compute_allocation_total


class TestCalculateFees:
    """Test the platform and processing fee breakdown."""

    def test_fees_on_top_of_amount(self) -> None:
        """Test that fees are added on top so the full amount reaches escrow."""
        fees = calculate_fees(10_000)
        assert fees["amount"] == 10_000
        assert fees["platform_fee"] == 500
        assert fees["processing_fee"] == 290
        assert fees["total"] == 10_790

    def test_rounds_half_up_to_whole_cents(self) -> None:
        """Test rounding of fractional cents."""
        fees = calculate_fees(150)
        # 2.9% of 150 = 4.35 cents
        assert fees["processing_fee"] == 4
        # 5% of 150 = 7.5 cents
        assert fees["platform_fee"] == 8
        assert fees["total"] == 162

    def test_reports_percentages(self) -> None:
        fees = calculate_fees(1)
        assert fees["platform_fee_percent"] == 5
        assert fees["processing_fee_percent"] == 2.9

    @pytest.mark.parametrize("amount", [0, -100, None])
    def test_rejects_non_positive_amounts(self, amount) -> None:
        """Test that zero, negative and missing amounts raise."""
        with pytest.raises(MarketplaceError):
            calculate_fees(amount)


class TestAllocationTotal:
    """Test what a brand must set aside for a full budget."""

    def test_total_required(self) -> None:
        allocation = compute_allocation_total(100_000)
        assert allocation == {
            "target_budget": 100_000,
            "platform_fee": 5_000,
            "processing_fee": 2_900,
            "total_required": 107_900,
        }


class TestFeeEndpoint:
    """Test POST /api/payments/calculate-fees."""

    def test_calculate_fees(self, client) -> None:
        response = client.post("/api/payments/calculate-fees", json={"amount": 10_000})
        assert response.status_code == 200
        assert response.json()["total"] == 10_790

    def test_rejects_zero(self, client) -> None:
        response = client.post("/api/payments/calculate-fees", json={"amount": 0})
        assert response.status_code == 422
