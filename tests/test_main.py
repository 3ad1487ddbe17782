"""Tests for main application."""


def test_root(client) -> None:
    """Test root endpoint."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Reachstakes API"
    assert "docs" in data


def test_health(client) -> None:
    """Test health endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_domain_errors_use_detail_body(client, brand, auth_headers) -> None:
    """Test that service errors come back as {"detail": ...} with their status code."""
    response = client.get("/api/payments/escrow/does-not-exist", headers=auth_headers(brand))
    assert response.status_code == 404
    assert response.json() == {"detail": "Campaign not found"}
