"""Tests for creator documents and contract signing."""

import pytest

from database.models import BrandProfile, UserType
from database.marketplace_models import Notification


@pytest.fixture
def collab(db, brand, creator, make_campaign, make_collaboration):
    db.add(BrandProfile(user_id=brand.id, company_name="Acme Inc"))
    db.commit()
    campaign = make_campaign(brand, title="Summer Launch", deliverables=["1 YouTube video"])
    return make_collaboration(
        campaign, creator, agreed_price=40_000,
        milestones=[{"id": "m1", "title": "Upload", "amount": 40_000}],
    )


def _create(client, headers, **fields):
    payload = {"type": "Invoice", "title": "Invoice #1"}
    payload.update(fields)
    return client.post("/api/documents", headers=headers, json=payload)


class TestDocumentRecords:
    """Test document CRUD."""

    def test_create_and_list(self, client, creator, auth_headers) -> None:
        headers = auth_headers(creator)
        created = _create(client, headers, file_url="https://files.test/inv1.pdf")
        assert created.status_code == 201
        assert created.json()["status"] == "Draft"

        listed = client.get("/api/documents", headers=headers, params={"type": "Invoice"})
        assert [d["id"] for d in listed.json()] == [created.json()["id"]]

    def test_tax_form_needs_year(self, client, creator, auth_headers) -> None:
        response = _create(client, auth_headers(creator), type="W9", title="W-9")
        assert response.status_code == 400

    def test_tax_year_listing(self, client, creator, auth_headers) -> None:
        headers = auth_headers(creator)
        _create(client, headers, type="W9", title="W-9 2025", tax_year=2025)
        _create(client, headers, type="W8BEN", title="W-8BEN 2024", tax_year=2024)
        _create(client, headers, type="Other", title="Media kit", tax_year=2025)

        response = client.get("/api/documents/tax/2025", headers=headers)

        assert [d["title"] for d in response.json()] == ["W-9 2025"]

    def test_update_and_delete(self, client, creator, auth_headers) -> None:
        headers = auth_headers(creator)
        document_id = _create(client, headers).json()["id"]

        updated = client.patch(f"/api/documents/{document_id}", headers=headers, json={"title": "Invoice #1 (final)"})
        assert updated.json()["title"] == "Invoice #1 (final)"

        assert client.delete(f"/api/documents/{document_id}", headers=headers).status_code == 204
        assert client.get(f"/api/documents/{document_id}", headers=headers).status_code == 404

    def test_documents_are_private(self, client, creator, make_user, auth_headers) -> None:
        document_id = _create(client, auth_headers(creator)).json()["id"]
        other = make_user(UserType.CREATOR)
        response = client.get(f"/api/documents/{document_id}", headers=auth_headers(other))
        assert response.status_code == 403

    def test_brands_have_no_documents(self, client, brand, auth_headers) -> None:
        assert client.get("/api/documents", headers=auth_headers(brand)).status_code == 403


class TestContracts:
    """Test contract generation and signing."""

    def test_generate_contract(self, client, creator, auth_headers, collab) -> None:
        response = client.post(f"/api/documents/generate-contract/{collab.id}", headers=auth_headers(creator))

        assert response.status_code == 201
        data = response.json()
        assert data["type"] == "Contract"
        assert data["status"] == "Pending_Signature"
        assert data["title"] == "Campaign Contract - Summer Launch"
        assert data["content"]["brand"] == "Acme Inc"
        assert data["content"]["agreed_price"] == 40_000
        assert data["content"]["deliverables"] == ["1 YouTube video"]

    def test_generate_contract_returns_existing(self, client, creator, auth_headers, collab) -> None:
        url = f"/api/documents/generate-contract/{collab.id}"
        first = client.post(url, headers=auth_headers(creator))
        second = client.post(url, headers=auth_headers(creator))

        assert second.status_code == 200
        assert second.json()["id"] == first.json()["id"]

    def test_generate_contract_for_foreign_collaboration(self, client, make_user, auth_headers, collab) -> None:
        other = make_user(UserType.CREATOR)
        response = client.post(f"/api/documents/generate-contract/{collab.id}", headers=auth_headers(other))
        assert response.status_code == 404

    def test_sign_flow(self, client, db, creator, auth_headers, collab) -> None:
        headers = auth_headers(creator)
        document_id = client.post(f"/api/documents/generate-contract/{collab.id}", headers=headers).json()["id"]

        signing = client.post(f"/api/documents/{document_id}/sign", headers=headers)
        assert signing.status_code == 200
        assert signing.json()["signing_url"].endswith(f"/creator/documents/{document_id}/sign")

        signed = client.post(
            f"/api/documents/{document_id}/mark-signed", headers=headers, json={"signed_by_name": "Casey Creator"}
        )
        assert signed.status_code == 200
        assert signed.json()["status"] == "Signed"
        assert signed.json()["signed_at"] is not None

        note = db.query(Notification).filter(Notification.user_id == creator.id).one()
        assert note.type == "document_signed"

        again = client.post(f"/api/documents/{document_id}/sign", headers=headers)
        assert again.status_code == 400
        edit = client.patch(f"/api/documents/{document_id}", headers=headers, json={"title": "Changed"})
        assert edit.status_code == 400

    def test_mark_signed_by_stranger(self, client, brand, creator, auth_headers, collab) -> None:
        document_id = client.post(
            f"/api/documents/generate-contract/{collab.id}", headers=auth_headers(creator)
        ).json()["id"]
        response = client.post(
            f"/api/documents/{document_id}/mark-signed", headers=auth_headers(brand), json={"signed_by_name": "Acme"}
        )
        assert response.status_code == 403

    def test_campaign_documents(self, client, creator, auth_headers, collab) -> None:
        headers = auth_headers(creator)
        client.post(f"/api/documents/generate-contract/{collab.id}", headers=headers)
        response = client.get(f"/api/documents/campaign/{collab.campaign_id}", headers=headers)
        assert len(response.json()) == 1
