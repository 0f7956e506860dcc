"""Tests for the HTTP API."""

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from wallet.api import create_app
from wallet.storage import RecordStore

ADMIN = {"X-User-Id": "user-1"}
ARTIST = {"X-User-Id": "user-2"}


@pytest.fixture
def client():
    """Create test client over a fresh seeded in-memory store."""
    return TestClient(create_app(RecordStore()))


def money(value) -> Decimal:
    return Decimal(str(value))


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestWalletRoutes:
    """Tests for the artist-facing wallet endpoints."""

    def test_get_wallet(self, client):
        response = client.get("/users/user-2/wallet", headers=ARTIST)

        assert response.status_code == 200
        data = response.json()
        assert money(data["total_earnings"]) == Decimal("1000")
        assert money(data["available_balance"]) == Decimal("1000")
        assert data["transactions"] == []

    def test_caller_header_required(self, client):
        assert client.get("/users/user-2/wallet").status_code == 422

    def test_unknown_caller(self, client):
        assert client.get("/users/user-2/wallet", headers={"X-User-Id": "ghost"}).status_code == 401

    def test_other_users_wallet_is_private(self, client):
        client.post("/users", json={"name": "Other", "email": "other@example.com"})
        other_id = client.get("/admin/users", headers=ADMIN).json()[-1]["id"]

        response = client.get("/users/user-2/wallet", headers={"X-User-Id": other_id})

        assert response.status_code == 403

    def test_admin_can_view_any_wallet(self, client):
        assert client.get("/users/user-2/wallet", headers=ADMIN).status_code == 200

    def test_request_withdrawal(self, client):
        response = client.post(
            "/users/user-2/withdrawals",
            json={"amount": 600, "upi_id": "melody@upi", "upi_name": "Melody Maker"},
            headers=ARTIST,
        )

        assert response.status_code == 201
        assert response.json()["success"] is True
        wallet = client.get("/users/user-2/wallet", headers=ARTIST).json()
        assert money(wallet["available_balance"]) == Decimal("400")
        assert wallet["transactions"][0]["type"] == "withdrawal"
        assert wallet["transactions"][0]["status"] == "Pending"

    @pytest.mark.parametrize("body, status_code, error_code", [
        ({"amount": 499, "upi_id": "melody@upi", "upi_name": "Melody Maker"}, 400, "BelowMinimum"),
        ({"amount": "1000.01", "upi_id": "melody@upi", "upi_name": "Melody Maker"}, 400, "InsufficientBalance"),
        ({"amount": "abc", "upi_id": "melody@upi", "upi_name": "Melody Maker"}, 422, "ValidationError"),
        ({"amount": 600, "upi_name": "Melody Maker"}, 422, "ValidationError"),
    ])
    def test_rejected_withdrawals(self, client, body, status_code, error_code):
        response = client.post("/users/user-2/withdrawals", json=body, headers=ARTIST)

        assert response.status_code == status_code
        data = response.json()
        assert data["success"] is False
        assert data["error_code"] == error_code

    def test_only_owner_requests_withdrawal(self, client):
        response = client.post(
            "/users/user-2/withdrawals",
            json={"amount": 600, "upi_id": "melody@upi", "upi_name": "Melody Maker"},
            headers=ADMIN,
        )

        assert response.status_code == 403


class TestAdminRoutes:
    """Tests for admin wallet operations."""

    def _request(self, client) -> str:
        response = client.post(
            "/users/user-2/withdrawals",
            json={"amount": 1000, "upi_id": "melody@upi", "upi_name": "Melody Maker"},
            headers=ARTIST,
        )
        return response.json()["record_id"]

    def test_withdrawal_lifecycle(self, client):
        withdrawal_id = self._request(client)

        listed = client.get("/admin/withdrawals", headers=ADMIN).json()
        assert [w["id"] for w in listed] == [withdrawal_id]

        response = client.post(
            f"/admin/withdrawals/{withdrawal_id}/status", json={"status": "Completed"}, headers=ADMIN,
        )
        assert response.status_code == 200

        again = client.post(
            f"/admin/withdrawals/{withdrawal_id}/status", json={"status": "Failed"}, headers=ADMIN,
        )
        assert again.status_code == 409

        response = client.post("/admin/users/user-2/credits", json={"amount": 200, "note": "bonus"}, headers=ADMIN)
        assert response.status_code == 201

        wallet = client.get("/users/user-2/wallet", headers=ARTIST).json()
        assert money(wallet["total_withdrawn"]) == Decimal("1000")
        assert money(wallet["total_earnings"]) == Decimal("1200")
        assert money(wallet["available_balance"]) == Decimal("200")
        credit = next(t for t in wallet["transactions"] if t["type"] == "credit")
        assert credit["admin_name"] == "Admin User"

    def test_admin_routes_reject_artists(self, client):
        assert client.get("/admin/withdrawals", headers=ARTIST).status_code == 403
        assert client.post("/admin/users/user-2/credits", json={"amount": 5}, headers=ARTIST).status_code == 403

    def test_unknown_withdrawal(self, client):
        response = client.post("/admin/withdrawals/wd-x/status", json={"status": "Completed"}, headers=ADMIN)

        assert response.status_code == 404

    @pytest.mark.parametrize("method, url, body, field", [
        ("post", "/admin/users/user-2/credits", {"amount": "lots"}, "amount"),
        ("post", "/admin/users/user-2/credits", {}, "amount"),
        ("put", "/admin/users/user-2/payout-rate", {"rate": "half"}, "rate"),
        ("post", "/admin/users/user-2/subscription", {"months": "many"}, "months"),
        ("put", "/admin/songs/1/earnings", {"earnings": "plenty"}, "earnings"),
    ])
    def test_malformed_amounts_get_action_results(self, client, method, url, body, field):
        """Bad numbers come back in the usual result shape, not as raw 422 details."""
        response = client.request(method, url, json=body, headers=ADMIN)

        assert response.status_code == 422
        data = response.json()
        assert data["success"] is False
        assert data["error_code"] == "ValidationError"
        assert data["field"] == field

    def test_financials_need_super_admin(self, client):
        client.put("/admin/users/user-2/role", json={"role": "Admin"}, headers=ADMIN)

        assert client.get("/admin/financials", headers=ARTIST).status_code == 403
        response = client.get("/admin/financials", headers=ADMIN)
        assert response.status_code == 200
        assert money(response.json()["total_song_gross_earnings"]) == Decimal("1250")
        assert money(response.json()["platform_cut"]) == Decimal("250")


class TestCatalogRoutes:
    """Tests for users, songs and settings endpoints."""

    def test_register(self, client):
        response = client.post("/users", json={"name": "Fresh", "email": "fresh@example.com"})

        assert response.status_code == 201
        user_id = response.json()["record_id"]
        user = client.get(f"/users/{user_id}", headers={"X-User-Id": user_id}).json()
        assert user["email"] == "fresh@example.com"

    def test_register_duplicate(self, client):
        response = client.post("/users", json={"name": "Dup", "email": "melody@example.com"})

        assert response.status_code == 422

    def test_song_flow(self, client):
        response = client.post("/users/user-2/songs", json={
            "title": "Night Drive", "author": "Alex Ray", "singer": "Luna",
            "description": "Late night synth ballad.", "tags": [],
            "banner_url": "https://placehold.co/3000x3000.png",
            "audio_url": "https://example.com/night-drive.mp3",
        }, headers=ARTIST)
        assert response.status_code == 201
        song_id = response.json()["record_id"]

        pending = client.get("/admin/songs/pending", headers=ADMIN).json()
        assert [s["id"] for s in pending] == [song_id]

        assert client.put(f"/admin/songs/{song_id}/earnings", json={"earnings": 250}, headers=ADMIN).status_code == 200
        assert client.post(f"/admin/songs/{song_id}/approve", headers=ADMIN).status_code == 200

        wallet = client.get("/users/user-2/wallet", headers=ARTIST).json()
        assert money(wallet["total_earnings"]) == Decimal("1200")

    def test_payout_rate_and_prices(self, client):
        assert client.put("/admin/users/user-2/payout-rate", json={"rate": 50}, headers=ADMIN).status_code == 200
        assert client.put("/admin/users/user-2/payout-rate", json={"rate": 150}, headers=ADMIN).status_code == 422

        wallet = client.get("/users/user-2/wallet", headers=ARTIST).json()
        assert money(wallet["total_earnings"]) == Decimal("625")

        assert client.put("/admin/settings/prices", json={"prices": {"Label": 2499}}, headers=ADMIN).status_code == 200
        assert money(client.get("/settings").json()["prices"]["Label"]) == Decimal("2499")
        price = client.get("/users/user-2/subscription-price", headers=ARTIST).json()["price"]
        assert money(price) == Decimal("999")

    def test_subscription_routes(self, client):
        response = client.post("/admin/users/user-2/subscription", json={"months": 3}, headers=ADMIN)
        assert response.json()["message"] == "Granted 3 months of subscription."

        assert client.delete("/admin/users/user-2/subscription", headers=ADMIN).status_code == 200
        assert client.get("/users/user-2", headers=ARTIST).json()["subscription_expiry"] is None
