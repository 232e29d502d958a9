"""
Tests for account endpoints.

These test the HTTP layer: status codes, response shape and error
rendering. Ledger rules are tested in tests/services.
"""


def create(client, code, account_type="ASSET", name=None):
    return client.post("/accounts", json={
        "code": code,
        "name": name or code,
        "account_type": account_type,
    })


class TestCreateAccount:

    def test_create_account_returns_201(self, client):
        response = create(client, "CASH-001")
        assert response.status_code == 201
        data = response.json()
        assert data["code"] == "CASH-001"
        assert data["normal_balance"] == "DEBIT"
        assert data["is_active"] is True

    def test_duplicate_code_returns_400_with_error_body(self, client):
        create(client, "CASH-001")
        response = create(client, "CASH-001")

        assert response.status_code == 400
        body = response.json()
        assert body["error_code"] == "ERR_VALIDATION"
        assert "already exists" in body["message"]

    def test_bad_account_type_returns_422(self, client):
        response = create(client, "X", account_type="ASSETS")
        assert response.status_code == 422

    def test_unknown_account_returns_404(self, client):
        response = client.get("/accounts/999")
        assert response.status_code == 404
        assert response.json()["error_code"] == "ERR_NOT_FOUND"


class TestBalance:

    def test_balance_after_voucher(self, client):
        cash = create(client, "CASH-001").json()
        sales = create(client, "SALES-001", "REVENUE").json()
        voucher = client.post("/vouchers", json={
            "voucher_type": "receipt",
            "voucher_date": "2024-05-01",
            "lines": [
                {"account_id": cash["id"], "amount": "75.50", "side": "DEBIT"},
                {"account_id": sales["id"], "amount": "75.50", "side": "CREDIT"},
            ],
        }).json()
        client.post(f"/vouchers/{voucher['id']}/post")

        response = client.get(f"/accounts/{sales['id']}/balance")
        data = response.json()
        assert response.status_code == 200
        assert float(data["balance"]) == -75.5
        assert float(data["natural_balance"]) == 75.5
        assert float(data["replayed_balance"]) == -75.5

        entries = client.get(f"/accounts/{cash['id']}/entries").json()
        assert len(entries) == 1
        assert float(entries[0]["running_balance"]) == 75.5

        integrity = client.get("/ledger/integrity").json()
        assert integrity["is_balanced"] is True
