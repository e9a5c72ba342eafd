"""
Tests for the HTTP API, using FastAPI's TestClient over in-memory components.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient

from piggybank.api import create_app
from piggybank.models.audit import AuditEventType
from piggybank.models.finance import Budget
from piggybank.services.identity import IdentityServiceError

from tests.conftest import IOS_AUTH, IOS_P256DH, KNOWN_USER, make_subscription


IPHONE_SAFARI = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)


@pytest.fixture
def client(components):
    return TestClient(create_app(components))


def ingest_body(user_id=KNOWN_USER, **data):
    payload = {"Amount": 12.5, "Category": "F&B", "Type": "expense", "Notes": "lunch"}
    payload.update(data)
    return {"UserID": user_id, "Data": payload}


def subscription_body(endpoint="https://fcm.googleapis.com/fcm/send/abc", **extra):
    body = {
        "userId": KNOWN_USER,
        "subscription": {"endpoint": endpoint, "keys": {"auth": IOS_AUTH, "p256dh": IOS_P256DH}},
    }
    body.update(extra)
    return body


class TestTransactionsEndpoint:
    def test_create(self, client, components, transport):
        response = client.post("/transactions", json=ingest_body())

        assert response.status_code == 201
        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Transaction created successfully"
        assert data["transactionId"]

    def test_create_notifies_devices(self, client, components, transport):
        asyncio.run(components.subscriptions.save_subscription(KNOWN_USER, make_subscription("https://push.example/a")))

        client.post("/transactions", json=ingest_body())

        assert [s["endpoint"] for s in transport.sent] == ["https://push.example/a"]

    @pytest.mark.parametrize("body,message", [
        ({}, "Missing UserID or Data"),
        ({"UserID": KNOWN_USER}, "Missing UserID or Data"),
        (ingest_body(Amount=None), "Missing required fields: Amount, Category, Type"),
        (ingest_body(Type="refund"), "Type must be 'income' or 'expense'"),
    ])
    def test_validation_errors(self, client, body, message):
        response = client.post("/transactions", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": message}

    def test_non_json_body(self, client):
        response = client.post("/transactions", content=b"not json", headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert response.json() == {"error": "Missing UserID or Data"}

    def test_unknown_user(self, client):
        response = client.post("/transactions", json=ingest_body(user_id="stranger"))
        assert response.status_code == 401
        assert response.json() == {"error": "Invalid UserID"}

    def test_storage_failure(self, client, components, monkeypatch):
        async def broken(user_id, transaction):
            raise RuntimeError("sheet unavailable")

        monkeypatch.setattr(components.transactions, "save_transaction", broken)
        response = client.post("/transactions", json=ingest_body())

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}
        assert AuditEventType.SYSTEM_ERROR in [e.event_type for e in components.audit_storage.events]

    def test_identity_outage(self, client, components, monkeypatch):
        async def unavailable(user_id):
            raise IdentityServiceError("lookup timed out")

        monkeypatch.setattr(components.identity, "verify_user", unavailable)
        response = client.post("/transactions", json=ingest_body())

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error"}
        assert AuditEventType.EXTERNAL_SERVICE_ERROR in [e.event_type for e in components.audit_storage.events]
        assert asyncio.run(components.transactions.list_transactions(KNOWN_USER)) == []

    def test_list(self, client):
        for amount in (1, 2, 3):
            client.post("/transactions", json=ingest_body(Amount=amount))

        response = client.get("/transactions", params={"userId": KNOWN_USER, "limit": 2})
        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 2
        assert data["hasMore"] is True
        assert set(data["transactions"][0]) >= {"id", "Amount", "Category", "Type", "Date"}

        rest = client.get("/transactions", params={"userId": KNOWN_USER, "limit": 2, "offset": 2}).json()
        assert rest["count"] == 1
        assert rest["hasMore"] is False

    def test_list_requires_user(self, client):
        response = client.get("/transactions")
        assert response.status_code == 400
        assert response.json() == {"error": "User ID is required"}


class TestPushSubscriptionsEndpoint:
    def test_register(self, client):
        response = client.post("/push-subscriptions", json=subscription_body())
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["isIOSSafari"] is False
        assert data["message"] == "Push subscription registered successfully"

    def test_register_ios(self, client):
        response = client.post(
            "/push-subscriptions",
            json=subscription_body("https://web.push.apple.com/abc"),
            headers={"User-Agent": IPHONE_SAFARI},
        )
        assert response.status_code == 200
        assert response.json()["message"] == "iOS push subscription registered successfully"

    def test_register_ios_header(self, client):
        response = client.post(
            "/push-subscriptions",
            json=subscription_body("https://web.push.apple.com/abc"),
            headers={"x-ios-safari": "true"},
        )
        assert response.json()["isIOSSafari"] is True

    def test_register_missing_user(self, client):
        body = subscription_body()
        del body["userId"]
        response = client.post("/push-subscriptions", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "User ID is required and must be a non-empty string."}

    def test_register_bad_payload(self, client):
        response = client.post("/push-subscriptions", json={"userId": KNOWN_USER, "subscription": "x"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid subscription payload: Invalid subscription object"}

    def test_list_and_delete(self, client):
        client.post("/push-subscriptions", json=subscription_body("https://push.example/a"))
        client.post("/push-subscriptions", json=subscription_body("https://push.example/a"))

        listed = client.get("/push-subscriptions", params={"userId": KNOWN_USER}).json()
        assert listed["count"] == 1
        assert listed["subscriptions"][0]["endpoint"] == "https://push.example/a"

        response = client.delete(
            "/push-subscriptions",
            params={"userId": KNOWN_USER, "endpoint": "https://push.example/a"},
        )
        assert response.json() == {"success": True, "message": "Subscription deleted successfully"}
        assert client.get("/push-subscriptions", params={"userId": KNOWN_USER}).json()["count"] == 0

    def test_delete_requires_params(self, client):
        assert client.delete("/push-subscriptions").json() == {"error": "User ID is required"}
        response = client.delete("/push-subscriptions", params={"userId": KNOWN_USER})
        assert response.status_code == 400
        assert response.json() == {"error": "Endpoint is required"}


class TestUsersEndpoint:
    def test_initialize_then_repeat(self, client):
        first = client.post("/users/initialize", json={"UserID": KNOWN_USER, "Name": "Sam"})
        assert first.status_code == 200
        assert first.json()["message"] == "User initialized successfully"
        assert first.json()["userData"]["name"] == "Sam"

        second = client.post("/users/initialize", json={"UserID": KNOWN_USER})
        assert second.status_code == 200
        assert second.json()["message"] == "User already initialized"

    def test_initialize_requires_user(self, client):
        response = client.post("/users/initialize", json={})
        assert response.status_code == 400
        assert response.json() == {"error": "UserID is required"}

    def test_initialize_unknown_user(self, client):
        response = client.post("/users/initialize", json={"UserID": "stranger"})
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid UserID"}


class TestSavingsEndpoint:
    def test_summary(self, client, components):
        asyncio.run(components.budgets.save_budget(KNOWN_USER, Budget(category="F&B", monthly_budget=300)))

        response = client.get("/savings", params={"userId": KNOWN_USER, "range": "yearly"})

        assert response.status_code == 200
        data = response.json()
        assert data["range"] == "yearly"
        assert data["rangeBudget"] == 3600.0
        assert data["daysTracked"] == 0
        assert data["dailyBreakdown"] == []

    def test_summary_with_transactions(self, client):
        client.post("/transactions", json=ingest_body(Amount=40))

        data = client.get("/savings", params={"userId": KNOWN_USER}).json()

        assert data["range"] == "month"
        assert data["daysTracked"] == 1
        assert data["rangeSpent"] == 40.0
        assert data["expenseTotals"] == [{"category": "F&B", "amount": 40.0}]

    def test_summary_requires_user(self, client):
        assert client.get("/savings").status_code == 400


class TestRecurringEndpoints:
    def recurring_body(self, **extra):
        body = {
            "userId": KNOWN_USER,
            "Amount": 1200,
            "Type": "expense",
            "Category": "Rent",
            "Notes": "flat",
            "frequency": "monthly",
            "nextDueDate": "2000-01-31T00:00:00",
        }
        body.update(extra)
        return body

    def test_create_list_and_process(self, client, components):
        created = client.post("/recurring-transactions", json=self.recurring_body())
        assert created.status_code == 201
        assert created.json()["recurringId"]

        listed = client.get("/recurring-transactions", params={"userId": KNOWN_USER}).json()
        assert listed["recurringTransactions"][0]["Category"] == "Rent"
        assert listed["upcoming"] == []

        processed = client.post("/recurring-transactions/process", json={"userId": KNOWN_USER}).json()
        assert processed["processed"] == 1

        item = client.get("/recurring-transactions", params={"userId": KNOWN_USER}).json()["recurringTransactions"][0]
        assert item["nextDueDate"] == "2000-02-29T00:00:00"
        assert item["lastProcessed"] is not None

        transactions = asyncio.run(components.transactions.list_transactions(KNOWN_USER))
        assert [t.category for t in transactions] == ["Rent"]

    def test_create_validation(self, client):
        assert client.post("/recurring-transactions", json={}).json() == {"error": "User ID is required"}
        response = client.post("/recurring-transactions", json=self.recurring_body(frequency="daily"))
        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid recurring transaction")

    def test_process_requires_user(self, client):
        response = client.post("/recurring-transactions/process", json={})
        assert response.status_code == 400
        assert response.json() == {"error": "User ID is required"}


class TestAppLevel:
    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "ok"
        assert data["storageBackend"] == "memory"
        assert data["pushConfigured"] is True
        assert "configuration" in data

    def test_cors_preflight(self, client):
        response = client.options(
            "/transactions",
            headers={
                "Origin": "https://www.icloud.com",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "Content-Type",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
        assert "POST" in response.headers["access-control-allow-methods"]
