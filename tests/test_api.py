from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from pocketledger.main import create_app
from pocketledger.services.http_client import HttpError
from pocketledger.services.ledger import LedgerEngine

from .conftest import CRYPTO_PAYLOAD, FIAT_PAYLOAD, FlakyDatabase, StubFetcher


@pytest.fixture
def fetcher():
    return StubFetcher({"/latest/USD": FIAT_PAYLOAD, "/simple/price": CRYPTO_PAYLOAD})


@pytest.fixture
def app(settings, fetcher):
    return create_app(settings, rate_fetcher=fetcher)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def expense_category_id(client):
    return client.get("/categories/default", params={"type": "expense"}).json()["id"]


def new_account(client, name, balance="0", currency="USD"):
    resp = client.post(
        "/accounts",
        json={"name": name, "currency_code": currency, "initial_balance": balance},
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def balance_of(client, account_id):
    return Decimal(client.get(f"/accounts/{account_id}").json()["balance"])


def test_health_and_request_id(client):
    resp = client.get("/health", headers={"x-request-id": "abc123"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["schema_version"] == 3
    assert resp.headers["x-request-id"] == "abc123"


def test_unknown_route_uses_error_body(client):
    resp = client.get("/nope")
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


def test_list_and_search_currencies(client):
    assert len(client.get("/currencies").json()) == 50
    crypto = client.get("/currencies", params={"kind": "crypto"}).json()
    assert len(crypto) == 20
    assert all(c["kind"] == "crypto" for c in crypto)
    found = client.get("/currencies", params={"q": "euro"}).json()
    assert [c["code"] for c in found] == ["EUR"]


def test_categories_are_seeded(client):
    income = client.get("/categories", params={"type": "income"}).json()
    assert income[0]["name"] == "Salary"
    assert client.get("/categories/default", params={"type": "income"}).json()["icon_name"] == "salary"


def test_expense_lifecycle(client, expense_category_id):
    account = new_account(client, "Cash", "100")
    assert account["formatted_balance"] == "100 $"

    resp = client.post(
        "/transactions/expense",
        json={"amount": "30", "account_id": account["id"], "category_id": expense_category_id},
    )
    assert resp.status_code == 201, resp.text
    tx = resp.json()
    assert Decimal(tx["signed_amount"]) == Decimal("-30")
    assert balance_of(client, account["id"]) == Decimal("70")

    resp = client.patch(f"/transactions/{tx['id']}", json={"amount": "50", "note": "groceries"})
    assert resp.status_code == 200, resp.text
    assert resp.json()["note"] == "groceries"
    assert balance_of(client, account["id"]) == Decimal("50")

    report = client.get(f"/accounts/{account['id']}/reconcile").json()
    assert report["consistent"] is True

    assert client.delete(f"/transactions/{tx['id']}").status_code == 200
    assert balance_of(client, account["id"]) == Decimal("100")
    assert client.delete(f"/transactions/{tx['id']}").status_code == 404


def test_transfer_between_currencies(client):
    usd = new_account(client, "Checking", "500")
    eur = new_account(client, "Euro", "200", "EUR")

    resp = client.post(
        "/transactions/transfer",
        json={"amount": "100", "from_account_id": usd["id"], "to_account_id": eur["id"]},
    )
    assert resp.status_code == 400
    assert resp.json()["error"] == "invalid_argument"

    resp = client.post(
        "/transactions/transfer",
        json={
            "amount": "100",
            "target_amount": "92",
            "from_account_id": usd["id"],
            "to_account_id": eur["id"],
        },
    )
    assert resp.status_code == 201, resp.text
    assert balance_of(client, usd["id"]) == Decimal("400")
    assert balance_of(client, eur["id"]) == Decimal("292")

    listed = client.get("/transactions", params={"account_id": eur["id"]}).json()
    assert [Decimal(t["signed_amount"]) for t in listed] == [Decimal("92")]


@pytest.mark.parametrize(
    "path, payload",
    [
        ("/transactions/expense", {"amount": "0", "account_id": 1, "category_id": 1}),
        ("/transactions/expense", {"amount": "-3", "account_id": 1, "category_id": 1}),
        ("/transactions/transfer", {"amount": "1", "from_account_id": 1, "to_account_id": 1}),
        ("/accounts", {"name": "  ", "currency_code": "USD"}),
    ],
)
def test_request_validation(client, path, payload):
    resp = client.post(path, json=payload)
    assert resp.status_code == 422
    assert resp.json()["error"] == "validation_error"


def test_empty_patch_is_rejected(client, expense_category_id):
    account = new_account(client, "Cash", "10")
    tx = client.post(
        "/transactions/expense",
        json={"amount": "1", "account_id": account["id"], "category_id": expense_category_id},
    ).json()
    assert client.patch(f"/transactions/{tx['id']}", json={}).status_code == 422


def test_missing_references_are_not_found(client, expense_category_id):
    resp = client.post(
        "/transactions/expense",
        json={"amount": "1", "account_id": 999, "category_id": expense_category_id},
    )
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"
    assert client.get("/accounts/999").status_code == 404


def test_hide_transaction(client, expense_category_id):
    account = new_account(client, "Cash", "10")
    tx = client.post(
        "/transactions/expense",
        json={"amount": "4", "account_id": account["id"], "category_id": expense_category_id},
    ).json()
    resp = client.post(f"/transactions/{tx['id']}/hide", json={"hidden": True})
    assert resp.json()["is_hidden"] is True
    visible = client.get(
        "/transactions", params={"account_id": account["id"], "include_hidden": False}
    ).json()
    assert visible == []
    assert balance_of(client, account["id"]) == Decimal("6")


def test_delete_account_reports_cascade(client, expense_category_id):
    account = new_account(client, "Temp", "10")
    client.post(
        "/transactions/expense",
        json={"amount": "4", "account_id": account["id"], "category_id": expense_category_id},
    )
    body = client.delete(f"/accounts/{account['id']}").json()
    assert body["transactions_removed"] == 1
    assert client.get(f"/accounts/{account['id']}").status_code == 404


def test_delete_account_reverts_transfer_counterpart(client):
    source = new_account(client, "Checking", "500")
    other = new_account(client, "Savings", "200")
    client.post(
        "/transactions/transfer",
        json={"amount": "100", "from_account_id": source["id"], "to_account_id": other["id"]},
    )
    assert balance_of(client, other["id"]) == Decimal("300")
    body = client.delete(f"/accounts/{source['id']}").json()
    assert body["transactions_removed"] == 1
    assert balance_of(client, other["id"]) == Decimal("200")
    report = client.get(f"/accounts/{other['id']}/reconcile").json()
    assert report["consistent"] is True
    assert client.delete(f"/accounts/{source['id']}").status_code == 404


def test_rates_refresh_and_convert(client, fetcher):
    status = client.get("/rates/status").json()
    assert status["needs_refresh"] is True
    assert status["pivot_currency"] == "USD"

    resp = client.post("/rates/refresh")
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["refreshed"] is True
    assert body["status"]["needs_refresh"] is False
    assert client.post("/rates/refresh").json()["refreshed"] is False
    assert client.post("/rates/refresh", params={"force": True}).json()["refreshed"] is True

    resp = client.get(
        "/currencies/convert", params={"amount": "100", "from_code": "usd", "to_code": "EUR"}
    )
    body = resp.json()
    assert Decimal(body["converted"]) == Decimal("92")
    assert body["formatted"] == "92 €"
    assert client.get(
        "/currencies/convert", params={"amount": "1", "from_code": "USD", "to_code": "XXX"}
    ).status_code == 404


def test_total_balance_in_base_currency(client):
    client.post("/rates/refresh")
    new_account(client, "Cash", "100")
    new_account(client, "Euro", "92", "EUR")
    body = client.get("/accounts/total").json()
    assert body["currency_code"] == "USD"
    assert Decimal(body["total"]) == Decimal("200")
    assert body["accounts"] == 3

    client.put("/currencies/default", json={"code": "EUR"})
    assert client.get("/accounts/total").json()["currency_code"] == "EUR"


def test_refresh_failure_is_bad_gateway(settings):
    fetcher = StubFetcher({"/latest/": HttpError("offline"), "/simple/price": HttpError("offline")})
    client = TestClient(create_app(settings, rate_fetcher=fetcher))
    resp = client.post("/rates/refresh")
    assert resp.status_code == 502
    assert resp.json()["error"] == "rate_fetch_error"


def test_persistence_failure_is_service_unavailable(app, client, settings, expense_category_id):
    account = new_account(client, "Cash", "100")
    flaky = FlakyDatabase(settings.db_path)
    flaky.fail_writes = True
    app.state.engine = LedgerEngine(flaky)
    resp = client.post(
        "/transactions/expense",
        json={"amount": "5", "account_id": account["id"], "category_id": expense_category_id},
    )
    assert resp.status_code == 503
    assert resp.json()["error"] == "persistence_error"
    assert balance_of(client, account["id"]) == Decimal("100")
