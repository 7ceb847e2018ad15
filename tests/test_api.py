import pytest

from budget_api.app import create_app
from budgetcore.config import Settings
from budgetcore.services import BudgetTracker, CounterIds
from budgetcore.storage import MemoryStorage

from conftest import NOW, TODAY


@pytest.fixture
def api_storage():
    return MemoryStorage()


@pytest.fixture
def client(api_storage):
    tracker = BudgetTracker(
        api_storage, id_factory=CounterIds(prefix="id-"), clock=lambda: NOW, today=lambda: TODAY
    )
    app = create_app(tracker=tracker, settings=Settings())
    app.testing = True
    return app.test_client()


def _post_expense(client, **overrides):
    payload = {"amount": "25", "description": "Dinner", "category": "1", "date": "2024-01-10"}
    payload.update(overrides)
    return client.post("/expenses", json=payload)


def test_lists_default_categories(client):
    response = client.get("/categories")

    assert response.status_code == 200
    assert len(response.get_json()["items"]) == 10


def test_create_and_filter_expenses(client):
    created = _post_expense(client)
    _post_expense(client, amount="5", date="2024-02-01")

    assert created.status_code == 201
    assert created.get_json()["id"] == "id-1"

    response = client.get("/expenses", query_string={"start": "2024-01-01", "end": "2024-01-31"})
    body = response.get_json()
    assert body["total"] == "25.00"
    assert [item["category_name"] for item in body["items"]] == ["Food"]


def test_search_expenses(client):
    _post_expense(client, description="Cinema")
    _post_expense(client, description="Petrol")

    body = client.get("/expenses", query_string={"q": "cine"}).get_json()

    assert [item["description"] for item in body["items"]] == ["Cinema"]


def test_validation_errors_return_400(client):
    response = _post_expense(client, amount="-3")

    assert response.status_code == 400
    assert response.get_json()["error"] == "Validation error"


def test_non_json_body_is_rejected(client):
    response = client.post("/expenses", data="amount=3")

    assert response.status_code == 400


def test_unknown_expense_returns_404(client):
    assert client.get("/expenses/nope").status_code == 404
    assert client.delete("/expenses/nope").status_code == 404


def test_update_and_delete_expense(client):
    expense_id = _post_expense(client).get_json()["id"]

    updated = client.put(f"/expenses/{expense_id}", json={"amount": "30"})
    assert updated.get_json()["amount"] == "30.00"

    assert client.delete(f"/expenses/{expense_id}").status_code == 204
    assert client.get("/expenses").get_json()["items"] == []


def test_deleting_category_uncategorises_expenses(client):
    expense_id = _post_expense(client).get_json()["id"]

    assert client.delete("/categories/1").status_code == 204

    expense = client.get(f"/expenses/{expense_id}").get_json()
    assert expense["category"] == ""
    assert expense["category_name"] == "Uncategorized"
    assert len(client.get("/categories").get_json()["items"]) == 9


def test_budget_upsert_and_listing(client):
    client.post("/budgets", json={"type": "overall", "amount": "1000", "period": "monthly"})
    client.post("/budgets", json={"type": "overall", "amount": "2000", "period": "monthly"})
    _post_expense(client, amount="500", date="2024-01-20")

    items = client.get("/budgets").get_json()["items"]

    assert len(items) == 1
    assert items[0]["amount"] == "2000.00"
    assert items[0]["title"] == "Overall Budget"
    assert items[0]["status"]["percentage"] == "25.00"
    assert client.delete("/budgets/overall").status_code == 204


def test_dashboard_and_chart(client):
    _post_expense(client, amount="40", category="2", date="2024-01-05")
    _post_expense(client, amount="60", category="1", date="2024-01-06")

    dashboard = client.get("/dashboard", query_string={"start": "2024-01-01"}).get_json()
    assert dashboard["total_expenses"] == "100.00"
    assert dashboard["monthly_expenses"] == "100.00"
    assert dashboard["budget_status"]["has_budget"] is False
    assert [row["percentage"] for row in dashboard["breakdown"]] == ["60.0", "40.0"]

    series = client.get("/chart").get_json()
    assert series == {
        "labels": ["Food", "Fuel"],
        "values": ["60.00", "40.00"],
        "colors": ["#ef4444", "#f59e0b"],
    }

    figure = client.get("/chart", query_string={"format": "plotly"}).get_json()
    assert figure["data"][0]["type"] == "pie"


def test_bad_filter_dates_return_400(client):
    response = client.get("/dashboard", query_string={"start": "2024-02-01", "end": "2024-01-01"})

    assert response.status_code == 400


def test_storage_failure_is_reported_as_warning(client, api_storage):
    api_storage.fail_writes = True

    response = _post_expense(client)

    assert response.status_code == 201
    assert response.get_json()["warnings"]
    assert client.get("/expenses").get_json()["total"] == "25.00"

    deleted = client.delete("/categories/2")
    assert deleted.status_code == 200
    assert deleted.get_json()["warnings"]
