import json

import pytest

from budget_tracker.cli import main


@pytest.fixture(autouse=True)
def _plain_environment(monkeypatch):
    monkeypatch.delenv("BUDGET_TRACKER_CURRENCY_SYMBOL", raising=False)
    monkeypatch.delenv("BUDGET_TRACKER_LOG_LEVEL", raising=False)


@pytest.fixture
def run(tmp_path):
    def _run(*argv):
        return main(["--data-dir", str(tmp_path), *argv])

    return _run


def test_category_list_shows_defaults(run, capsys):
    assert run("category", "list") == 0

    out = capsys.readouterr().out
    assert "[1] Food (#ef4444)" in out
    assert "[10] Others (#94a3b8)" in out


def test_add_and_list_expenses_by_category_name(run, capsys, tmp_path):
    assert run("expense", "add", "120.5", "Weekly shop", "groceries", "--date", "2024-01-10") == 0
    assert run("expense", "add", "30", "Bus", "Transport", "--date", "2024-02-10") == 0
    capsys.readouterr()

    assert run("expense", "list", "--start", "2024-01-01", "--end", "2024-01-31") == 0

    out = capsys.readouterr().out
    assert "Found 1 expenses (total ₹120.50)" in out
    assert "Category: Groceries" in out
    stored = json.loads((tmp_path / "expenses.json").read_text(encoding="utf-8"))
    assert {record["category"] for record in stored} == {"4", "5"}


def test_unknown_category_is_a_validation_error(run, capsys):
    assert run("expense", "add", "10", "Mystery", "Nope") == 1

    assert "Validation error: Unknown category: Nope" in capsys.readouterr().err


def test_delete_requires_confirmation(run, capsys, monkeypatch):
    run("category", "add", "Pets", "--color", "#123456")
    monkeypatch.setattr("builtins.input", lambda prompt: "n")

    assert run("category", "delete", "Pets") == 1
    assert "Aborted." in capsys.readouterr().out

    assert run("category", "delete", "Pets", "--yes") == 0
    assert "Category Pets deleted." in capsys.readouterr().out


def test_deleting_category_uncategorises_expenses(run, capsys, tmp_path):
    run("expense", "add", "10", "Pizza", "Food", "--date", "2024-01-10")
    run("expense", "add", "12", "Burger", "Food", "--date", "2024-01-11")

    assert run("category", "delete", "1", "--yes") == 0

    stored = json.loads((tmp_path / "expenses.json").read_text(encoding="utf-8"))
    assert [record["category"] for record in stored] == ["", ""]
    categories = json.loads((tmp_path / "categories.json").read_text(encoding="utf-8"))
    assert len(categories) == 9


def test_budget_set_and_list(run, capsys):
    assert run("budget", "set", "category", "200", "monthly", "--category", "Fuel") == 0
    assert run("budget", "set", "category", "250", "monthly", "--category", "2") == 0
    capsys.readouterr()

    assert run("budget", "list") == 0

    out = capsys.readouterr().out
    assert out.count("[category-2] Fuel (monthly)") == 1
    assert "/ ₹250.00" in out


def test_dashboard_and_chart_output(run, capsys, tmp_path):
    run("expense", "add", "75", "Dinner", "Food", "--date", "2024-01-10")
    run("expense", "add", "25", "Fuel up", "Fuel", "--date", "2024-01-12")
    capsys.readouterr()

    assert run("dashboard", "--start", "2024-01-01", "--end", "2024-01-31") == 0
    out = capsys.readouterr().out
    assert "Total expenses: ₹100.00" in out
    assert "Budget:         No budget set" in out
    assert "(75.0%)" in out

    assert run("chart", "--start", "2024-01-01") == 0
    assert "Fuel: ₹25.00 (25.0%)" in capsys.readouterr().out

    output = tmp_path / "chart.html"
    assert run("chart", "--output", str(output)) == 0
    assert output.exists()


def test_missing_expense_reports_not_found(run, capsys):
    assert run("expense", "delete", "nope", "--yes") == 1

    assert "Expense nope not found" in capsys.readouterr().err


@pytest.mark.parametrize("amount", ["NaN", "Infinity", "abc", "0"])
def test_bad_amount_is_an_argument_error(run, capsys, amount):
    with pytest.raises(SystemExit) as excinfo:
        run("expense", "add", amount, "Tea", "Food")

    assert excinfo.value.code == 2
    assert "Amount must be" in capsys.readouterr().err
