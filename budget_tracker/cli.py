"""Console interface for the budget tracker."""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from budgetcore.config import Settings
from budgetcore.exceptions import PersistenceError, RecordNotFoundError, ValidationError
from budgetcore.models import Category, ExpenseFilter
from budgetcore.services import BudgetTracker, CommandResult
from budgetcore.storage import JSONStorage
from budgetcore.validators import parse_amount

DATE_FORMAT = "YYYY-MM-DD"


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"Invalid date '{value}'. Expected format {DATE_FORMAT}."
        ) from exc


def _parse_amount(value: str) -> str:
    try:
        parse_amount(value, "Amount")
    except ValidationError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    return value


def _money(symbol: str, value: Any) -> str:
    return f"{symbol}{Decimal(str(value)):,.2f}"


def _confirm(prompt: str, assume_yes: bool, ask: Optional[Callable[[str], str]] = None) -> bool:
    if assume_yes:
        return True
    try:
        answer = (ask or input)(f"{prompt} [y/N] ")
    except EOFError:
        return False
    return answer.strip().lower() in {"y", "yes"}


def _resolve_category(tracker: BudgetTracker, ref: Optional[str]) -> Optional[str]:
    """Accept either a category id or its (case-insensitive) name."""
    if ref is None:
        return None
    if ref in tracker.category_service:
        return ref
    category = tracker.category_service.find_by_name(ref)
    if category is None:
        raise ValidationError(f"Unknown category: {ref}")
    return category.id


def _print_warnings(result: CommandResult) -> None:
    for warning in result.warnings:
        print(f"Warning: {warning}", file=sys.stderr)


def _format_expense(row: Dict[str, Any], symbol: str) -> str:
    return (
        f"[{row['id']}] {row['date']} {_money(symbol, row['amount'])}\n"
        f"  Category: {row['category_name']}\n"
        f"  Description: {row['description']}\n"
    )


def _format_category(category: Category) -> str:
    return f"[{category.id}] {category.name} ({category.color})"


def _format_status(status: Dict[str, Any], symbol: str) -> str:
    remaining = Decimal(status["remaining"])
    if remaining >= 0:
        tail = f"Remaining: {_money(symbol, remaining)}"
    else:
        tail = f"Over budget by {_money(symbol, abs(remaining))}"
    return (
        f"{_money(symbol, status['spent'])} / {_money(symbol, status['budget'])} "
        f"({status['percentage']}%, {status['level']}) {tail}"
    )


def handle_expense(args: argparse.Namespace, tracker: BudgetTracker, symbol: str) -> int:
    if args.command == "add":
        payload = {
            "amount": args.amount,
            "description": args.description,
            "category": _resolve_category(tracker, args.category),
            "date": args.date,
        }
        result = tracker.add_expense(payload)
        _print_warnings(result)
        print("Expense added:\n" + _format_expense(tracker.expense_view(result.value), symbol))
    elif args.command == "list":
        expense_filter = ExpenseFilter(
            start=args.start, end=args.end, category=_resolve_category(tracker, args.category)
        )
        expenses = tracker.expenses(expense_filter, search=args.search)
        if not expenses:
            print("No expenses found.")
            return 0
        total = sum((expense.amount for expense in expenses), start=Decimal("0.00"))
        print(f"Found {len(expenses)} expenses (total {_money(symbol, total)}):")
        for expense in expenses:
            print(_format_expense(tracker.expense_view(expense), symbol))
    elif args.command == "edit":
        changes = {
            "amount": args.amount,
            "description": args.description,
            "category": _resolve_category(tracker, args.category),
            "date": args.date,
        }
        cleaned = {k: v for k, v in changes.items() if v is not None}
        result = tracker.update_expense(args.id, cleaned)
        _print_warnings(result)
        print("Expense updated:\n" + _format_expense(tracker.expense_view(result.value), symbol))
    elif args.command == "delete":
        tracker.expense_service.get(args.id)
        if not _confirm("Are you sure you want to delete this expense?", args.yes):
            print("Aborted.")
            return 1
        result = tracker.delete_expense(args.id)
        _print_warnings(result)
        print(f"Expense {args.id} deleted.")
    return 0


def handle_category(args: argparse.Namespace, tracker: BudgetTracker) -> int:
    if args.command == "add":
        result = tracker.add_category({"name": args.name, "color": args.color})
        _print_warnings(result)
        print("Category added: " + _format_category(result.value))
    elif args.command == "list":
        for category in tracker.category_service.list():
            print(_format_category(category))
    elif args.command == "edit":
        category_id = _resolve_category(tracker, args.id)
        changes = {k: v for k, v in {"name": args.name, "color": args.color}.items() if v is not None}
        result = tracker.update_category(category_id, changes)
        _print_warnings(result)
        print("Category updated: " + _format_category(result.value))
    elif args.command == "delete":
        category_id = _resolve_category(tracker, args.id)
        prompt = (
            "Are you sure you want to delete this category? "
            "Expenses in this category will be uncategorized."
        )
        if not _confirm(prompt, args.yes):
            print("Aborted.")
            return 1
        result = tracker.delete_category(category_id)
        _print_warnings(result)
        print(f"Category {result.value.name} deleted.")
    return 0


def handle_budget(args: argparse.Namespace, tracker: BudgetTracker, symbol: str) -> int:
    if args.command == "set":
        payload = {
            "type": args.type,
            "category": _resolve_category(tracker, args.category),
            "amount": args.amount,
            "period": args.period,
        }
        result = tracker.set_budget(payload)
        _print_warnings(result)
        print(f"Budget {result.value.id} set to {_money(symbol, result.value.amount)} ({result.value.period}).")
    elif args.command == "list":
        overview = tracker.budget_overview()
        if not overview:
            print("No budgets set.")
            return 0
        for view in overview:
            row = view.to_dict()
            print(f"[{row['id']}] {row['title']} ({row['period']})")
            print(f"  {_format_status(row['status'], symbol)}")
    elif args.command == "delete":
        tracker.budget_service.get(args.id)
        if not _confirm("Are you sure you want to delete this budget?", args.yes):
            print("Aborted.")
            return 1
        result = tracker.delete_budget(args.id)
        _print_warnings(result)
        print(f"Budget {args.id} deleted.")
    return 0


def handle_dashboard(args: argparse.Namespace, tracker: BudgetTracker, symbol: str) -> int:
    dashboard = tracker.dashboard(ExpenseFilter(start=args.start, end=args.end)).to_dict()
    print(f"Total expenses: {_money(symbol, dashboard['total_expenses'])}")
    print(f"This month:     {_money(symbol, dashboard['monthly_expenses'])}")
    print(f"Categories:     {dashboard['category_count']}")
    status = dashboard["budget_status"]
    if status["has_budget"]:
        print(f"Budget:         {_format_status(status, symbol)}")
    else:
        print("Budget:         No budget set")
    if not dashboard["breakdown"]:
        print("No expenses in selected period")
        return 0
    print("By category:")
    for row in dashboard["breakdown"]:
        print(f"  {row['name']:<15} {_money(symbol, row['amount']):>14} ({row['percentage']}%)")
    return 0


def handle_chart(args: argparse.Namespace, tracker: BudgetTracker, symbol: str) -> int:
    expense_filter = ExpenseFilter(start=args.start, end=args.end)
    if args.output:
        figure = tracker.chart_figure(expense_filter, currency_symbol=symbol)
        figure.write_html(str(args.output), include_plotlyjs="cdn")
        print(f"Chart written to {args.output}")
        return 0
    series = tracker.chart(expense_filter)
    if series.is_empty:
        print("No expenses in selected period")
        return 0
    total = sum(series.values, start=Decimal("0.00"))
    for label, value in zip(series.labels, series.values):
        share = value * 100 / total if total else Decimal("0")
        print(f"{label}: {_money(symbol, value)} ({share:.1f}%)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Budget Tracker CLI")
    parser.add_argument(
        "--data-dir",
        default=None,
        type=Path,
        help="Directory to store JSON data (default: $BUDGET_TRACKER_DATA_DIR or ./data)",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: WARNING)")

    subparsers = parser.add_subparsers(dest="entity", required=True)

    expense_parser = subparsers.add_parser("expense", help="Manage expenses")
    expense_sub = expense_parser.add_subparsers(dest="command", required=True)

    expense_add = expense_sub.add_parser("add", help="Add a new expense")
    expense_add.add_argument("amount", type=_parse_amount)
    expense_add.add_argument("description")
    expense_add.add_argument("category", help="Category id or name")
    expense_add.add_argument("--date", type=_parse_date, help="Defaults to today")

    expense_list = expense_sub.add_parser("list", help="List expenses")
    expense_list.add_argument("--start", type=_parse_date)
    expense_list.add_argument("--end", type=_parse_date)
    expense_list.add_argument("--category")
    expense_list.add_argument("--search")

    expense_edit = expense_sub.add_parser("edit", help="Edit an existing expense")
    expense_edit.add_argument("id")
    expense_edit.add_argument("--amount", type=_parse_amount)
    expense_edit.add_argument("--description")
    expense_edit.add_argument("--category")
    expense_edit.add_argument("--date", type=_parse_date)

    expense_delete = expense_sub.add_parser("delete", help="Delete an expense")
    expense_delete.add_argument("id")
    expense_delete.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    category_parser = subparsers.add_parser("category", help="Manage categories")
    category_sub = category_parser.add_subparsers(dest="command", required=True)

    category_add = category_sub.add_parser("add", help="Add a new category")
    category_add.add_argument("name")
    category_add.add_argument("--color")

    category_sub.add_parser("list", help="List categories")

    category_edit = category_sub.add_parser("edit", help="Edit a category")
    category_edit.add_argument("id", help="Category id or name")
    category_edit.add_argument("--name")
    category_edit.add_argument("--color")

    category_delete = category_sub.add_parser("delete", help="Delete a category")
    category_delete.add_argument("id", help="Category id or name")
    category_delete.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    budget_parser = subparsers.add_parser("budget", help="Manage budgets")
    budget_sub = budget_parser.add_subparsers(dest="command", required=True)

    budget_set = budget_sub.add_parser("set", help="Create or replace a budget")
    budget_set.add_argument("type", choices=["overall", "category"])
    budget_set.add_argument("amount", type=_parse_amount)
    budget_set.add_argument("period", choices=["weekly", "monthly", "yearly"])
    budget_set.add_argument("--category", help="Category id or name (category budgets)")

    budget_sub.add_parser("list", help="List budgets with their consumption")

    budget_delete = budget_sub.add_parser("delete", help="Delete a budget")
    budget_delete.add_argument("id")
    budget_delete.add_argument("--yes", action="store_true", help="Do not ask for confirmation")

    dashboard_parser = subparsers.add_parser("dashboard", help="Show spending summary")
    dashboard_parser.add_argument("--start", type=_parse_date)
    dashboard_parser.add_argument("--end", type=_parse_date)

    chart_parser = subparsers.add_parser("chart", help="Show or export the category chart")
    chart_parser.add_argument("--start", type=_parse_date)
    chart_parser.add_argument("--end", type=_parse_date)
    chart_parser.add_argument("--output", type=Path, help="Write an interactive HTML chart")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    settings = Settings.from_env()
    logging.basicConfig(
        level=(args.log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    symbol = settings.currency_symbol

    try:
        tracker = BudgetTracker(JSONStorage(args.data_dir or settings.data_dir))
        for warning in tracker.drain_warnings():
            print(f"Warning: {warning}", file=sys.stderr)

        if args.entity == "expense":
            return handle_expense(args, tracker, symbol)
        if args.entity == "category":
            return handle_category(args, tracker)
        if args.entity == "budget":
            return handle_budget(args, tracker, symbol)
        if args.entity == "dashboard":
            return handle_dashboard(args, tracker, symbol)
        if args.entity == "chart":
            return handle_chart(args, tracker, symbol)
        parser.error(f"Unknown entity: {args.entity}")  # pragma: no cover - argparse should prevent this
    except ValidationError as exc:
        print(f"Validation error: {exc}", file=sys.stderr)
        return 1
    except RecordNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except PersistenceError as exc:
        print(f"Storage error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
