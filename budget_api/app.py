"""Flask REST API exposing the budget tracker services."""

from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from budgetcore.aggregation import total_of
from budgetcore.config import Settings
from budgetcore.exceptions import PersistenceError, RecordNotFoundError, ValidationError
from budgetcore.models import ExpenseFilter
from budgetcore.services import BudgetTracker, CommandResult
from budgetcore.storage import JSONStorage
from budgetcore.validators import ensure_date_range, validate_optional_date


def create_app(
    data_dir: Optional[Path] = None,
    today: Optional[Callable[[], date]] = None,
    settings: Optional[Settings] = None,
    tracker: Optional[BudgetTracker] = None,
) -> Flask:
    app = Flask(__name__)
    settings = settings or Settings.from_env()

    if settings.is_development:
        CORS(app, resources={r"/*": {"origins": "*"}}, supports_credentials=True)
    elif settings.allowed_origins:
        CORS(app, resources={r"/*": {"origins": settings.allowed_origins}}, supports_credentials=True)
    else:
        CORS(app)

    if tracker is None:
        storage = JSONStorage(Path(data_dir or settings.data_dir))
        tracker = BudgetTracker(storage, today=today)
    for warning in tracker.drain_warnings():
        app.logger.warning("%s", warning)
    app.extensions["budget_tracker"] = tracker

    def _success(payload: Any, status: int = 200):
        if status == 204:
            return ("", status)
        return jsonify(payload), status

    def _command(result: CommandResult, status: int = 200):
        """Serialise the affected record; storage warnings ride along in the body."""
        if result.warnings:
            for warning in result.warnings:
                app.logger.warning("%s", warning)
        if status == 204:
            if not result.warnings:
                return ("", status)
            return _success({"warnings": result.warnings}, 200)
        payload = result.value.to_dict()
        if result.warnings:
            payload["warnings"] = result.warnings
        return _success(payload, status)

    def _handle_error(exc: Exception, status: int, message: str):
        app.logger.error("%s: %s", message, exc)
        return jsonify({"error": message, "details": str(exc)}), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return _handle_error(exc, 400, "Validation error")

    @app.errorhandler(RecordNotFoundError)
    def handle_not_found(exc: RecordNotFoundError):
        return _handle_error(exc, 404, "Record not found")

    @app.errorhandler(PersistenceError)
    def handle_persistence_error(exc: PersistenceError):
        return _handle_error(exc, 500, "Persistence error")

    def _json_body() -> Dict[str, Any]:
        if not request.is_json:
            raise ValidationError("Request content must be application/json")
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Malformed JSON body")
        return data

    def _date_filter() -> ExpenseFilter:
        start = validate_optional_date(request.args.get("start"), "start")
        end = validate_optional_date(request.args.get("end"), "end")
        ensure_date_range(start, end)
        category = request.args.get("category") or None
        return ExpenseFilter(start=start, end=end, category=category)

    @app.get("/categories")
    def list_categories():
        categories = tracker.category_service.list()
        return _success({"items": [category.to_dict() for category in categories]})

    @app.post("/categories")
    def create_category():
        return _command(tracker.add_category(_json_body()), 201)

    @app.put("/categories/<category_id>")
    def update_category(category_id: str):
        return _command(tracker.update_category(category_id, _json_body()))

    @app.delete("/categories/<category_id>")
    def delete_category(category_id: str):
        return _command(tracker.delete_category(category_id), 204)

    @app.get("/expenses")
    def list_expenses():
        expense_filter = _date_filter()
        expenses = tracker.expenses(expense_filter, search=request.args.get("q"))
        total = total_of(expenses)
        return _success({
            "items": [tracker.expense_view(expense) for expense in expenses],
            "total": f"{total:.2f}",
        })

    @app.post("/expenses")
    def create_expense():
        return _command(tracker.add_expense(_json_body()), 201)

    @app.get("/expenses/<expense_id>")
    def get_expense(expense_id: str):
        expense = tracker.expense_service.get(expense_id)
        return _success(tracker.expense_view(expense))

    @app.put("/expenses/<expense_id>")
    def update_expense(expense_id: str):
        return _command(tracker.update_expense(expense_id, _json_body()))

    @app.delete("/expenses/<expense_id>")
    def delete_expense(expense_id: str):
        return _command(tracker.delete_expense(expense_id), 204)

    @app.get("/budgets")
    def list_budgets():
        return _success({"items": [view.to_dict() for view in tracker.budget_overview()]})

    @app.post("/budgets")
    def set_budget():
        return _command(tracker.set_budget(_json_body()), 201)

    @app.delete("/budgets/<budget_id>")
    def delete_budget(budget_id: str):
        return _command(tracker.delete_budget(budget_id), 204)

    @app.get("/dashboard")
    def dashboard():
        return _success(tracker.dashboard(_date_filter()).to_dict())

    @app.get("/chart")
    def chart():
        expense_filter = _date_filter()
        if request.args.get("format", "series") == "plotly":
            figure = tracker.chart_figure(expense_filter, currency_symbol=settings.currency_symbol)
            return app.response_class(figure.to_json(), mimetype="application/json")
        return _success(tracker.chart(expense_filter).to_dict())

    return app
