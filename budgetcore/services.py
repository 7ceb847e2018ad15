"""Framework-agnostic business services for the budget tracker."""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Tuple, TypeVar
from uuid import uuid4

from . import aggregation
from .aggregation import BudgetStatus, CategoryTotal
from .charts import ChartSeries, build_doughnut, chart_series
from .exceptions import PersistenceError, RecordNotFoundError, ValidationError
from .models import Budget, Category, Expense, ExpenseFilter, budget_id_for
from .validators import (
    BUDGET_PERIODS,
    BUDGET_TYPES,
    ensure_date_range,
    parse_amount,
    validate_color,
    validate_date,
    validate_enum,
    validate_optional_date,
    validate_required_str,
)

logger = logging.getLogger(__name__)

IdFactory = Callable[[], str]
Clock = Callable[[], datetime]
TodayProvider = Callable[[], date]

DEFAULT_CATEGORY_COLOR = "#3498db"

DEFAULT_CATEGORIES: Tuple[Tuple[str, str, str], ...] = (
    ("1", "Food", "#ef4444"),
    ("2", "Fuel", "#f59e0b"),
    ("3", "Dress", "#8b5cf6"),
    ("4", "Groceries", "#10b981"),
    ("5", "Transport", "#3b82f6"),
    ("6", "Entertainment", "#ec4899"),
    ("7", "Bills", "#6366f1"),
    ("8", "Healthcare", "#14b8a6"),
    ("9", "Shopping", "#f97316"),
    ("10", "Others", "#94a3b8"),
)


def _uuid_id() -> str:
    return str(uuid4())


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _local_today() -> date:
    return date.today()


class CounterIds:
    """Monotonic id factory yielding ``"<prefix>1"``, ``"<prefix>2"``, ..."""

    def __init__(self, start: int = 1, prefix: str = "") -> None:
        self._counter = itertools.count(start)
        self._prefix = prefix

    def __call__(self) -> str:
        return f"{self._prefix}{next(self._counter)}"


RecordT = TypeVar("RecordT", Category, Expense, Budget)


class _CollectionService(Generic[RecordT]):
    """In-memory collection mirrored to one storage key after every mutation."""

    label = "Record"

    def __init__(self, storage: Any, key: str) -> None:
        self._storage = storage
        self._key = key
        self._records: Dict[str, RecordT] = {}
        self._warnings: List[str] = []
        self.load()  # Hydrate in-memory cache from persistence on construction.

    def _from_dict(self, payload: Dict[str, Any]) -> RecordT:
        raise NotImplementedError

    def load(self) -> None:
        try:
            raw_records = self._storage.load(self._key)
        except PersistenceError as exc:
            logger.error("Unable to load %s: %s", self._key, exc)
            self._warnings.append(f"Could not read saved {self._key}; starting with an empty list.")
            raw_records = []

        records: Dict[str, RecordT] = {}
        for payload in raw_records:
            try:
                record = self._from_dict(payload)
            except (KeyError, TypeError, ValueError, InvalidOperation) as exc:
                logger.warning("Skipping malformed %s record %r: %s", self._key, payload, exc)
                continue
            records[record.id] = record
        self._records = records

    def get(self, record_id: str) -> RecordT:
        return self._get_or_raise(record_id)

    def drain_warnings(self) -> List[str]:
        warnings, self._warnings = self._warnings, []
        return warnings

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, record_id: object) -> bool:
        return record_id in self._records

    def _persist(self) -> bool:
        try:
            # Persist current snapshot; storage layer handles atomic writes.
            self._storage.save(self._key, [record.to_dict() for record in self._records.values()])
        except PersistenceError as exc:
            logger.warning("Failed to save %s: %s", self._key, exc)
            self._warnings.append(
                f"Error saving {self._key}. Changes are kept for this session only."
            )
            return False
        return True

    def _get_or_raise(self, record_id: str) -> RecordT:
        try:
            return self._records[record_id]
        except KeyError as exc:
            raise RecordNotFoundError(f"{self.label} {record_id} not found") from exc


class CategoryService(_CollectionService[Category]):
    """Manages expense categories and persistence."""

    label = "Category"

    def __init__(
        self, storage: Any, key: str = "categories", id_factory: Optional[IdFactory] = None
    ) -> None:
        self._new_id = id_factory or _uuid_id
        super().__init__(storage, key)

    def _from_dict(self, payload: Dict[str, Any]) -> Category:
        return Category.from_dict(payload)

    def add(self, payload: Dict[str, object]) -> Category:
        category = Category(**self._validate_payload(payload))
        self._records[category.id] = category
        self._persist()
        return category

    def update(self, category_id: str, changes: Dict[str, object]) -> Category:
        existing = self._get_or_raise(category_id)
        merged_payload = {**existing.to_dict(), **changes}
        updated = Category(**self._validate_payload(merged_payload, current=existing))
        self._records[category_id] = updated
        self._persist()
        return updated

    def delete(self, category_id: str) -> Category:
        category = self._get_or_raise(category_id)
        del self._records[category_id]
        self._persist()
        return category

    def list(self) -> List[Category]:
        return list(self._records.values())

    def as_mapping(self) -> Dict[str, Category]:
        return dict(self._records)

    def find_by_name(self, name: str) -> Optional[Category]:
        canonical = name.strip().lower()
        for category in self._records.values():
            if category.name.lower() == canonical:
                return category
        return None

    def seed_defaults(self) -> bool:
        """Install the default categories when the collection is empty."""
        if self._records:
            return False
        self._records = {
            category_id: Category(id=category_id, name=name, color=color)
            for category_id, name, color in DEFAULT_CATEGORIES
        }
        logger.info("Seeded %d default categories", len(self._records))
        self._persist()
        return True

    def _validate_payload(
        self, payload: Dict[str, object], *, current: Optional[Category] = None
    ) -> Dict[str, object]:
        name = validate_required_str(payload.get("name"), "name", 50)
        canonical = name.lower()

        for category in self._records.values():
            if current and category.id == current.id:
                continue
            if category.name.lower() == canonical:
                raise ValidationError("Category name must be unique")

        raw_color = payload.get("color")
        color = validate_color(raw_color) if raw_color not in (None, "") else DEFAULT_CATEGORY_COLOR
        return {
            "id": current.id if current else self._new_id(),
            "name": name,
            "color": color,
        }


class ExpenseService(_CollectionService[Expense]):
    """Manages expense records and mediates persistence."""

    label = "Expense"

    def __init__(
        self,
        storage: Any,
        key: str = "expenses",
        id_factory: Optional[IdFactory] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self._new_id = id_factory or _uuid_id
        self._clock = clock or _utc_now
        super().__init__(storage, key)

    def _from_dict(self, payload: Dict[str, Any]) -> Expense:
        return Expense.from_dict(payload)

    # Public API -----------------------------------------------------------
    def add(self, payload: Dict[str, object]) -> Expense:
        expense = Expense(**self._validate_payload(payload))
        self._records[expense.id] = expense
        self._persist()
        return expense

    def update(self, expense_id: str, changes: Dict[str, object]) -> Expense:
        existing = self._get_or_raise(expense_id)
        # Merge existing serialised data with incoming changes to support partial updates.
        merged_payload = {**existing.to_dict(), **changes}
        updated = Expense(**self._validate_payload(merged_payload, current=existing))
        self._records[expense_id] = updated
        self._persist()
        return updated

    def delete(self, expense_id: str) -> Expense:
        expense = self._get_or_raise(expense_id)
        del self._records[expense_id]
        self._persist()
        return expense

    def all(self) -> List[Expense]:
        """Every expense in insertion order, unfiltered."""
        return list(self._records.values())

    def list(self, expense_filter: Optional[ExpenseFilter] = None) -> List[Expense]:
        records = aggregation.filter_expenses(self._records.values(), expense_filter)
        return sorted(records, key=lambda exp: (exp.date, exp.created_at), reverse=True)

    def total(self, expense_filter: Optional[ExpenseFilter] = None) -> Decimal:
        return aggregation.total_of(aggregation.filter_expenses(self._records.values(), expense_filter))

    def clear_category(self, category_id: str) -> int:
        """Make every expense of ``category_id`` uncategorised; return how many changed."""
        changed = 0
        for expense_id, expense in list(self._records.items()):
            if expense.category == category_id:
                self._records[expense_id] = replace(expense, category="")
                changed += 1

        if changed:
            self._persist()
        return changed

    # Internal helpers -----------------------------------------------------
    def _validate_payload(
        self, payload: Dict[str, object], *, current: Optional[Expense] = None
    ) -> Dict[str, object]:
        return {
            "id": current.id if current else self._new_id(),
            "amount": parse_amount(payload.get("amount"), "amount"),
            "description": validate_required_str(payload.get("description"), "description", 200),
            "category": validate_required_str(payload.get("category"), "category", 64),
            "date": validate_date(payload.get("date"), "date"),
            "created_at": current.created_at if current else self._clock(),
        }


class BudgetService(_CollectionService[Budget]):
    """Manages budgets keyed by their derived id: one overall, one per category."""

    label = "Budget"

    def __init__(self, storage: Any, key: str = "budgets") -> None:
        super().__init__(storage, key)

    def _from_dict(self, payload: Dict[str, Any]) -> Budget:
        return Budget.from_dict(payload)

    def upsert(self, payload: Dict[str, object]) -> Budget:
        """Create the budget or replace the one sharing its derived id."""
        budget = Budget(**self._validate_payload(payload))
        if budget.id in self._records:
            logger.debug("Replacing budget %s", budget.id)
        self._records[budget.id] = budget
        self._persist()
        return budget

    def delete(self, budget_id: str) -> Budget:
        budget = self._get_or_raise(budget_id)
        del self._records[budget_id]
        self._persist()
        return budget

    def delete_for_category(self, category_id: str) -> Optional[Budget]:
        budget = self._records.pop(budget_id_for("category", category_id), None)
        if budget is not None:
            self._persist()
        return budget

    def list(self) -> List[Budget]:
        return list(self._records.values())

    def _validate_payload(self, payload: Dict[str, object]) -> Dict[str, object]:
        budget_type = validate_enum(payload.get("type"), "type", BUDGET_TYPES)
        category: Optional[str] = None
        if budget_type == "category":
            raw_category = payload.get("category")
            if raw_category in (None, ""):
                raise ValidationError("category is required for a category budget")
            category = validate_required_str(raw_category, "category", 64)
        return {
            "id": budget_id_for(budget_type, category),
            "type": budget_type,
            "category": category,
            "amount": parse_amount(payload.get("amount"), "amount"),
            "period": validate_enum(payload.get("period"), "period", BUDGET_PERIODS),
        }


# View-models ----------------------------------------------------------------


@dataclass(frozen=True)
class Dashboard:
    total_expenses: Decimal
    monthly_expenses: Decimal
    category_count: int
    budget_status: BudgetStatus
    breakdown: List[CategoryTotal]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_expenses": f"{self.total_expenses:.2f}",
            "monthly_expenses": f"{self.monthly_expenses:.2f}",
            "category_count": self.category_count,
            "budget_status": self.budget_status.to_dict(),
            "breakdown": [row.to_dict() for row in self.breakdown],
        }


@dataclass(frozen=True)
class BudgetView:
    budget: Budget
    title: str
    status: BudgetStatus

    def to_dict(self) -> Dict[str, Any]:
        return {**self.budget.to_dict(), "title": self.title, "status": self.status.to_dict()}


@dataclass
class CommandResult:
    """Outcome of a tracker command: the affected record plus refreshed view-models."""

    value: Any = None
    views: Dict[str, Any] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    @property
    def persisted(self) -> bool:
        return not self.warnings


EXPENSE_VIEWS = ("expenses", "dashboard", "chart", "budgets")
CATEGORY_VIEWS = ("categories", "expenses", "dashboard", "chart", "budgets")
BUDGET_VIEWS = ("budgets", "dashboard")
FILTER_VIEWS = ("expenses", "dashboard", "chart")


class BudgetTracker:
    """Application state: the three collections, the active filter and derived views.

    Every command validates its input before touching a collection, persists the
    affected collections and returns a :class:`CommandResult` carrying the
    refreshed view-models of everything that depends on the change.
    """

    def __init__(
        self,
        storage: Any,
        *,
        id_factory: Optional[IdFactory] = None,
        clock: Optional[Clock] = None,
        today: Optional[TodayProvider] = None,
        seed_defaults: bool = True,
    ) -> None:
        self._today = today or _local_today
        self.category_service = CategoryService(storage, id_factory=id_factory)
        if seed_defaults:
            self.category_service.seed_defaults()
        self.expense_service = ExpenseService(storage, id_factory=id_factory, clock=clock)
        self.budget_service = BudgetService(storage)
        self.filter = ExpenseFilter()
        self._view_builders: Dict[str, Callable[[], Any]] = {
            "expenses": lambda: [self.expense_view(expense) for expense in self.expenses()],
            "categories": lambda: [category.to_dict() for category in self.category_service.list()],
            "budgets": lambda: [view.to_dict() for view in self.budget_overview()],
            "dashboard": lambda: self.dashboard().to_dict(),
            "chart": lambda: self.chart().to_dict(),
        }

    def today(self) -> date:
        return self._today()

    # Expense commands -------------------------------------------------------
    def add_expense(self, payload: Dict[str, object]) -> CommandResult:
        data = dict(payload)
        if data.get("date") in (None, ""):
            data["date"] = self.today()
        self._ensure_category_exists(data.get("category"))
        expense = self.expense_service.add(data)
        return self._result(expense, EXPENSE_VIEWS)

    def update_expense(self, expense_id: str, changes: Dict[str, object]) -> CommandResult:
        if "category" in changes:
            self._ensure_category_exists(changes.get("category"))
        expense = self.expense_service.update(expense_id, changes)
        return self._result(expense, EXPENSE_VIEWS)

    def delete_expense(self, expense_id: str) -> CommandResult:
        expense = self.expense_service.delete(expense_id)
        return self._result(expense, EXPENSE_VIEWS)

    # Category commands ------------------------------------------------------
    def add_category(self, payload: Dict[str, object]) -> CommandResult:
        category = self.category_service.add(payload)
        return self._result(category, CATEGORY_VIEWS)

    def update_category(self, category_id: str, changes: Dict[str, object]) -> CommandResult:
        category = self.category_service.update(category_id, changes)
        return self._result(category, CATEGORY_VIEWS)

    def delete_category(self, category_id: str) -> CommandResult:
        """Delete a category; its expenses become uncategorised and its budget is dropped."""
        category = self.category_service.delete(category_id)
        cleared = self.expense_service.clear_category(category_id)
        dropped = self.budget_service.delete_for_category(category_id)
        logger.info(
            "Deleted category %s: %d expenses uncategorised, budget removed: %s",
            category_id,
            cleared,
            dropped is not None,
        )
        if self.filter.category == category_id:
            self.filter = replace(self.filter, category=None)
        return self._result(category, CATEGORY_VIEWS)

    # Budget commands --------------------------------------------------------
    def set_budget(self, payload: Dict[str, object]) -> CommandResult:
        if validate_enum(payload.get("type"), "type", BUDGET_TYPES) == "category":
            self._ensure_category_exists(payload.get("category"))
        budget = self.budget_service.upsert(payload)
        return self._result(budget, BUDGET_VIEWS)

    def delete_budget(self, budget_id: str) -> CommandResult:
        budget = self.budget_service.delete(budget_id)
        return self._result(budget, BUDGET_VIEWS)

    # Filter commands --------------------------------------------------------
    def apply_filter(self, start: object = None, end: object = None) -> CommandResult:
        start_date = validate_optional_date(start, "start")
        end_date = validate_optional_date(end, "end")
        ensure_date_range(start_date, end_date)
        self.filter = replace(self.filter, start=start_date, end=end_date)
        return self._result(self.filter, FILTER_VIEWS)

    def set_category_filter(self, category_id: Optional[str]) -> CommandResult:
        if category_id:
            self._ensure_category_exists(category_id)
        self.filter = replace(self.filter, category=category_id or None)
        return self._result(self.filter, FILTER_VIEWS)

    def clear_date_filter(self) -> CommandResult:
        self.filter = replace(self.filter, start=None, end=None)
        return self._result(self.filter, FILTER_VIEWS)

    # Queries ----------------------------------------------------------------
    def expenses(
        self, expense_filter: Optional[ExpenseFilter] = None, search: Optional[str] = None
    ) -> List[Expense]:
        active = self.filter if expense_filter is None else expense_filter
        records = self.expense_service.list(active)
        return aggregation.search_expenses(records, search, self.category_service.as_mapping())

    def expense_view(self, expense: Expense) -> Dict[str, Any]:
        name, color = aggregation.resolve_category(expense.category, self.category_service.as_mapping())
        return {**expense.to_dict(), "category_name": name, "category_color": color}

    def dashboard(
        self, expense_filter: Optional[ExpenseFilter] = None, today: Optional[date] = None
    ) -> Dashboard:
        """Dashboard figures; totals use the date part of the filter only."""
        today = today or self.today()
        active = (self.filter if expense_filter is None else expense_filter).dates_only()
        all_expenses = self.expense_service.all()
        selected = aggregation.filter_expenses(all_expenses, active)
        return Dashboard(
            total_expenses=aggregation.total_of(selected),
            monthly_expenses=aggregation.monthly_to_date(all_expenses, today),
            category_count=len(self.category_service),
            budget_status=aggregation.overall_budget_status(
                self.budget_service.list(), all_expenses, today
            ),
            breakdown=aggregation.category_breakdown(selected, self.category_service.as_mapping()),
        )

    def chart(self, expense_filter: Optional[ExpenseFilter] = None) -> ChartSeries:
        active = (self.filter if expense_filter is None else expense_filter).dates_only()
        selected = aggregation.filter_expenses(self.expense_service.all(), active)
        return chart_series(selected, self.category_service.as_mapping())

    def chart_figure(self, expense_filter: Optional[ExpenseFilter] = None, currency_symbol: str = "₹"):
        return build_doughnut(self.chart(expense_filter), currency_symbol=currency_symbol)

    def budget_title(self, budget: Budget) -> str:
        if budget.type == "overall":
            return "Overall Budget"
        category = self.category_service.as_mapping().get(budget.category or "")
        return category.name if category else "Category Budget"

    def budget_overview(self, today: Optional[date] = None) -> List[BudgetView]:
        today = today or self.today()
        all_expenses = self.expense_service.all()
        views = []
        for budget in self.budget_service.list():
            spent = aggregation.budget_spent(budget, all_expenses, today)
            views.append(BudgetView(budget, self.budget_title(budget), aggregation.budget_status(budget, spent)))
        return views

    def snapshot(self) -> Dict[str, List[Dict[str, object]]]:
        """Return serialisable snapshot useful for testing or exports."""
        return {
            "expenses": [expense.to_dict() for expense in self.expense_service.all()],
            "categories": [category.to_dict() for category in self.category_service.list()],
            "budgets": [budget.to_dict() for budget in self.budget_service.list()],
        }

    def drain_warnings(self) -> List[str]:
        warnings: List[str] = []
        for service in (self.category_service, self.expense_service, self.budget_service):
            warnings.extend(service.drain_warnings())
        return warnings

    # Internal helpers -------------------------------------------------------
    def _ensure_category_exists(self, category_id: object) -> None:
        if isinstance(category_id, str) and category_id.strip() and category_id not in self.category_service:
            raise ValidationError(f"Unknown category: {category_id}")

    def _result(self, value: Any, views: Iterable[str]) -> CommandResult:
        return CommandResult(
            value=value,
            views={name: self._view_builders[name]() for name in views},
            warnings=self.drain_warnings(),
        )
