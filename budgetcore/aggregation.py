"""Pure aggregation functions over expenses, categories and budgets.

Nothing here performs I/O or mutates its inputs. Amounts are ``Decimal`` and
dates are calendar dates, so every figure is reproducible for a given ``today``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .models import OVERALL_BUDGET_ID, UNCATEGORIZED, Budget, Category, Expense, ExpenseFilter

UNCATEGORIZED_NAME = "Uncategorized"
UNCATEGORIZED_COLOR = "#94a3b8"

WARNING_THRESHOLD = Decimal("80")
DANGER_THRESHOLD = Decimal("100")

_ZERO = Decimal("0.00")
_HUNDRED = Decimal("100")

CategoryLookup = Union[Mapping[str, Category], Iterable[Category]]


@dataclass(frozen=True)
class BudgetStatus:
    spent: Decimal
    budget: Decimal
    remaining: Decimal
    percentage: Decimal
    has_budget: bool = True

    @property
    def level(self) -> str:
        """Progress level used to colour the budget bar."""
        if self.percentage >= DANGER_THRESHOLD:
            return "danger"
        if self.percentage >= WARNING_THRESHOLD:
            return "warning"
        return "ok"

    @property
    def over_budget(self) -> bool:
        return self.remaining < 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "spent": f"{self.spent:.2f}",
            "budget": f"{self.budget:.2f}",
            "remaining": f"{self.remaining:.2f}",
            "percentage": f"{self.percentage:.2f}",
            "level": self.level,
            "has_budget": self.has_budget,
        }


@dataclass(frozen=True)
class CategoryTotal:
    category_id: str
    name: str
    color: str
    amount: Decimal
    percentage: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category_id": self.category_id,
            "name": self.name,
            "color": self.color,
            "amount": f"{self.amount:.2f}",
            "percentage": f"{self.percentage:.1f}",
        }


def filter_expenses(expenses: Iterable[Expense], expense_filter: Optional[ExpenseFilter]) -> List[Expense]:
    """Return the expenses matching every clause of the filter, preserving input order."""
    if expense_filter is None or expense_filter.is_empty:
        return list(expenses)
    return [expense for expense in expenses if expense_filter.matches(expense)]


def total_of(expenses: Iterable[Expense]) -> Decimal:
    return sum((expense.amount for expense in expenses), start=_ZERO)


def by_category(expenses: Iterable[Expense]) -> List[Tuple[str, Decimal]]:
    """Sum amounts per category, largest first.

    Expenses without a category fall into the ``"uncategorized"`` bucket.
    Equal sums keep the order in which their category first appears in the
    input: ``sorted`` is stable and the dict preserves first insertion.
    """
    totals: Dict[str, Decimal] = {}
    for expense in expenses:
        key = UNCATEGORIZED if expense.is_uncategorized else expense.category
        totals[key] = totals.get(key, _ZERO) + expense.amount
    return sorted(totals.items(), key=lambda item: item[1], reverse=True)


def period_window(period: str, today: date) -> Tuple[date, date]:
    """Return the inclusive ``(start, end)`` dates of a budget period anchored at ``today``."""
    if period == "monthly":
        return today.replace(day=1), today
    if period == "weekly":
        # date.weekday() counts from Monday; weeks here start on Sunday.
        days_since_sunday = (today.weekday() + 1) % 7
        return today - timedelta(days=days_since_sunday), today
    if period == "yearly":
        return date(today.year, 1, 1), today
    raise ValueError(f"Unknown budget period: {period}")


def monthly_to_date(all_expenses: Iterable[Expense], today: date) -> Decimal:
    start, end = period_window("monthly", today)
    return total_of(filter_expenses(all_expenses, ExpenseFilter(start=start, end=end)))


def budget_spent(budget: Budget, all_expenses: Iterable[Expense], today: date) -> Decimal:
    """Spend counted against ``budget`` in its current period, ignoring any UI filter."""
    start, end = period_window(budget.period, today)
    category = budget.category if budget.type == "category" else None
    window = ExpenseFilter(start=start, end=end, category=category)
    return total_of(filter_expenses(all_expenses, window))


def budget_status(budget: Budget, spent: Decimal) -> BudgetStatus:
    amount = budget.amount
    if amount == 0:
        percentage = Decimal("0.00")
    else:
        percentage = (spent * _HUNDRED / amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return BudgetStatus(
        spent=spent,
        budget=amount,
        remaining=amount - spent,
        percentage=percentage,
    )


def overall_budget_status(
    budgets: Iterable[Budget], all_expenses: Iterable[Expense], today: date
) -> BudgetStatus:
    overall = next((budget for budget in budgets if budget.id == OVERALL_BUDGET_ID), None)
    if overall is None:
        return BudgetStatus(
            spent=_ZERO, budget=_ZERO, remaining=_ZERO, percentage=Decimal("0.00"), has_budget=False
        )
    return budget_status(overall, budget_spent(overall, all_expenses, today))


def _as_mapping(categories: CategoryLookup) -> Mapping[str, Category]:
    if isinstance(categories, Mapping):
        return categories
    return {category.id: category for category in categories}


def resolve_category(category_id: Optional[str], categories: CategoryLookup) -> Tuple[str, str]:
    """Return ``(name, color)`` for a category id, falling back to the neutral uncategorised look."""
    category = _as_mapping(categories).get(category_id or "")
    if category is None:
        return UNCATEGORIZED_NAME, UNCATEGORIZED_COLOR
    return category.name, category.color


def category_breakdown(expenses: Sequence[Expense], categories: CategoryLookup) -> List[CategoryTotal]:
    lookup = _as_mapping(categories)
    total = total_of(expenses)
    rows: List[CategoryTotal] = []
    for category_id, amount in by_category(expenses):
        name, color = resolve_category(category_id, lookup)
        if total > 0:
            share = (amount * _HUNDRED / total).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)
        else:
            share = Decimal("0.0")
        rows.append(CategoryTotal(category_id, name, color, amount, share))
    return rows


def search_expenses(
    expenses: Iterable[Expense], query: Optional[str], categories: CategoryLookup
) -> List[Expense]:
    """Case-insensitive match on description, category name or ISO date."""
    if query is None or not query.strip():
        return list(expenses)
    needle = query.strip().lower()
    lookup = _as_mapping(categories)
    matched = []
    for expense in expenses:
        name, _ = resolve_category(expense.category, lookup)
        haystack = " ".join((expense.description, name, expense.date.isoformat())).lower()
        if needle in haystack:
            matched.append(expense)
    return matched
