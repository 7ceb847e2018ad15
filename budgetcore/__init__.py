"""Core business logic package for the budget tracker."""

from .models import Budget, Category, Expense, ExpenseFilter
from .services import (
    BudgetService,
    BudgetTracker,
    CategoryService,
    CommandResult,
    CounterIds,
    ExpenseService,
)
from .storage import JSONStorage, MemoryStorage
from .exceptions import PersistenceError, ValidationError, RecordNotFoundError

__all__ = [
    "Budget",
    "Category",
    "Expense",
    "ExpenseFilter",
    "BudgetService",
    "BudgetTracker",
    "CategoryService",
    "CommandResult",
    "CounterIds",
    "ExpenseService",
    "JSONStorage",
    "MemoryStorage",
    "PersistenceError",
    "ValidationError",
    "RecordNotFoundError",
]
