from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from budgetcore.models import Expense
from budgetcore.services import BudgetTracker, CounterIds
from budgetcore.storage import MemoryStorage

# A Wednesday; the surrounding week starts on Sunday 2024-01-21.
TODAY = date(2024, 1, 24)
NOW = datetime(2024, 1, 24, 9, 30, tzinfo=timezone.utc)


def make_expense(expense_id, amount, category, day, description="Item"):
    return Expense(
        id=expense_id,
        amount=Decimal(str(amount)),
        description=description,
        category=category,
        date=day,
        created_at=NOW,
    )


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def tracker(storage):
    return BudgetTracker(
        storage,
        id_factory=CounterIds(prefix="id-"),
        clock=lambda: NOW,
        today=lambda: TODAY,
    )
