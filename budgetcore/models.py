"""Data models for the budget tracker domain."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

__all__ = [
    "Budget",
    "Category",
    "Expense",
    "ExpenseFilter",
    "OVERALL_BUDGET_ID",
    "UNCATEGORIZED",
    "budget_id_for",
    "isoformat_utc",
    "parse_date",
    "parse_datetime",
]

UNCATEGORIZED = "uncategorized"
OVERALL_BUDGET_ID = "overall"


def isoformat_utc(dt: datetime) -> str:
    """Return an ISO 8601 string with trailing Z for UTC-aware datetimes."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    iso = dt.isoformat(timespec="seconds")
    return iso.replace("+00:00", "Z")


def parse_datetime(value: str) -> datetime:
    """Parse ISO 8601 datetime strings with optional trailing Z into UTC-aware datetime."""
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        # Naive datetimes are treated as UTC.
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_date(value: str) -> date:
    """Parse a calendar date, accepting a full ISO datetime and keeping its date part."""
    value = value.strip()
    if len(value) > 10:
        return parse_datetime(value).date()
    return date.fromisoformat(value)


def budget_id_for(budget_type: str, category: Optional[str]) -> str:
    """Derive the upsert key of a budget: one overall budget, one per category."""
    if budget_type == OVERALL_BUDGET_ID:
        return OVERALL_BUDGET_ID
    return f"category-{category}"


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    color: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "color": self.color}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Category":
        return cls(id=str(data["id"]), name=data["name"], color=data.get("color") or "#94a3b8")


@dataclass(frozen=True)
class Expense:
    id: str
    amount: Decimal
    description: str
    category: str
    date: date
    created_at: datetime

    @property
    def is_uncategorized(self) -> bool:
        return not self.category

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the expense to JSON-friendly natives."""
        return {
            "id": self.id,
            "amount": f"{self.amount:.2f}",
            "description": self.description,
            "category": self.category,
            "date": self.date.isoformat(),
            "created_at": isoformat_utc(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Expense":
        """Hydrate an Expense from JSON-native data.

        Records exported from the browser version store the amount as a number
        and the creation instant as ``timestamp`` in epoch milliseconds; both
        shapes are accepted.
        """
        if data.get("created_at"):
            created_at = parse_datetime(data["created_at"])
        elif data.get("timestamp") is not None:
            created_at = datetime.fromtimestamp(int(data["timestamp"]) / 1000, tz=timezone.utc)
        else:
            created_at = datetime.fromtimestamp(0, tz=timezone.utc)
        return cls(
            id=str(data["id"]),
            amount=Decimal(str(data["amount"])),
            description=data.get("description") or "",
            category=str(data.get("category") or ""),
            date=parse_date(data["date"]),
            created_at=created_at,
        )


@dataclass(frozen=True)
class Budget:
    id: str
    type: str
    category: Optional[str]
    amount: Decimal
    period: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "category": self.category,
            "amount": f"{self.amount:.2f}",
            "period": self.period,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Budget":
        budget_type = data["type"]
        category = data.get("category") or None
        return cls(
            id=data.get("id") or budget_id_for(budget_type, category),
            type=budget_type,
            category=str(category) if category is not None else None,
            amount=Decimal(str(data["amount"])),
            period=data["period"],
        )


@dataclass(frozen=True)
class ExpenseFilter:
    """Transient selection applied to the expense list; never persisted."""

    start: Optional[date] = None
    end: Optional[date] = None
    category: Optional[str] = None

    def matches(self, expense: Expense) -> bool:
        if self.start is not None and expense.date < self.start:
            return False
        # The end bound covers the whole day, so comparing calendar dates is inclusive.
        if self.end is not None and expense.date > self.end:
            return False
        if self.category and expense.category != self.category:
            return False
        return True

    def dates_only(self) -> "ExpenseFilter":
        return ExpenseFilter(start=self.start, end=self.end)

    @property
    def is_empty(self) -> bool:
        return self.start is None and self.end is None and not self.category
