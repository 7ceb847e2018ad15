"""Domain-specific exceptions for the budget tracker core services."""

class ValidationError(ValueError):
    """Raised when provided data does not meet validation requirements."""


class RecordNotFoundError(LookupError):
    """Raised when an expense, category or budget cannot be located."""


class PersistenceError(IOError):
    """Raised when the persistence layer cannot read or write a collection."""
