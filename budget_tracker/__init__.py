"""Command-line adapter for the budget tracker."""
