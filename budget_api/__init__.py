"""HTTP adapter for the budget tracker."""
