"""lineform test suite."""
