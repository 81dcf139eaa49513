from __future__ import annotations


class GenerationError(Exception):
    """Base class for failures scoped to a single report generation."""


class InputValidationError(GenerationError):
    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = dict(errors)
        first = next(iter(self.errors.values()), "Invalid input")
        super().__init__(first)


class LookupFetchError(GenerationError):
    def __init__(self, table: str, message: str) -> None:
        self.table = table
        super().__init__(message)


class GenerationBusy(GenerationError):
    pass
