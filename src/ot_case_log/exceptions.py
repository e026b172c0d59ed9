"""Custom exceptions for the case log."""

from __future__ import annotations

from dataclasses import dataclass


class CaseLogError(Exception):
    """Base exception for case log errors."""

    pass


@dataclass(frozen=True)
class FieldError:
    """A single failed constraint on a case field."""

    field: str
    rule: str

    def __str__(self) -> str:
        return f"{self.field}: {self.rule}"


class CaseValidationError(CaseLogError):
    """Raised when a candidate case fails schema validation.

    Carries every failing field so a form can show them inline. The first
    failure is also exposed directly as ``field`` / ``rule``.
    """

    def __init__(self, errors: list[FieldError]):
        if not errors:
            raise ValueError("CaseValidationError needs at least one field error")
        self.errors = errors
        super().__init__("; ".join(str(e) for e in errors))

    @property
    def field(self) -> str:
        return self.errors[0].field

    @property
    def rule(self) -> str:
        return self.errors[0].rule

    def fields(self) -> list[str]:
        """Names of all failing fields, in report order."""
        return [e.field for e in self.errors]


class RecordNotFoundError(CaseLogError):
    """Raised when a case id does not exist for the user."""

    pass


class PersistenceError(CaseLogError):
    """Raised when the record store cannot read or write a document."""

    pass


class SaveFailedError(CaseLogError):
    """Raised by the form when a validated case could not be persisted."""

    pass


class AdvisoryError(CaseLogError):
    """Raised when an advisory (LLM) call fails or returns garbage."""

    pass


class ConfigurationError(CaseLogError):
    """Raised when configuration is invalid."""

    pass
