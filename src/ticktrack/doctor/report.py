"""Diagnostic results and the report that aggregates them."""

from dataclasses import dataclass, field
from typing import Any

from ticktrack.core.constants import Severity


@dataclass
class CheckResult:
    """Outcome of one diagnostic check.

    A passing result has empty details and suggestion. A failing result
    carries what is wrong and how to fix it.
    """

    name: str
    passed: bool
    severity: Severity = Severity.ERROR
    details: str = ""
    suggestion: str = ""

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "passed": self.passed,
            "severity": self.severity.value,
            "details": self.details,
            "suggestion": self.suggestion,
        }


@dataclass
class DiagnosticReport:
    """All check results from one diagnostic run."""

    results: list[CheckResult] = field(default_factory=list)

    def add(self, results: list[CheckResult]) -> None:
        """Append results from a check."""
        self.results.extend(results)

    @property
    def failures(self) -> list[CheckResult]:
        """Get failing results."""
        return [r for r in self.results if not r.passed]

    @property
    def error_count(self) -> int:
        """Count failing results with error severity."""
        return sum(1 for r in self.failures if r.severity == Severity.ERROR)

    @property
    def warning_count(self) -> int:
        """Count failing results with warning severity."""
        return sum(1 for r in self.failures if r.severity == Severity.WARNING)

    @property
    def has_errors(self) -> bool:
        """Check if any error-severity check failed."""
        return self.error_count > 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "results": [r.to_dict() for r in self.results],
            "errors": self.error_count,
            "warnings": self.warning_count,
        }
