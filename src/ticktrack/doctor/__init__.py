"""Diagnostics for a tick directory."""

from ticktrack.doctor.checks import ALL_CHECKS, run_diagnostics
from ticktrack.doctor.report import CheckResult, DiagnosticReport

__all__ = ["ALL_CHECKS", "CheckResult", "DiagnosticReport", "run_diagnostics"]
