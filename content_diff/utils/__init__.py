"""
Utility helpers used by the migration tool.

This subpackage exposes the run ledger, pre-flight checks and their
exceptions, and the progress meter.
"""

from .ledger import ImportedPostsLedger, RunLedger
from .pre_flight_checks import (
    CollationMismatchError,
    CollationRepairError,
    ConfigurationError,
    MissingTablesError,
    PreFlightCheckError,
)
from .progress import ProgressMeter

__all__ = [
    "ImportedPostsLedger",
    "RunLedger",
    "CollationMismatchError",
    "CollationRepairError",
    "ConfigurationError",
    "MissingTablesError",
    "PreFlightCheckError",
    "ProgressMeter",
]
