"""Learner progress: enrollments, completion marks and course aggregation."""

from .aggregator import ProgressAggregator, ProgressSnapshot, calculate_percentage
from .maintainer import ConsistencyMaintainer
from .repository import (
    CassandraCompletionLedger,
    CassandraEnrollmentLedger,
    InMemoryCompletionLedger,
    InMemoryEnrollmentLedger,
)
from .service import ProgressService


__all__ = [
    "CassandraCompletionLedger",
    "CassandraEnrollmentLedger",
    "ConsistencyMaintainer",
    "InMemoryCompletionLedger",
    "InMemoryEnrollmentLedger",
    "ProgressAggregator",
    "ProgressService",
    "ProgressSnapshot",
    "calculate_percentage",
]
