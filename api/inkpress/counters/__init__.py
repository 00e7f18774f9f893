"""Denormalized counters and their reconciliation."""

from inkpress.counters.reconcile import (
    ReconciliationReport,
    ReconciliationService,
    ReconciliationWorker,
)
from inkpress.counters.service import CounterEngine


__all__ = [
    "CounterEngine",
    "ReconciliationReport",
    "ReconciliationService",
    "ReconciliationWorker",
]
