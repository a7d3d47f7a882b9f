"""Background tasks module for Prometheus.

This module contains the scheduled subscription renewal task.
"""

from prometheus_sync.tasks.scheduler import RenewalScheduler

__all__ = [
    "RenewalScheduler",
]
