"""Observability: liveness/readiness reports and metrics snapshot."""

from .health import liveness_report, readiness_report
from .metrics import get_metrics

__all__ = [
    "liveness_report",
    "readiness_report",
    "get_metrics",
]
