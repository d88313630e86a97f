"""
FastAPI dependencies for the TLS-RPT notifier.
"""

from tlsrpt_notifier.dependencies.alerting import get_dispatcher

__all__ = [
    "get_dispatcher",
]
