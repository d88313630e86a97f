"""SMTP TLS Reporting (RFC 8460) receiver and alert notifier."""

__version__ = "1.0.0"
