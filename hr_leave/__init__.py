"""HR Leave — multi-tenant leave balance accounting and request lifecycle."""

__version__ = "1.0.0"
