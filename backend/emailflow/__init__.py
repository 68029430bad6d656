"""EmailFlow - email marketing backend with CRM delivery reconciliation."""

__version__ = "1.0.0"
