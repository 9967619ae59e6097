"""MailScanner: client for a remote mail-indexing API with quota-aware local storage."""

__version__ = "0.1.0"
