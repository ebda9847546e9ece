"""
errors.py — exception taxonomy shared by every layer.

Request errors (surfaced to the HTTP caller):
  ValidationError      → 400
  NotFoundError        → 404

Adapter errors (recovered by the fallback chain, never sent to the client):
  AdapterError
    ├── AdapterUnavailable     network / provider failure, overload, timeout
    │     ├── RateLimited      provider throttled, no retry of the same adapter
    │     └── MissingCredentials  API key not configured, fails fast
    └── UnparseableResponse    provider replied, but not in the expected schema
"""
from __future__ import annotations


class ValidationError(Exception):
    """Missing or malformed request field."""


class NotFoundError(Exception):
    """Unknown analysis id."""

    def __init__(self, analysis_id: str):
        super().__init__(f"Analysis not found: {analysis_id}")
        self.analysis_id = analysis_id


class AdapterError(Exception):
    """Base class for every failure raised by an external capability adapter."""

    def __init__(self, source: str, message: str = ""):
        super().__init__(f"[{source}] {message}" if message else f"[{source}] failed")
        self.source = source


class AdapterUnavailable(AdapterError):
    pass


class RateLimited(AdapterUnavailable):
    pass


class MissingCredentials(AdapterUnavailable):

    def __init__(self, source: str, key_name: str):
        super().__init__(source, f"{key_name} is not configured")
        self.key_name = key_name


class UnparseableResponse(AdapterError):
    pass
