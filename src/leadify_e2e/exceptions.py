"""
Exception hierarchy shared by every client and suite.

Clients raise these; suites catch them and turn them into FAIL results.
"""

from typing import Any, Optional


class E2EError(Exception):
    """Base exception for all check failures."""
    pass


class ConfigurationError(E2EError, ValueError):
    """Invalid or inconsistent configuration."""
    pass


class AuthenticationError(E2EError):
    """Login failed or credentials were rejected."""
    pass


class ApiRequestError(E2EError):
    """A backend request failed or returned an unexpected status."""

    def __init__(self, message: str, status_code: Optional[int] = None, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class SupabaseQueryError(E2EError):
    """A Supabase table query failed."""
    pass


class WaitTimeoutError(E2EError):
    """A condition was not met before the wait deadline."""

    def __init__(self, description: str, timeout: float, last_value: Any = None):
        super().__init__(f"Timed out after {timeout:.1f}s waiting for {description}")
        self.description = description
        self.timeout = timeout
        self.last_value = last_value


class BrowserProbeError(E2EError):
    """An expected element or page state could not be found."""
    pass


class LLMProviderError(E2EError):
    """The LLM provider rejected or failed a request."""
    pass


class SkipCheck(Exception):
    """Raised inside a check to mark it as skipped rather than failed."""
    pass
