"""
Error types shared by the provider clients, workflows and the API layer.

  ConfigurationError   — missing / conflicting credentials, raised at client construction
  ProviderRequestError — any failed vendor call (transport, timeout, non-2xx, vendor error payload)
  WorkflowError        — a pipeline outcome that must abort the request (404 / 500)
"""

from typing import Optional


class ConfigurationError(ValueError):
    """Raised when a provider client cannot be built from the supplied settings."""


class ProviderRequestError(Exception):
    def __init__(
        self,
        vendor: str,
        operation: str,
        message: str,
        status_code: Optional[int] = None,
    ):
        self.vendor = vendor
        self.operation = operation
        self.message = message
        self.status_code = status_code
        super().__init__(f"{vendor} {operation} failed: {message}")


class WorkflowError(Exception):
    """Aborts a workflow with an HTTP status and a user-facing message."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(message)
