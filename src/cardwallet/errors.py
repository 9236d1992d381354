"""errors.py — exception taxonomy shared by the API client, wallet and CLI.

  ValidationError   bad or missing required field (never retried)
  NetworkError      transport failure; retryable
  ApiError          non-2xx response, carries the HTTP status
  StorageParseError corrupt JSON under a store key
  SyncStateError    review operation called in the wrong state
"""
from __future__ import annotations


class CardWalletError(Exception):
    pass


class ValidationError(CardWalletError):
    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class NetworkError(CardWalletError):
    def __init__(self, message: str, retries_left: int = 0):
        super().__init__(message)
        self.retries_left = retries_left


class ApiError(CardWalletError):
    def __init__(self, message: str, status: int = 500):
        super().__init__(message)
        self.status = status


class StorageParseError(CardWalletError):
    def __init__(self, key: str, message: str):
        super().__init__(f"{key}: {message}")
        self.key = key


class SyncStateError(CardWalletError):
    pass


def describe_error(exc: Exception, action: str = "save") -> tuple[str, bool]:
    """Map an error to (user message, keep_editing).

    keep_editing tells an edit screen whether to stay open so the user can
    retry or fix the input.
    """
    if isinstance(exc, ValidationError):
        where = f" ({exc.field})" if exc.field else ""
        return f"Please fix the card{where}: {exc}", True
    if isinstance(exc, NetworkError):
        return f"Could not reach the server to {action} the card. Please try again.", True
    if isinstance(exc, ApiError):
        if exc.status == 404:
            return "This card no longer exists on the server.", False
        if exc.status in (401, 403):
            return "Your session has expired. Please log in again.", False
        return f"The server could not {action} the card ({exc.status}): {exc}", True
    return f"Unexpected error while trying to {action} the card: {exc}", True
