"""
Custom exceptions for the status sweeper.

This module defines the error taxonomy shared by the status client,
the durable store and the schedulers.
"""

from typing import Any


class StatusSweeperError(Exception):
    """Base exception for status sweeper errors."""

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code or "STATUS_SWEEPER_ERROR"
        self.context = context or {}


class FetchError(StatusSweeperError):
    """Base exception for a failed per-entity status fetch."""


class TransportError(FetchError):
    """Exception for network failures and non-2xx responses."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "TRANSPORT_ERROR", context)
        self.status_code = status_code


class RemoteError(FetchError):
    """Exception for an API response that carries an explicit error field."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "REMOTE_ERROR", context)


class DirectoryEmptyError(StatusSweeperError):
    """Exception for an entity directory with nothing to track."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "DIRECTORY_EMPTY", context)


class StoreError(StatusSweeperError):
    """Exception for durable store read/write failures."""

    def __init__(
        self,
        message: str,
        collection: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, "STORE_ERROR", context)
        self.collection = collection


class ConfigurationError(StatusSweeperError):
    """Exception for configuration related errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message, "CONFIGURATION_ERROR", context)
