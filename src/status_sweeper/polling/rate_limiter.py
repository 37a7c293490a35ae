"""
Credential pool admission control for the status sweeper.

This module hands out credentials from a shared pool while keeping every
credential within its per-window request quota.
"""

import math
import threading
import time
from collections.abc import Callable, Iterable
from typing import Any

import structlog

from ..config import AdmissionConfig
from ..status_client import mask_credential

logger = structlog.get_logger(__name__)

PoolListener = Callable[[], None]


class UsageWindow:
    """Usage counter for one credential over a fixed-length window."""

    def __init__(self, window_start: float) -> None:
        self.window_start = window_start
        self.count = 0

    def refresh(self, now: float, window_seconds: float) -> None:
        """Reset the window if it has elapsed."""
        if now - self.window_start >= window_seconds:
            self.window_start = now
            self.count = 0


class AdmissionController:
    """
    Admission controller over a pool of interchangeable credentials.

    Both schedulers share one instance. Selection and commit happen
    under a single lock in reserve(), so two consumers ticking at the
    same moment cannot both spend the last unit of a credential's quota.
    """

    def __init__(
        self,
        config: AdmissionConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the admission controller.

        Args:
            config: Quota configuration
            clock: Monotonic time source in seconds
        """
        self.config = config or AdmissionConfig()
        self._clock = clock
        self._lock = threading.RLock()
        self._credentials: list[str] = []
        self._usage: dict[str, UsageWindow] = {}
        self._next_index = 0
        self._listeners: list[PoolListener] = []

    @property
    def pool_size(self) -> int:
        return len(self._credentials)

    def has_credentials(self) -> bool:
        return bool(self._credentials)

    def set_credentials(self, tokens: Iterable[str]) -> None:
        """
        Replace the credential pool.

        Usage state is kept for tokens that stay in the pool and dropped for
        the rest. The round-robin cursor restarts at the first credential.

        Args:
            tokens: New credentials; blanks are ignored and duplicates collapse
        """
        credentials: list[str] = []
        for token in tokens:
            token = (token or "").strip()
            if token and token not in credentials:
                credentials.append(token)

        with self._lock:
            self._credentials = credentials
            self._usage = {
                token: window
                for token, window in self._usage.items()
                if token in credentials
            }
            self._next_index = 0
            listeners = list(self._listeners)

        logger.info(
            "Credential pool updated",
            pool_size=len(credentials),
            effective_interval_ms=self.effective_interval_ms(),
        )

        for listener in listeners:
            listener()

    def add_listener(self, listener: PoolListener) -> None:
        """Register a callback invoked after every pool change."""
        with self._lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: PoolListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def acquire(self) -> str | None:
        """
        Select a credential with remaining quota.

        Candidates are checked round-robin starting from the last successful
        index, at most once each.

        Returns:
            A credential, or None when every credential is exhausted
        """
        with self._lock:
            pool_size = len(self._credentials)
            if pool_size == 0:
                return None

            now = self._clock()
            for offset in range(pool_size):
                index = (self._next_index + offset) % pool_size
                credential = self._credentials[index]
                if self._remaining(credential, now) > 0:
                    self._next_index = index
                    return credential

            return None

    def record_use(self, credential: str) -> None:
        """Count one request against a credential's current window."""
        with self._lock:
            if credential not in self._credentials:
                logger.debug(
                    "Ignoring use of credential outside the pool",
                    credential=mask_credential(credential),
                )
                return

            now = self._clock()
            window = self._usage.get(credential)
            if window is None:
                window = UsageWindow(now)
                self._usage[credential] = window
            window.refresh(now, self.config.window_seconds)
            window.count += 1

    def reserve(self) -> str | None:
        """
        Acquire a credential and record its use as one critical section.

        Returns:
            A credential that has already been charged, or None if the caller
            must wait
        """
        with self._lock:
            credential = self.acquire()
            if credential is not None:
                self.record_use(credential)
            return credential

    def effective_interval_ms(self) -> int:
        """
        Minimum spacing between any two calls system-wide.

        Returns:
            ceil(window / (quota * pool_size)) in milliseconds, or the fallback
            interval when the pool is empty
        """
        pool_size = self.pool_size
        if pool_size == 0:
            return self.config.fallback_interval_ms

        window_ms = self.config.window_seconds * 1000
        return math.ceil(window_ms / (self.config.quota_per_credential * pool_size))

    def _remaining(self, credential: str, now: float) -> int:
        window = self._usage.get(credential)
        if window is None:
            return self.config.quota_per_credential
        window.refresh(now, self.config.window_seconds)
        return self.config.quota_per_credential - window.count

    def get_stats(self) -> dict[str, Any]:
        """Get pool statistics with masked credentials."""
        with self._lock:
            now = self._clock()
            usage = {}
            for credential in self._credentials:
                remaining = self._remaining(credential, now)
                usage[mask_credential(credential)] = {
                    "used": self.config.quota_per_credential - remaining,
                    "remaining": remaining,
                }

        return {
            "pool_size": self.pool_size,
            "quota_per_credential": self.config.quota_per_credential,
            "window_seconds": self.config.window_seconds,
            "effective_interval_ms": self.effective_interval_ms(),
            "usage": usage,
        }
