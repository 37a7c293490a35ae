"""
Remote status API client for the status sweeper.

This module wraps the rate-limited third-party read API and turns its
responses into status snapshots or typed fetch errors.
"""

from typing import Any

import httpx
import structlog

from .config import StatusApiConfig
from .exceptions import RemoteError, TransportError

logger = structlog.get_logger(__name__)

Snapshot = dict[str, Any]


def mask_credential(credential: str) -> str:
    """Return a log-safe representation of a credential."""
    if len(credential) <= 4:
        return "****"
    return f"{credential[:2]}...{credential[-2:]}"


class StatusClient:
    """
    Client for per-entity status snapshots.

    The client does no rate limiting of its own; callers must obtain a
    credential from the admission controller before each call.
    """

    def __init__(
        self,
        config: StatusApiConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the status client.

        Args:
            config: Status API configuration
            http_client: Optional pre-built client (used to inject transports)
        """
        self.config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            headers={"Accept": "application/json"},
        )

    async def fetch_status(self, entity_id: str, credential: str) -> Snapshot:
        """
        Fetch the current status snapshot for one entity.

        Args:
            entity_id: Entity identifier
            credential: Credential to authorize the call with

        Returns:
            Status snapshot

        Raises:
            TransportError: Network failure or non-2xx response
            RemoteError: Response body carries an explicit error field
        """
        path = self.config.status_path_template.format(entity_id=entity_id)
        return await self._request(path, credential, entity_id=entity_id)

    async def fetch_own_status(self, credential: str) -> Snapshot:
        """
        Fetch the status snapshot of the account that owns the credential.

        Args:
            credential: Credential to authorize the call with

        Returns:
            Status snapshot
        """
        return await self._request(self.config.own_status_path, credential)

    async def _request(
        self, path: str, credential: str, entity_id: str | None = None
    ) -> Snapshot:
        context = {"entity_id": entity_id, "path": path}
        try:
            response = await self._client.get(
                path, params={self.config.credential_param: credential}
            )
        except httpx.HTTPError as e:
            logger.debug(
                "Status request failed",
                entity_id=entity_id,
                credential=mask_credential(credential),
                error=str(e),
            )
            raise TransportError(f"Request failed: {e}", context=context) from e

        if not response.is_success:
            raise TransportError(
                f"HTTP {response.status_code}",
                status_code=response.status_code,
                context=context,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(
                "Invalid JSON in response",
                status_code=response.status_code,
                context=context,
            ) from e

        if not isinstance(data, dict):
            raise TransportError(
                f"Unexpected response type: {type(data).__name__}",
                status_code=response.status_code,
                context=context,
            )

        if data.get("error"):
            raise RemoteError(self._error_message(data["error"]), context=context)

        payload = data.get(self.config.payload_field)
        if isinstance(payload, dict):
            return payload
        return data

    @staticmethod
    def _error_message(error: Any) -> str:
        if isinstance(error, dict):
            message = error.get("error") or error.get("message")
            return str(message) if message else "API error"
        return str(error)

    async def close(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()
