"""
Spanner Python Client

Async client for the Spanner REST API (or its emulator).

@version 1.0.0
@author spanner-client developers
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

import aiohttp

from .database import Database, Instance
from .types import ConnectionError, OperationError, RemoteError

logger = logging.getLogger(__name__)

DEFAULT_URL = "http://localhost:9020"


@dataclass
class ClientConfig:
    """Configuration for the Spanner client."""
    url: str = DEFAULT_URL
    timeout: float = 30.0
    operation_poll_interval: float = 0.5

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """
        Build a config from environment variables.

        ``SPANNER_REST_URL`` wins over ``SPANNER_EMULATOR_HOST`` (host:port,
        served over plain HTTP). ``SPANNER_TIMEOUT`` sets the request timeout.
        """
        config = cls()

        emulator_host = os.environ.get("SPANNER_EMULATOR_HOST")
        if emulator_host:
            config.url = f"http://{emulator_host}"

        rest_url = os.environ.get("SPANNER_REST_URL")
        if rest_url:
            config.url = rest_url

        timeout = os.environ.get("SPANNER_TIMEOUT")
        if timeout:
            config.timeout = float(timeout)

        config.url = config.url.rstrip("/")
        return config


class SpannerClient:
    """
    Async client for Spanner.

    Example:
        async with SpannerClient("http://localhost:9020") as client:
            database = client.database("my-project", "my-instance", "my-db")
            async with database.session() as session:
                async with session.transaction(TransactionMode.READ_ONLY) as tx:
                    result = await tx.execute_sql("SELECT 1")
    """

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        config: Optional[ClientConfig] = None,
    ):
        """
        Initialize the Spanner client.

        Args:
            url: REST endpoint (e.g., "http://localhost:9020"); defaults to
                the environment, then to the local emulator
            timeout: Request timeout in seconds
            config: Full configuration; ``url``/``timeout`` override it
        """
        self.config = replace(config) if config is not None else ClientConfig.from_env()
        if url is not None:
            self.config.url = url.rstrip("/")
        if timeout is not None:
            self.config.timeout = timeout
        self._session: Optional[aiohttp.ClientSession] = None

    async def __aenter__(self) -> "SpannerClient":
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    async def connect(self) -> None:
        """Open the underlying HTTP session."""
        if self._session is not None:
            return

        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        self._session = aiohttp.ClientSession(timeout=timeout)

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session:
            await self._session.close()
            self._session = None

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    async def _request(
        self,
        method: str,
        path: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Make an HTTP request against ``/v1/{path}``.

        Returns the decoded JSON body, or an empty dict for an empty body.
        """
        if self._session is None:
            raise ConnectionError("Client not connected. Call connect() first.")

        url = f"{self.config.url}/v1/{path.lstrip('/')}"
        logger.debug(">>> %s %s: %s", method, url, json.dumps(data) if data is not None else "no data")

        try:
            async with self._session.request(
                method,
                url,
                headers=self._headers(),
                json=data,
            ) as resp:
                return await self._handle_response(resp)
        except aiohttp.ClientError as e:
            raise ConnectionError(f"Request failed: {e}")
        except asyncio.TimeoutError:
            raise ConnectionError(f"Request timed out after {self.config.timeout}s: {method} {url}")

    async def _handle_response(self, resp: aiohttp.ClientResponse) -> Dict[str, Any]:
        """Check the status and decode the body."""
        text = await resp.text()
        logger.debug("<<< %s: %s", resp.status, text or "no data")

        if resp.status < 200 or resp.status >= 300:
            raise RemoteError(
                f"Request to {resp.url} failed ({resp.status}): {text}",
                status=resp.status,
            )

        if not text.strip():
            return {}

        try:
            body = json.loads(text)
        except ValueError:
            raise RemoteError(f"Unrecognized response from {resp.url}: {text}", status=resp.status)

        if not isinstance(body, dict):
            raise RemoteError(f"Unrecognized response from {resp.url}: {text}", status=resp.status)
        return body

    # =========================================================================
    # Resource handles
    # =========================================================================

    def instance(self, project: str, instance: str) -> Instance:
        """Handle for an existing instance."""
        return Instance(self, project, instance)

    def database(self, project: str, instance: str, database: str) -> Database:
        """Handle for an existing database."""
        return Database(self, f"projects/{project}/instances/{instance}/databases/{database}")

    async def create_instance(
        self,
        project: str,
        instance_id: str,
        *,
        config: str = "emulator-config",
        node_count: int = 1,
        display_name: Optional[str] = None,
    ) -> Instance:
        """
        Create an instance and wait for the operation to finish.

        Args:
            project: Project id
            instance_id: New instance id
            config: Instance configuration name
            node_count: Number of nodes
            display_name: Human-readable name (defaults to ``instance_id``)

        Returns:
            Instance handle
        """
        payload = {
            "instanceId": instance_id,
            "instance": {
                "config": config,
                "nodeCount": node_count,
                "displayName": display_name or instance_id,
            },
        }
        operation = await self._request("POST", f"projects/{project}/instances", payload)
        await self.wait_for_operation(operation)
        logger.info("Created instance projects/%s/instances/%s", project, instance_id)
        return self.instance(project, instance_id)

    async def wait_for_operation(self, operation: Dict[str, Any]) -> Dict[str, Any]:
        """
        Poll a long-running operation until it is done.

        Raises:
            OperationError: If the operation finished with an error
        """
        while not operation.get("done"):
            name = operation.get("name")
            if not name:
                raise RemoteError(f"Unrecognized operation: {operation}")
            await asyncio.sleep(self.config.operation_poll_interval)
            operation = await self._request("GET", name)

        error = operation.get("error")
        if error:
            raise OperationError(f"Operation {operation.get('name')} failed: {error}")
        return operation
