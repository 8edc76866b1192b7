"""Shared fixtures: an in-process fake of the Spanner REST API."""

import json
from typing import Any, Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from spanner_client import ClientConfig, SpannerClient

DATABASE = "projects/test-project/instances/test-instance/databases/test-db"


class FakeSpanner:
    """
    Minimal Spanner REST emulator.

    Every request is recorded in ``requests`` as ``(method, path, body)``
    with the ``/v1/`` prefix stripped. ``failures`` maps an action name
    ("createSession", "beginTransaction", "executeSql", "commit",
    "rollback", "deleteSession") to a ``(status, text)`` response.
    """

    def __init__(self):
        self.requests: List[Tuple[str, str, Optional[Dict[str, Any]]]] = []
        self.failures: Dict[str, Tuple[int, str]] = {}
        self.execute_results: List[Any] = []
        self.commit_response: Dict[str, Any] = {"commitTimestamp": "2024-01-01T00:00:00.123456Z"}
        self.operation_polls = 0
        self._sessions = 0
        self._transactions = 0

    def app(self) -> web.Application:
        app = web.Application()
        app.router.add_route("*", "/v1/{path:.*}", self.handle)
        return app

    def bodies(self, action: str) -> List[Dict[str, Any]]:
        return [body for _, path, body in self.requests if path.endswith(f":{action}")]

    async def handle(self, request: web.Request) -> web.Response:
        path = request.match_info["path"]
        text = await request.text()
        body = json.loads(text) if text else None
        self.requests.append((request.method, path, body))

        action = self._action(request.method, path)
        if action in self.failures:
            status, message = self.failures[action]
            return web.Response(status=status, text=message)

        if action == "createSession":
            self._sessions += 1
            return web.json_response({"name": f"{path}/s{self._sessions}"})
        if action == "deleteSession":
            return web.Response(status=200)
        if action == "beginTransaction":
            self._transactions += 1
            return web.json_response({"id": f"tx{self._transactions}"})
        if action == "executeSql":
            if self.execute_results:
                result = self.execute_results.pop(0)
                if isinstance(result, tuple):
                    status, message = result
                    return web.Response(status=status, text=message)
                return web.json_response(result)
            return web.json_response({"metadata": {"rowType": {"fields": []}}})
        if action == "commit":
            return web.json_response(self.commit_response)
        if action == "rollback":
            return web.Response(status=200)
        if action == "createInstance":
            return web.json_response({"name": f"{path}/new/operations/op1", "done": False})
        if action == "createDatabase":
            return web.json_response({"name": f"{path}/new/operations/op2", "done": True})
        if action == "getOperation":
            self.operation_polls += 1
            return web.json_response({"name": path, "done": True})
        return web.Response(status=404, text=f"unknown path {path}")

    @staticmethod
    def _action(method: str, path: str) -> str:
        if ":" in path:
            return path.rsplit(":", 1)[1]
        if "/operations/" in path:
            return "getOperation"
        if method == "POST" and path.endswith("/sessions"):
            return "createSession"
        if method == "DELETE" and "/sessions/" in path:
            return "deleteSession"
        if method == "POST" and path.endswith("/instances"):
            return "createInstance"
        if method == "POST" and path.endswith("/databases"):
            return "createDatabase"
        return "unknown"


@pytest.fixture
def fake_spanner():
    return FakeSpanner()


@pytest_asyncio.fixture
async def server(fake_spanner):
    server = TestServer(fake_spanner.app())
    await server.start_server()
    yield server
    await server.close()


@pytest_asyncio.fixture
async def client(server):
    config = ClientConfig(url=str(server.make_url("")).rstrip("/"), operation_poll_interval=0)
    async with SpannerClient(config=config) as client:
        yield client


@pytest_asyncio.fixture
async def handler_server():
    """Factory serving one aiohttp handler for every path."""
    servers = []

    async def factory(handler):
        app = web.Application()
        app.router.add_route("*", "/{path:.*}", handler)
        server = TestServer(app)
        await server.start_server()
        servers.append(server)
        return server

    yield factory

    for server in servers:
        await server.close()


@pytest.fixture
def database(client):
    return client.database("test-project", "test-instance", "test-db")


def result_set(fields, rows, row_count=None):
    """Build an executeSql response body from ``(name, code)`` pairs."""
    data = {
        "metadata": {"rowType": {"fields": [{"name": n, "type": {"code": c}} for n, c in fields]}},
        "rows": rows,
    }
    if row_count is not None:
        data["stats"] = {"rowCountExact": str(row_count)}
    return data
