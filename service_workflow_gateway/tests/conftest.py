"""
Shared fixtures for Workflow Gateway tests.
"""

import json

import httpx
import pytest

from shared.config import get_config
from shared.test_helpers import InMemoryConnection, InMemoryPool, create_workflow_row
from service_workflow_gateway.app.adapters.upstream_client import UpstreamClient
from service_workflow_gateway.app.persistence.database import Database

JWT_SECRET = "test-secret-for-console-tokens-0123456789"


class UpstreamRecorder:
    """MockTransport handler that remembers requests and replays a response."""

    def __init__(self, status_code: int = 200, payload=None):
        self.status_code = status_code
        self.payload = payload if payload is not None else {
            "code": 0,
            "data": "{\"result\":\"ok\"}",
            "msg": "done",
        }
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if isinstance(self.payload, Exception):
            raise self.payload
        if isinstance(self.payload, str):
            return httpx.Response(self.status_code, text=self.payload)
        return httpx.Response(self.status_code, json=self.payload)

    @property
    def last_json(self):
        return json.loads(self.requests[-1].content)


@pytest.fixture
def upstream():
    return UpstreamRecorder()


@pytest.fixture
def upstream_client(upstream):
    client = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    return UpstreamClient("https://upstream.test/v1", timeout=60.0, client=client)


@pytest.fixture
def connection():
    return InMemoryConnection(workflows=[create_workflow_row()])


@pytest.fixture
def pool(connection):
    return InMemoryPool(connection)


@pytest.fixture
def database(pool):
    return Database("postgresql://unused", pool=pool, retry_base_delay=0)


@pytest.fixture
def service_config():
    return get_config("workflow_gateway", 3001, jwt_secret=JWT_SECRET, env="test")
