"""
Shared fixtures: an in-process fake of the index, personal stores and relay,
served through httpx.MockTransport.
"""

import json
from typing import Any, Dict, List, Optional, Set

import httpx
import pytest
import pytest_asyncio

from connectors.http_transport import HttpTransport
from services.client import GraphitiClient
from services.config_loader import ClientConfig
from storage.kv_store import MemoryKeyValueStore

NEXUS = "https://nexus.test"
RELAY = "https://relay.test/link/"
STORE_ROOT = "https://homeserver.test/{identity}"


class FakePubkyNetwork:
    """Programmable stand-in for Nexus, homeservers and the auth relay."""

    def __init__(self):
        # Homeserver: path -> JSON body
        self.objects: Dict[str, Any] = {}
        self.unreachable: Set[str] = set()
        self.put_status: Optional[int] = None
        self.put_headers: List[Dict[str, str]] = []

        # Nexus
        self.index_body: Any = []
        self.index_status = 200
        self.index_error: Optional[Exception] = None
        self.index_params: List[Dict[str, str]] = []

        # Relay
        self.relay_create_status = 200
        self.relay_create_body: Any = {
            "id": "req-1",
            "approvalUrl": "pubkyauth:///?relay=https://relay.test/link/req-1",
            "statusUrl": "status/req-1",
        }
        self.relay_statuses: List[Any] = []
        self.relay_default_status: Any = {"status": "pending"}

        self.calls: Dict[str, int] = {
            "index": 0,
            "store_get": 0,
            "store_put": 0,
            "relay_create": 0,
            "relay_poll": 0,
        }

    @property
    def network_reads(self) -> int:
        return self.calls["index"] + self.calls["store_get"]

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        host = request.url.host

        if host == "nexus.test":
            self.calls["index"] += 1
            self.index_params.append(dict(request.url.params))
            if self.index_error is not None:
                raise self.index_error
            return httpx.Response(self.index_status, json=self.index_body)

        if host == "homeserver.test":
            identity = request.url.path.strip("/").split("/", 1)[0]
            path = url.split("?", 1)[0]
            if identity in self.unreachable:
                raise httpx.ConnectError("peer offline", request=request)
            if request.method == "PUT":
                self.calls["store_put"] += 1
                self.put_headers.append(dict(request.headers))
                if self.put_status is not None:
                    return httpx.Response(self.put_status)
                self.objects[path] = json.loads(request.content)
                return httpx.Response(201)
            self.calls["store_get"] += 1
            if path in self.objects:
                return httpx.Response(200, json=self.objects[path])
            return httpx.Response(404)

        if host == "relay.test":
            if request.method == "POST":
                self.calls["relay_create"] += 1
                return httpx.Response(self.relay_create_status, json=self.relay_create_body)
            self.calls["relay_poll"] += 1
            step = self.relay_statuses.pop(0) if self.relay_statuses else self.relay_default_status
            if isinstance(step, Exception):
                raise step
            if isinstance(step, int):
                return httpx.Response(step)
            return httpx.Response(200, json=step)

        return httpx.Response(404)

    def mock_transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def make_config(**overrides) -> ClientConfig:
    values = dict(
        nexus_url=NEXUS,
        relay_url=RELAY,
        store_root_template=STORE_ROOT,
        poll_interval_seconds=0.01,
        auth_deadline_seconds=0.3,
        db_path=":memory:",
    )
    values.update(overrides)
    return ClientConfig(**values)


@pytest.fixture
def network():
    return FakePubkyNetwork()


@pytest_asyncio.fixture
async def http(network):
    transport = HttpTransport(transport=network.mock_transport())
    await transport.start()
    yield transport
    await transport.shutdown()


@pytest_asyncio.fixture
async def client_factory(network):
    """Build started clients against the fake network; all closed on teardown."""
    clients = []

    async def build(kv=None, **config_overrides):
        client = GraphitiClient(
            make_config(**config_overrides),
            kv=kv or MemoryKeyValueStore(),
            http_transport=network.mock_transport(),
            on_approval_url=lambda url: None,
        )
        await client.start()
        clients.append(client)
        return client

    yield build

    for client in clients:
        await client.close()


@pytest.fixture
def config_factory():
    return make_config
