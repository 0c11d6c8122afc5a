"""
Shared fixtures for transloader tests.
"""

from typing import Callable, List

import httpx
import pytest

from transloader.config import ClientConfig
from transloader.http import HTTPClient


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it handled."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: List[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)

    def methods(self) -> List[str]:
        return [request.method for request in self.requests]


@pytest.fixture
def make_client(tmp_path):
    """Build an HTTPClient whose requests are answered by ``handler``."""
    clients = []

    def _make(handler: Callable[[httpx.Request], httpx.Response]):
        transport = RecordingTransport(handler)
        client = HTTPClient(ClientConfig(cache_root=tmp_path, timeout=5), transport=transport)
        clients.append(client)
        return client, transport

    yield _make

    for client in clients:
        client.close()
