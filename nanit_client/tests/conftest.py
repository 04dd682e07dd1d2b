import json

import httpx
import pytest

from nanit_client.session_store import MemoryTokenStorage, SessionStore
from nanit_client.vendor_client import VendorClient

BASE_URL = "https://api.nanit.test"


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler):
        self.requests = []

        def recording_handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(recording_handler)

    def json_bodies(self):
        return [json.loads(r.content) if r.content else None for r in self.requests]


@pytest.fixture
def storage():
    return MemoryTokenStorage()


@pytest.fixture
def store(storage):
    return SessionStore(storage)


@pytest.fixture
def make_vendor():
    def factory(handler, cls=VendorClient, **kwargs):
        transport = RecordingTransport(handler)
        client = cls(base_url=BASE_URL, transport=transport, **kwargs)
        return client, transport

    return factory
