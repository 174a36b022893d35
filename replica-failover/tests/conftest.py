"""Shared fixtures for candidate selection tests."""

import threading
import time
from typing import Callable, Dict, List, Optional

import pytest
from faker import Faker

from db_config import ReplicaEndpoint
from probe_errors import ProbeError
from utils import ProbeOutcome, ReplicationPosition


@pytest.fixture
def fake() -> Faker:
    faker = Faker()
    faker.seed_instance(5432)
    return faker


@pytest.fixture
def make_endpoint(fake: Faker) -> Callable[..., ReplicaEndpoint]:
    """Factory for endpoints on distinct private addresses."""

    def _make(name: Optional[str] = None, port: int = 5432) -> ReplicaEndpoint:
        return ReplicaEndpoint(
            host=fake.unique.ipv4_private(),
            port=port,
            database="postgres",
            user="postgres",
            password=fake.password(),
            name=name,
        )

    return _make


class FakeConnection:
    """Stands in for ReplicaConnection, answering queries from a script."""

    def __init__(self, rows: Dict[str, object], open_error: Optional[ProbeError] = None):
        self.rows = rows
        self.open_error = open_error
        self.queries: List[str] = []
        self.opened = False
        self.closed = False

    def __enter__(self) -> "FakeConnection":
        if self.open_error is not None:
            raise self.open_error
        self.opened = True
        return self

    def __exit__(self, *exc) -> None:
        self.closed = True

    def fetch_one(self, query: str, stage: str):
        self.queries.append(query)
        row = self.rows.get(stage)
        if isinstance(row, Exception):
            raise row
        return row


@pytest.fixture
def connection_factory():
    """Returns (factory, calls); factory hands out the given FakeConnection."""

    def _build(connection: FakeConnection):
        calls = []

        def factory(endpoint, timeout):
            calls.append((endpoint, timeout))
            return connection

        return factory, calls

    return _build


class ScriptedReader:
    """Position reader returning canned results per endpoint label."""

    def __init__(self, script: Dict[str, object], block: Optional[threading.Event] = None,
                 slow: frozenset = frozenset(), delays: Optional[Dict[str, float]] = None):
        self.script = script
        self.block = block
        self.slow = slow
        self.delays = delays or {}
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def read_position(self, endpoint: ReplicaEndpoint, timeout: float) -> ProbeOutcome:
        with self._lock:
            self.calls.append(endpoint.label)
        if endpoint.label in self.slow and self.block is not None:
            self.block.wait(timeout=10)
        if endpoint.label in self.delays:
            time.sleep(self.delays[endpoint.label])
        result = self.script[endpoint.label]
        if isinstance(result, ProbeError):
            return ProbeOutcome.failure(endpoint, result)
        if isinstance(result, Exception):
            raise result
        receive, replay = result
        return ProbeOutcome.success(endpoint, ReplicationPosition(receive, replay))


@pytest.fixture
def scripted_reader():
    return ScriptedReader
