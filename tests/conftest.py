import asyncio
import json

import pytest

from gitana_mcp.client import GitanaClient
from gitana_mcp.models import APIConfiguration, DatastoreNotFoundError

PROJECT = "acme"

CREDENTIALS = {
    "clientKey": "key-123",
    "clientSecret": "secret-456",
    "username": "editor",
    "password": "hunter2",
    "baseURL": "https://cms.test",
    "application": "app1",
}


class FakeBranch:
    def __init__(self, branch_id, type="CUSTOM", nodes=None, error=None):
        self.id = branch_id
        self.type = type
        self.archived = False
        self.snapshot = False
        self.nodes = nodes or {}
        self.error = error
        self.query_calls = []

    async def query_nodes(self, query, pagination):
        self.query_calls.append((query, pagination))
        if self.error:
            raise self.error
        return dict(self.nodes)


class FakeDatastore:
    def __init__(self, branches, error=None, key="content", datastore_id="repo1"):
        self.key = key
        self.id = datastore_id
        self.branches = branches
        self.error = error
        self.queries = []

    async def query_branches(self, query):
        self.queries.append(query)
        # Yield once so concurrent callers interleave like real I/O
        await asyncio.sleep(0)
        if self.error:
            raise self.error
        return dict(self.branches)


class FakeSession:
    def __init__(self, datastores):
        self.datastores = datastores
        self.requested = []

    async def datastore(self, name):
        self.requested.append(name)
        if name not in self.datastores:
            raise DatastoreNotFoundError(name)
        return self.datastores[name]


class FakeConnector:
    def __init__(self, session=None, error=None):
        self.session = session
        self.error = error
        self.connect_calls = []
        self.closed = False

    async def connect(self, credentials):
        self.connect_calls.append(credentials)
        if self.error:
            raise self.error
        return self.session

    async def close(self):
        self.closed = True


@pytest.fixture
def credentials_dir(tmp_path):
    (tmp_path / f"{PROJECT}.json").write_text(json.dumps(CREDENTIALS), encoding="utf-8")
    return tmp_path


@pytest.fixture
def api_config(credentials_dir):
    return APIConfiguration(credentials_dir=str(credentials_dir))


@pytest.fixture
def branches():
    return {
        "b1": FakeBranch("b1", type="CUSTOM", nodes={"n1": {"_doc": "n1", "title": "Home"}}),
        "b2": FakeBranch("b2", type="MASTER"),
    }


@pytest.fixture
def datastore(branches):
    return FakeDatastore(branches)


@pytest.fixture
def connector(datastore):
    return FakeConnector(FakeSession({"content": datastore}))


@pytest.fixture
def client(api_config, connector):
    return GitanaClient(api_config, connector=connector)
