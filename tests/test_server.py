import pytest
from conftest import PROJECT, FakeBranch

from gitana_mcp import server
from gitana_mcp.models import BranchInfo, BranchNotFoundError, ConnectionError


def test_get_client_before_startup():
    server.set_client(None)
    with pytest.raises(RuntimeError, match="not initialized"):
        server.get_client()


def test_get_client_after_set(client):
    server.set_client(client)
    try:
        assert server.get_client() is client
    finally:
        server.set_client(None)


def test_branch_view_plain_handle():
    view = server._branch_view("b1", FakeBranch("b1", type="MASTER"))
    assert view == {"id": "b1", "type": "MASTER", "archived": False, "snapshot": False}


def test_branch_view_uses_to_dict():
    class Handle:
        def to_dict(self):
            return BranchInfo.from_row({"_doc": "b2", "type": "CUSTOM", "title": "Feature"}).model_dump()

    view = server._branch_view("master", Handle())
    assert view["id"] == "b2"
    assert view["title"] == "Feature"


@pytest.fixture
def installed_client(client):
    server.set_client(client)
    yield client
    server.set_client(None)


@pytest.mark.asyncio
async def test_get_datastore_tool(installed_client):
    result = await server.get_datastore(PROJECT)
    assert result == {"project": PROJECT, "key": "content", "id": "repo1"}


@pytest.mark.asyncio
async def test_list_active_branches_tool(installed_client):
    result = await server.list_active_branches(PROJECT)

    assert result["total"] == 2
    assert set(result["branches"]) == {"b1", "b2"}
    assert result["branches"]["b2"]["type"] == "MASTER"
    assert result["branches"]["b1"]["id"] == "b1"


@pytest.mark.asyncio
async def test_get_branch_tool_master_alias(installed_client):
    result = await server.get_branch(PROJECT, "master")
    assert result["type"] == "MASTER"


@pytest.mark.asyncio
async def test_get_branch_tool_not_found(installed_client):
    with pytest.raises(BranchNotFoundError):
        await server.get_branch(PROJECT, "missing")


@pytest.mark.asyncio
async def test_query_nodes_tool(installed_client, branches):
    result = await server.query_nodes(PROJECT, "b1", {"_type": "n:node"}, {"limit": 1})

    assert result == {"nodes": {"n1": {"_doc": "n1", "title": "Home"}}, "total": 1}
    assert branches["b1"].query_calls == [({"_type": "n:node"}, {"limit": 1})]


@pytest.mark.asyncio
async def test_query_nodes_tool_propagates_errors(installed_client):
    with pytest.raises(ConnectionError):
        await server.query_nodes("ghost", "b1", {})


@pytest.mark.asyncio
async def test_tools_require_started_server():
    server.set_client(None)
    with pytest.raises(RuntimeError):
        await server.list_active_branches(PROJECT)
