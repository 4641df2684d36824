import pytest

from slack_search_proxy import mcp_server
from slack_search_proxy.errors import InvalidCredentialError


@pytest.fixture
def mcp_service(service, credential, monkeypatch):
    monkeypatch.setattr(mcp_server, "_service", service)
    monkeypatch.setenv("SLACK_SEARCH_CREDENTIAL", credential)
    return service


@pytest.mark.asyncio
async def test_search_tool_goes_through_gate_and_ledgers(mcp_service, fake_slack, document_store):
    result = await mcp_server.search_messages("deploy", limit=10)
    await mcp_service.tasks.drain()

    assert result["ok"] is True
    assert fake_slack.calls[-1]["data"]["count"] == "10"
    assert document_store.get("userStats", "T123_U123")["questionCount"] == 1


@pytest.mark.asyncio
async def test_thread_tool(mcp_service, fake_slack):
    result = await mcp_server.get_thread("C1", "1.2")

    assert result == fake_slack.responses["conversations.replies"]


@pytest.mark.asyncio
async def test_tools_refuse_missing_credential(mcp_service, monkeypatch):
    monkeypatch.delenv("SLACK_SEARCH_CREDENTIAL")

    with pytest.raises(InvalidCredentialError):
        await mcp_server.search_messages("deploy")
