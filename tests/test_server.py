import asyncio

import pytest

import server
from tools import TOOL_SCHEMAS


@pytest.fixture
def server_provider(authed_provider, monkeypatch):
    monkeypatch.setattr(server, 'TOKEN_PROVIDER', authed_provider)
    return authed_provider


def test_every_tool_is_registered():
    tools = asyncio.run(server.mcp.list_tools())
    assert {tool.name for tool in tools} == set(TOOL_SCHEMAS)


def test_insights_tool_forwards_typed_arguments(server_provider, graph):
    graph.queue({'data': []})
    blocks = server.facebook_get_adaccount_insights(
        act_id='act_1',
        fields=['spend', 'actions'],
        time_increment=None,
        additional_params={'action_attribution_windows': '7d_click'},
    )
    params = graph.calls[0]['params']
    assert params['fields'] == 'spend,actions,conversions'
    assert params['time_increment'] == 'monthly'
    assert params['action_attribution_windows'] == '7d_click'
    assert blocks[0].type == 'text'
    assert blocks[0].text.startswith("No insights data found.")


def test_tool_errors_are_returned_as_text(server_provider, graph):
    blocks = server.facebook_get_details_of_ad_account(act_id='123')
    assert blocks[0].text.startswith("❌ Validation error:")
    assert graph.calls == []


def test_insights_tool_accepts_fractional_time_increment(server_provider, graph):
    graph.queue({'data': []})
    server.facebook_get_adaccount_insights(act_id='act_1', fields=['spend'], time_increment=1.5)
    assert graph.calls[0]['params']['time_increment'] == '1.5'
