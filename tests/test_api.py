import pytest
from starlette.testclient import TestClient

from api import create_api_app
from tools import TOOL_SCHEMAS

INSIGHTS_ARGS = {'act_id': 'act_1', 'fields': ['spend']}


@pytest.fixture
def client(authed_provider):
    return TestClient(create_api_app(authed_provider))


@pytest.fixture
def anonymous_client(provider):
    return TestClient(create_api_app(provider))


def test_root_and_health(client):
    assert client.get('/').status_code == 200
    assert client.get('/health').json() == {'status': 'ok', 'protocols': ['mcp', 'openai', 'gemini']}


def test_tool_listings(client):
    assert len(client.get('/tools').json()['tools']) == len(TOOL_SCHEMAS)
    openai_functions = client.get('/openai/functions/definitions').json()['functions']
    assert {f['function']['name'] for f in openai_functions} == set(TOOL_SCHEMAS)
    gemini_functions = client.get('/gemini/functions/definitions').json()['functions']
    assert {f['name'] for f in gemini_functions} == set(TOOL_SCHEMAS)


def test_openai_function_call(client, graph):
    graph.queue({'data': []})
    response = client.post('/openai/functions', json={
        'tool_calls': [{
            'id': 'call_1',
            'type': 'function',
            'function': {'name': 'facebook_get_adaccount_insights', 'arguments': '{"act_id": "act_1", "fields": ["spend"]}'},
        }]
    })
    assert response.status_code == 200
    body = response.json()
    assert body['role'] == 'tool'
    assert body['tool_call_id'] == 'call_1'
    assert body['content'].startswith("No insights data found.")


def test_openai_unknown_function(client):
    response = client.post('/openai/functions', json={'name': 'facebook_pause_campaign', 'arguments': '{}'})
    assert response.status_code == 404
    assert response.json()['error']['type'] == 'UnknownToolError'


def test_openai_invalid_body(client):
    response = client.post('/openai/functions', content=b'{oops', headers={'content-type': 'application/json'})
    assert response.status_code == 400
    assert response.json()['error']['type'] == 'ValidationError'


def test_gemini_function_call(client, graph):
    graph.queue({'data': []})
    response = client.post('/gemini/functions', json={
        'functionCall': {'name': 'facebook_get_adaccount_insights', 'args': INSIGHTS_ARGS},
    })
    assert response.status_code == 200
    function_response = response.json()['functionResponse']
    assert function_response['name'] == 'facebook_get_adaccount_insights'
    assert function_response['response']['content'].startswith("No insights data found.")


def test_tool_errors_stay_in_the_envelope(client, graph):
    response = client.post('/gemini/functions', json={
        'functionCall': {'name': 'facebook_get_adaccount_insights', 'args': {'act_id': 'act_1'}},
    })
    assert response.status_code == 200
    assert response.json()['functionResponse']['response']['content'].startswith("❌ Validation error:")
    assert graph.calls == []


def test_rest_tool_call(client, graph):
    graph.queue({'data': []})
    response = client.post('/claude/tools/facebook_get_adaccount_insights', json=INSIGHTS_ARGS)
    assert response.status_code == 200
    assert response.json()['content'][0]['text'].startswith("No insights data found.")


def test_rest_unknown_tool(client):
    response = client.post('/claude/tools/facebook_nope', json={})
    assert response.status_code == 404
    assert response.json() == {'error': 'Tool facebook_nope not found'}


def test_rest_invalid_json(client):
    response = client.post('/claude/tools/facebook_check_auth', content=b'not json')
    assert response.status_code == 400


def test_manifest(client):
    manifest = client.get('/.well-known/claude-manifest.json').json()
    assert manifest == client.get('/claude/manifest').json()
    endpoints = {tool['name']: tool['endpoint'] for tool in manifest['tools']}
    assert endpoints['facebook_get_ad_creatives'] == '/claude/tools/facebook_get_ad_creatives'


def test_auth_status_with_token(client):
    assert client.get('/claude/auth/status').json()['authenticated'] is True


def test_auth_status_without_token(anonymous_client):
    assert anonymous_client.get('/claude/auth/status').json() == {
        'authenticated': False,
        'message': 'No Facebook token found',
    }
