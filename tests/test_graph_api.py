import json

import pytest
import requests

from conftest import FakeResponse
from errors import AuthenticationError, GraphAPITimeoutError, UpstreamAPIError
from graph_api import GraphAPIClient


def test_client_requires_token():
    with pytest.raises(AuthenticationError):
        GraphAPIClient('')


def test_get_injects_token(graph):
    graph.queue({'id': 'act_1'})
    client = GraphAPIClient('tok', base_url='https://graph.example.com/v1/')
    assert client.make_request('/act_1', {'fields': 'id'}) == {'id': 'act_1'}
    assert graph.calls[0]['url'] == 'https://graph.example.com/v1/act_1'
    assert graph.calls[0]['params'] == {'access_token': 'tok', 'fields': 'id'}


def test_post_sends_form_data(graph):
    graph.queue({'success': True})
    GraphAPIClient('tok').make_request('act_1/things', {'name': 'x'}, method='post')
    assert graph.calls[0]['method'] == 'POST'
    assert graph.calls[0]['data'] == {'access_token': 'tok', 'name': 'x'}


def test_full_url_is_fetched_as_is(graph):
    url = 'https://graph.facebook.com/v23.0/act_1/insights?after=abc&access_token=tok'
    GraphAPIClient('tok').make_request_from_full_url(url)
    assert graph.calls[0]['url'] == url
    assert 'params' not in graph.calls[0]


def test_batch_request(graph):
    graph.queue([{'code': 200, 'body': '{}'}])
    batch = [{'method': 'GET', 'relative_url': 'act_1'}]
    GraphAPIClient('tok').make_batch_request(batch)
    assert graph.calls[0]['method'] == 'POST'
    assert json.loads(graph.calls[0]['data']['batch']) == batch


def test_error_body_raises_upstream_error(graph):
    graph.queue({'error': {'message': 'Unsupported get request', 'code': 100}}, status_code=400)
    with pytest.raises(UpstreamAPIError) as excinfo:
        GraphAPIClient('tok').make_request('/act_1')
    assert str(excinfo.value) == "Facebook API Error: Unsupported get request (Code: 100)"
    assert excinfo.value.code == 100


def test_invalid_token_code_raises_auth_error(graph):
    graph.queue({'error': {'message': 'Invalid OAuth access token', 'code': 190}}, status_code=400)
    with pytest.raises(AuthenticationError):
        GraphAPIClient('tok').make_request('/me/adaccounts')


def test_http_401_without_body_raises_auth_error(graph):
    graph.responses.append(FakeResponse(ValueError('no json'), status_code=401))
    with pytest.raises(AuthenticationError):
        GraphAPIClient('tok').make_request('/me')


def test_http_500_raises_upstream_error(graph):
    graph.responses.append(FakeResponse(ValueError('no json'), status_code=500))
    with pytest.raises(UpstreamAPIError) as excinfo:
        GraphAPIClient('tok').make_request('/me')
    assert excinfo.value.code == 500


def test_non_json_success_raises_upstream_error(graph):
    graph.responses.append(FakeResponse(ValueError('no json'), status_code=200))
    with pytest.raises(UpstreamAPIError):
        GraphAPIClient('tok').make_request('/me')


def test_timeout(graph):
    graph.responses.append(requests.exceptions.Timeout())
    with pytest.raises(GraphAPITimeoutError):
        GraphAPIClient('tok').make_request('/me')


def test_connection_error(graph):
    graph.responses.append(requests.exceptions.ConnectionError('refused'))
    with pytest.raises(UpstreamAPIError) as excinfo:
        GraphAPIClient('tok').make_request('/me')
    assert str(excinfo.value).startswith("API Request failed:")
