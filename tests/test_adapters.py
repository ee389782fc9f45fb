import pytest

from adapters import GeminiAdapter, MCPAdapter, OpenAIAdapter, result_text
from errors import ValidationError
from tools import TOOL_SCHEMAS

RESULT = {'content': [{'type': 'text', 'text': 'line one'}, {'type': 'text', 'text': 'line two'}]}


def test_result_text_joins_blocks():
    assert result_text(RESULT) == 'line one\nline two'
    assert result_text({}) == ''


def test_mcp_round_trip():
    adapter = MCPAdapter()
    call = adapter.parse_request({'name': 'facebook_get_ad_creatives', 'arguments': {'act_id': 'act_1'}})
    assert call.tool_name == 'facebook_get_ad_creatives'
    assert call.args == {'act_id': 'act_1'}

    blocks = adapter.format_response(RESULT)
    assert [block.text for block in blocks] == ['line one', 'line two']


def test_mcp_error_shape():
    error = MCPAdapter().format_error(ValidationError('Missing tool name'))
    assert error == {'content': [{'type': 'text', 'text': 'Error: Missing tool name'}], 'isError': True}


def test_mcp_missing_name():
    with pytest.raises(ValidationError):
        MCPAdapter().parse_request({'arguments': {}})


def test_openai_tool_calls_shape():
    call = OpenAIAdapter().parse_request({
        'tool_calls': [{
            'id': 'call_abc',
            'type': 'function',
            'function': {'name': 'facebook_list_ad_accounts', 'arguments': '{"limit": 5}'},
        }]
    })
    assert call.tool_name == 'facebook_list_ad_accounts'
    assert call.args == {'limit': 5}
    assert call.tool_call_id == 'call_abc'


def test_openai_legacy_function_call_shape():
    call = OpenAIAdapter().parse_request({
        'function_call': {'name': 'facebook_check_auth', 'arguments': ''},
    })
    assert call.tool_name == 'facebook_check_auth'
    assert call.args == {}
    assert call.tool_call_id is None


def test_openai_bad_arguments():
    with pytest.raises(ValidationError):
        OpenAIAdapter().parse_request({'name': 'facebook_check_auth', 'arguments': '{not json'})
    with pytest.raises(ValidationError):
        OpenAIAdapter().parse_request({'name': 'facebook_check_auth', 'arguments': '[1, 2]'})


def test_openai_response_and_error():
    adapter = OpenAIAdapter()
    assert adapter.format_response(RESULT, 'call_abc', 'facebook_check_auth') == {
        'role': 'tool',
        'content': 'line one\nline two',
        'tool_call_id': 'call_abc',
        'name': 'facebook_check_auth',
    }
    assert adapter.format_error(ValidationError('bad')) == {
        'error': {'message': 'bad', 'type': 'ValidationError'}
    }


def test_openai_definitions():
    definitions = OpenAIAdapter().get_tool_definitions(TOOL_SCHEMAS)
    assert len(definitions) == len(TOOL_SCHEMAS)
    insights = next(d for d in definitions if d['function']['name'] == 'facebook_get_adaccount_insights')
    assert insights['type'] == 'function'
    assert insights['function']['parameters'] is TOOL_SCHEMAS['facebook_get_adaccount_insights']


def test_gemini_parse_and_respond():
    adapter = GeminiAdapter()
    call = adapter.parse_request({
        'functionCall': {'name': 'facebook_get_ad_creatives', 'args': {'act_id': 'act_1', 'limit': 3}},
    })
    assert call.tool_name == 'facebook_get_ad_creatives'
    assert call.args == {'act_id': 'act_1', 'limit': 3}
    assert adapter.format_response(RESULT, call.tool_name) == {
        'functionResponse': {
            'name': 'facebook_get_ad_creatives',
            'response': {'content': 'line one\nline two'},
        }
    }


def test_gemini_definitions_are_converted():
    definitions = {d['name']: d for d in GeminiAdapter().get_tool_definitions(TOOL_SCHEMAS)}
    params = definitions['facebook_get_adaccount_insights']['parameters']
    assert params['properties']['time_increment']['type'] == 'string'
    assert params['properties']['time_increment']['nullable'] is True
    assert 'default' not in params['properties']['level']
    assert 'additionalProperties' not in params['properties']['additional_params']
    assert params['required'] == ['act_id', 'fields']
    # the shared schema is left untouched
    assert TOOL_SCHEMAS['facebook_get_adaccount_insights']['properties']['level']['default'] == 'account'
