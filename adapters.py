# adapters.py
"""Protocol adapters.

Each adapter turns one external call shape into a ``ToolCall`` and turns the
tool's content envelope back into that protocol's response shape. They hold
no state.
"""
import json
from typing import Any, Dict, List, Optional

from mcp.types import TextContent

from errors import ValidationError
from tools import ToolCall, get_tool_description


def result_text(result: Dict[str, Any]) -> str:
    """Join the text blocks of a content envelope."""
    return '\n'.join(
        block.get('text', '') for block in result.get('content', []) if block.get('type') == 'text'
    )


def _parse_arguments(raw: Any) -> Dict[str, Any]:
    if raw is None or raw == '':
        return {}
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise ValidationError("Function arguments are not valid JSON")
    if not isinstance(raw, dict):
        raise ValidationError("Function arguments must be a JSON object")
    return raw


class MCPAdapter:
    def parse_request(self, params: Dict[str, Any]) -> ToolCall:
        name = params.get('name')
        if not name:
            raise ValidationError("Missing tool name")
        return ToolCall(tool_name=name, args=_parse_arguments(params.get('arguments')))

    def format_response(self, result: Dict[str, Any]) -> List[TextContent]:
        return [
            TextContent(type='text', text=block.get('text', ''))
            for block in result.get('content', [])
            if block.get('type') == 'text'
        ]

    def format_error(self, error: Exception) -> Dict[str, Any]:
        return {'content': [{'type': 'text', 'text': f"Error: {error}"}], 'isError': True}

    def get_tool_definitions(self, schemas: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [
            {'name': name, 'description': get_tool_description(name), 'inputSchema': schema}
            for name, schema in schemas.items()
        ]


class OpenAIAdapter:
    """OpenAI function / tool calling."""

    def parse_request(self, body: Dict[str, Any]) -> ToolCall:
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")

        tool_call_id = None
        if body.get('tool_calls'):
            tool_call = body['tool_calls'][0]
            tool_call_id = tool_call.get('id')
            function = tool_call.get('function') or {}
        elif body.get('function_call'):
            function = body['function_call']
        else:
            function = body

        name = function.get('name')
        if not name:
            raise ValidationError("Missing function name")
        return ToolCall(
            tool_name=name,
            args=_parse_arguments(function.get('arguments')),
            tool_call_id=tool_call_id or body.get('tool_call_id'),
        )

    def format_response(self, result: Dict[str, Any], tool_call_id: Optional[str] = None,
                        name: Optional[str] = None) -> Dict[str, Any]:
        response = {'role': 'tool', 'content': result_text(result)}
        if tool_call_id:
            response['tool_call_id'] = tool_call_id
        if name:
            response['name'] = name
        return response

    def format_error(self, error: Exception) -> Dict[str, Any]:
        return {'error': {'message': str(error), 'type': type(error).__name__}}

    def get_tool_definitions(self, schemas: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [
            {
                'type': 'function',
                'function': {
                    'name': name,
                    'description': get_tool_description(name),
                    'parameters': schema,
                },
            }
            for name, schema in schemas.items()
        ]


_GEMINI_UNSUPPORTED_KEYS = ('default', 'additionalProperties')


def _to_gemini_schema(schema: Any) -> Any:
    """Gemini declarations take an OpenAPI subset: no defaults, single types."""
    if isinstance(schema, list):
        return [_to_gemini_schema(item) for item in schema]
    if not isinstance(schema, dict):
        return schema

    converted = {}
    for key, value in schema.items():
        if key in _GEMINI_UNSUPPORTED_KEYS:
            continue
        if key == 'type' and isinstance(value, list):
            types = [t for t in value if t != 'null']
            converted['type'] = types[0] if types else 'string'
            if 'null' in value:
                converted['nullable'] = True
        elif key == 'properties':
            converted[key] = {name: _to_gemini_schema(prop) for name, prop in value.items()}
        else:
            converted[key] = _to_gemini_schema(value)
    return converted


class GeminiAdapter:
    """Gemini function calling."""

    def parse_request(self, body: Dict[str, Any]) -> ToolCall:
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")
        function_call = body.get('functionCall') or body.get('function_call') or body
        name = function_call.get('name')
        if not name:
            raise ValidationError("Missing function name")
        return ToolCall(tool_name=name, args=_parse_arguments(function_call.get('args')))

    def format_response(self, result: Dict[str, Any], name: Optional[str] = None) -> Dict[str, Any]:
        return {
            'functionResponse': {
                'name': name,
                'response': {'content': result_text(result)},
            }
        }

    def format_error(self, error: Exception) -> Dict[str, Any]:
        return {'error': {'message': str(error), 'status': type(error).__name__}}

    def get_tool_definitions(self, schemas: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [
            {
                'name': name,
                'description': get_tool_description(name),
                'parameters': _to_gemini_schema(schema),
            }
            for name, schema in schemas.items()
        ]
