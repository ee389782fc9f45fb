# api.py
"""HTTP surfaces: OpenAI / Gemini function calling, REST tool calls and the manifest."""
import json
import logging
from typing import Any, Callable, Dict

from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse, PlainTextResponse
from starlette.routing import Route

from adapters import GeminiAdapter, MCPAdapter, OpenAIAdapter
from errors import UnknownToolError, ValidationError
from manifest import CLAUDE_CONNECTOR_MANIFEST
from token_storage import AccessTokenProvider
from tools import TOOL_SCHEMAS, ToolCall, execute_tool_call

logger = logging.getLogger(__name__)

openai_adapter = OpenAIAdapter()
gemini_adapter = GeminiAdapter()
mcp_adapter = MCPAdapter()


def _provider(request: Request) -> AccessTokenProvider:
    return request.app.state.token_provider


async def _read_json(request: Request) -> Any:
    body = await request.body()
    if not body:
        return {}
    try:
        return json.loads(body)
    except ValueError:
        raise ValidationError("Request body is not valid JSON")


async def _run_call(request: Request, call: ToolCall) -> Dict[str, Any]:
    return await run_in_threadpool(execute_tool_call, call, _provider(request))


async def _function_call(request: Request, adapter, respond: Callable[[Dict[str, Any], ToolCall], Any]):
    try:
        call = adapter.parse_request(await _read_json(request))
        result = await _run_call(request, call)
    except ValidationError as e:
        return JSONResponse(adapter.format_error(e), status_code=400)
    except UnknownToolError as e:
        return JSONResponse(adapter.format_error(e), status_code=404)
    except Exception as e:
        logger.exception("Function call failed")
        return JSONResponse(adapter.format_error(e), status_code=500)
    return JSONResponse(respond(result, call))


async def root(request: Request):
    return PlainTextResponse('👋 Welcome to Facebook Ads MCP server')


async def health(request: Request):
    return JSONResponse({'status': 'ok', 'protocols': ['mcp', 'openai', 'gemini']})


async def list_tools(request: Request):
    return JSONResponse({'tools': mcp_adapter.get_tool_definitions(TOOL_SCHEMAS)})


async def openai_functions(request: Request):
    return await _function_call(
        request, openai_adapter,
        lambda result, call: openai_adapter.format_response(result, call.tool_call_id, call.tool_name),
    )


async def openai_definitions(request: Request):
    return JSONResponse({'functions': openai_adapter.get_tool_definitions(TOOL_SCHEMAS)})


async def gemini_functions(request: Request):
    return await _function_call(
        request, gemini_adapter,
        lambda result, call: gemini_adapter.format_response(result, call.tool_name),
    )


async def gemini_definitions(request: Request):
    return JSONResponse({'functions': gemini_adapter.get_tool_definitions(TOOL_SCHEMAS)})


async def claude_manifest(request: Request):
    return JSONResponse(CLAUDE_CONNECTOR_MANIFEST)


async def claude_auth_status(request: Request):
    has_token = await run_in_threadpool(lambda: bool(_provider(request).get()))
    return JSONResponse({
        'authenticated': has_token,
        'message': 'Facebook token available' if has_token else 'No Facebook token found',
    })


async def claude_tool(request: Request):
    tool_name = request.path_params['tool_name']
    if tool_name not in TOOL_SCHEMAS:
        return JSONResponse({'error': f"Tool {tool_name} not found"}, status_code=404)
    try:
        args = await _read_json(request)
        result = await _run_call(request, ToolCall(tool_name=tool_name, args=args))
    except ValidationError as e:
        return JSONResponse({'error': str(e)}, status_code=400)
    except Exception as e:
        logger.exception("REST tool call %s failed", tool_name)
        return JSONResponse({'error': str(e)}, status_code=500)
    return JSONResponse(result)


ROUTES = [
    Route('/', root, methods=['GET']),
    Route('/health', health, methods=['GET']),
    Route('/tools', list_tools, methods=['GET']),
    Route('/openai/functions', openai_functions, methods=['POST']),
    Route('/openai/functions/definitions', openai_definitions, methods=['GET']),
    Route('/gemini/functions', gemini_functions, methods=['POST']),
    Route('/gemini/functions/definitions', gemini_definitions, methods=['GET']),
    Route('/claude/manifest', claude_manifest, methods=['GET']),
    Route('/.well-known/claude-manifest.json', claude_manifest, methods=['GET']),
    Route('/claude/auth/status', claude_auth_status, methods=['GET']),
    Route('/claude/tools/{tool_name}', claude_tool, methods=['POST']),
]


def create_api_app(provider: AccessTokenProvider) -> Starlette:
    app = Starlette(routes=ROUTES)
    app.state.token_provider = provider
    return app
