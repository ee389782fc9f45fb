# manifest.py
"""Connector manifest served at /claude/manifest and /.well-known/claude-manifest.json."""
from typing import Any, Dict

from config import DEPLOYED_URL, MCP_SERVER_NAME, MCP_SERVER_VERSION
from tools import TOOL_SCHEMAS, get_tool_description


def build_connector_manifest(base_url: str = DEPLOYED_URL) -> Dict[str, Any]:
    return {
        'name': MCP_SERVER_NAME,
        'description': 'Access your Meta Ad Accounts, insights, creatives, and performance data directly in Claude.',
        'version': MCP_SERVER_VERSION,
        'connection': {'type': 'none'},
        'api': {'base_url': base_url},
        'tools': [
            {
                'name': name,
                'description': get_tool_description(name),
                'method': 'POST',
                'endpoint': f"/claude/tools/{name}",
                'inputSchema': schema,
            }
            for name, schema in TOOL_SCHEMAS.items()
        ],
    }


CLAUDE_CONNECTOR_MANIFEST = build_connector_manifest()
