# errors.py
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class FacebookAdsError(Exception):
    """Base class for every error a tool call can surface."""

    label = 'Error'


class ValidationError(FacebookAdsError):
    """Raised when tool arguments do not satisfy the tool's input schema."""

    label = 'Validation error'

    def __init__(self, message: str, fields: Optional[List[str]] = None):
        super().__init__(message)
        self.fields = fields or []


class AuthenticationError(FacebookAdsError):
    """Raised when no access token is available or Facebook rejected it."""

    label = 'Authentication required'


class UpstreamAPIError(FacebookAdsError):
    """Raised for non-2xx or error-shaped Graph API responses."""

    label = 'Facebook API error'

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class GraphAPITimeoutError(FacebookAdsError):
    label = 'Timeout'


class UnknownToolError(FacebookAdsError):
    label = 'Unknown tool'

    def __init__(self, tool_name: str):
        super().__init__(f"Unknown tool: {tool_name}")
        self.tool_name = tool_name


def create_error_response(error: Exception) -> Dict[str, Any]:
    """Wrap an exception in the same content envelope a successful tool returns."""
    if isinstance(error, FacebookAdsError):
        label = error.label
    else:
        logger.exception("Unexpected error during tool call")
        label = 'Unexpected error'

    return {
        'content': [
            {
                'type': 'text',
                'text': f"❌ {label}: {error}",
            }
        ]
    }
