# graph_api.py
import json
import logging
from typing import Any, Dict, List, Optional

import requests

from config import FB_GRAPH_URL, REQUEST_TIMEOUT
from errors import AuthenticationError, GraphAPITimeoutError, UpstreamAPIError

logger = logging.getLogger(__name__)

# Graph API error code for an invalid or expired OAuth access token
INVALID_TOKEN_CODE = 190


class GraphAPIClient:
    """Thin requester for the Facebook Graph API.

    The access token is injected into every call. Error-shaped responses are
    normalized into the exceptions from ``errors`` so tool functions only
    have one failure path to handle.
    """

    def __init__(self, access_token: str, base_url: str = FB_GRAPH_URL,
                 timeout: float = REQUEST_TIMEOUT):
        if not access_token:
            raise AuthenticationError(
                "No Facebook access token available. Use facebook_login to authenticate."
            )
        self.access_token = access_token
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    def make_request(self, endpoint: str, params: Optional[Dict[str, Any]] = None,
                     method: str = 'GET') -> Dict:
        """Makes a request to ``{base_url}/{endpoint}`` and returns the JSON body."""
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        payload = {'access_token': self.access_token}
        payload.update(params or {})

        if method.upper() == 'GET':
            return self._send('GET', url, params=payload)
        return self._send(method.upper(), url, data=payload)

    def make_request_from_full_url(self, url: str) -> Dict:
        """Fetch a pagination URL; Facebook already embeds the token in it."""
        return self._send('GET', url)

    def make_batch_request(self, batch_requests: List[Dict[str, Any]]) -> Dict:
        return self._send('POST', f"{self.base_url}/", data={
            'access_token': self.access_token,
            'batch': json.dumps(batch_requests),
        })

    def _send(self, method: str, url: str, **kwargs) -> Dict:
        logger.debug("Graph API %s %s", method, url)
        try:
            response = requests.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout:
            raise GraphAPITimeoutError(
                "Request timeout - Facebook API took too long to respond"
            )
        except requests.exceptions.RequestException as e:
            raise UpstreamAPIError(f"API Request failed: {e}")

        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and 'error' in body:
            self._raise_api_error(body['error'], response.status_code)

        if not response.ok:
            if response.status_code == 401:
                raise AuthenticationError(
                    f"Facebook rejected the access token (HTTP {response.status_code})"
                )
            raise UpstreamAPIError(
                f"API Request failed: HTTP {response.status_code}", code=response.status_code
            )

        if body is None:
            raise UpstreamAPIError("API Request failed: response was not valid JSON")
        return body

    @staticmethod
    def _raise_api_error(error: Any, status_code: int) -> None:
        if not isinstance(error, dict):
            error = {'message': str(error)}
        message = error.get('message', 'Unknown error')
        code = error.get('code')
        logger.warning("Graph API error (HTTP %s, code %s): %s", status_code, code, message)

        if code == INVALID_TOKEN_CODE:
            raise AuthenticationError(f"Facebook API Error: {message} (Code: {code})")
        raise UpstreamAPIError(f"Facebook API Error: {message} (Code: {code})", code=code)
