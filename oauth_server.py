#!/usr/bin/env python3
"""
Local OAuth listener used to obtain a Meta/Facebook user access token.

facebook_login starts this server on a background thread, opens the Facebook
login dialog in the browser and waits for the redirect to /auth/callback.
Run this file directly to do the same thing from a terminal.
Follows Meta's manual flow: https://developers.facebook.com/docs/facebook-login/guides/advanced/manual-flow/
"""

import html
import json
import logging
import secrets
import sys
import threading
import webbrowser
from http.server import HTTPServer, BaseHTTPRequestHandler
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import urlparse, parse_qs, urlencode

import requests

from config import (
    DEFAULT_USER_ID, FACEBOOK_API_VERSION, FACEBOOK_APP_ID, FACEBOOK_APP_SECRET,
    FACEBOOK_BASE_URL, FACEBOOK_REDIRECT_URI, OAUTH_PERMISSIONS, OAUTH_PORT,
    OAUTH_RELAY_URL, OAUTH_TIMEOUT, REQUEST_TIMEOUT, configure_logging,
)
from errors import AuthenticationError
from token_storage import TokenStorage

logger = logging.getLogger(__name__)

PAGE_TEMPLATE = """
<html>
<head><title>{title}</title></head>
<body style="font-family: Arial, sans-serif; text-align: center; padding: 50px;">
    <h2 style="color: {color};">{title}</h2>
    {body}
</body>
</html>
"""


def render_page(title: str, body: str, success: bool) -> str:
    return PAGE_TEMPLATE.format(
        title=title, body=body, color='#27ae60' if success else '#e74c3c'
    )


class _PendingAuth:
    def __init__(self):
        self.done = threading.Event()
        self.result: Optional[Dict[str, Any]] = None
        self.error: Optional[str] = None


class OAuthHandler(BaseHTTPRequestHandler):
    def log_message(self, format, *args):
        logger.debug("OAuth listener: " + format, *args)

    def _send(self, status: int, content_type: str, body: str) -> None:
        self.send_response(status)
        self.send_header('Content-type', content_type)
        self.end_headers()
        self.wfile.write(body.encode())

    def do_GET(self):
        parsed_path = urlparse(self.path)
        oauth = self.server.oauth

        if parsed_path.path == '/health':
            self._send(200, 'application/json',
                       json.dumps({'status': 'ok', 'service': 'facebook-ads-mcp-oauth'}))
        elif parsed_path.path == '/auth/callback':
            status, page = oauth.handle_callback(parse_qs(parsed_path.query))
            self._send(status, 'text/html', page)
        else:
            self.send_error(404, "Not Found")


class OAuthServer:
    """Background HTTP listener plus the Facebook code/token exchanges."""

    def __init__(self, storage: Optional[TokenStorage] = None, port: int = OAUTH_PORT,
                 app_id: Optional[str] = FACEBOOK_APP_ID,
                 app_secret: Optional[str] = FACEBOOK_APP_SECRET,
                 redirect_uri: str = FACEBOOK_REDIRECT_URI,
                 user_id: str = DEFAULT_USER_ID):
        self.storage = storage or TokenStorage()
        self.port = port
        self.app_id = app_id
        self.app_secret = app_secret
        self.redirect_uri = redirect_uri
        self.user_id = user_id
        self.graph_url = f"{FACEBOOK_BASE_URL}/{FACEBOOK_API_VERSION}"
        self.pending: Dict[str, _PendingAuth] = {}
        self.httpd: Optional[HTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    # --- Lifecycle ---

    def start(self) -> int:
        if self.httpd is None:
            self.httpd = HTTPServer(('localhost', self.port), OAuthHandler)
            self.httpd.oauth = self
            self.port = self.httpd.server_address[1]
            self._thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)
            self._thread.start()
            logger.info("OAuth server running on http://localhost:%s", self.port)
        return self.port

    def stop(self) -> None:
        if self.httpd is not None:
            self.httpd.shutdown()
            self.httpd.server_close()
            self.httpd = None
            logger.info("OAuth server stopped")

    # --- Facebook endpoints ---

    def build_auth_url(self, state: str) -> str:
        params = {
            'client_id': self.app_id,
            'redirect_uri': self.redirect_uri,
            'state': state,
            'scope': ','.join(OAUTH_PERMISSIONS),
            'response_type': 'code'
        }
        return f"https://www.facebook.com/{FACEBOOK_API_VERSION}/dialog/oauth?{urlencode(params)}"

    def exchange_code_for_token(self, code: str) -> Dict[str, Any]:
        response = requests.get(f"{self.graph_url}/oauth/access_token", params={
            'client_id': self.app_id,
            'client_secret': self.app_secret,
            'redirect_uri': self.redirect_uri,
            'code': code
        }, timeout=REQUEST_TIMEOUT)
        if not response.ok:
            raise AuthenticationError(f"Token exchange failed: {response.text}")
        return response.json()

    def get_long_lived_token(self, short_token: str) -> Optional[Dict[str, Any]]:
        """Exchange short-lived token for long-lived token (60 days)"""
        try:
            response = requests.get(f"{self.graph_url}/oauth/access_token", params={
                'grant_type': 'fb_exchange_token',
                'client_id': self.app_id,
                'client_secret': self.app_secret,
                'fb_exchange_token': short_token
            }, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            logger.warning("Error getting long-lived token: %s", e)
            return None

    def get_token_info(self, access_token: str) -> Dict[str, Any]:
        """Get information about the access token (for validation)"""
        try:
            response = requests.get(f"{self.graph_url}/debug_token", params={
                'input_token': access_token,
                'access_token': f"{self.app_id}|{self.app_secret}"
            }, timeout=REQUEST_TIMEOUT)
            response.raise_for_status()
            return response.json().get('data', {})
        except requests.exceptions.RequestException as e:
            logger.warning("Error getting token info: %s", e)
            return {}

    # --- Callback ---

    def _finish(self, state: Optional[str], result: Optional[Dict[str, Any]] = None,
                error: Optional[str] = None) -> None:
        pending = self.pending.pop(state, None) if state else None
        if pending is not None:
            pending.result = result
            pending.error = error
            pending.done.set()

    def handle_callback(self, query: Dict[str, list]) -> Tuple[int, str]:
        """Process the redirect from Facebook (or the relay). Returns (status, html)."""
        state = query.get('state', [None])[0]
        error = query.get('error', [None])[0]

        if error:
            description = query.get('error_description', ['Unknown error'])[0]
            logger.error("Facebook OAuth error: %s (%s)", error, description)
            self._finish(state, error=f"OAuth error: {error}")
            return 400, render_page(
                "❌ Authentication Failed",
                f"<p>Error: {html.escape(error)}</p><p>{html.escape(description)}</p>"
                "<p>You can close this window and try again.</p>",
                success=False,
            )

        if not state:
            return 400, render_page("❌ Authentication Failed",
                                    "<p>Missing state parameter.</p>", success=False)
        if state not in self.pending:
            return 403, render_page("❌ Authentication Failed",
                                    "<p>Invalid state parameter. Possible CSRF attack.</p>",
                                    success=False)

        try:
            token = query.get('token', [None])[0]
            code = query.get('code', [None])[0]
            if token:
                # Token provided by relay service
                expires_in = query.get('expires_in', [None])[0]
                token_response = {
                    'access_token': token,
                    'expires_in': int(expires_in) if expires_in and expires_in.isdigit() else None,
                }
            elif code:
                short = self.exchange_code_for_token(code)
                token_response = self.get_long_lived_token(short['access_token']) or short
            else:
                raise AuthenticationError("No token or code provided")

            self.storage.store_token_for_user(
                self.user_id, token_response['access_token'], token_response.get('expires_in')
            )
        except (AuthenticationError, requests.exceptions.RequestException, KeyError, ValueError) as e:
            logger.error("Error exchanging code for token: %s", e)
            self._finish(state, error=str(e))
            return 500, render_page(
                "❌ Authentication Failed",
                f"<p>Failed to complete authentication: {html.escape(str(e))}</p>",
                success=False,
            )

        self._finish(state, result=token_response)
        return 200, render_page(
            "✅ Successfully Connected to Facebook!",
            "<p>Your Facebook account has been linked successfully.</p>"
            "<p>You can now close this window and return to your assistant.</p>"
            "<script>setTimeout(() => window.close(), 2000);</script>",
            success=True,
        )

    # --- Flows ---

    def _run_flow(self, url_for_state: Callable[[str], str], timeout: float,
                  open_browser: Callable[[str], Any]) -> Dict[str, Any]:
        state = secrets.token_urlsafe(32)
        pending = _PendingAuth()
        self.pending[state] = pending

        url = url_for_state(state)
        logger.info("Opening Facebook login in browser. If it does not open, visit: %s", url)
        try:
            open_browser(url)
        except webbrowser.Error as e:
            logger.warning("Failed to open browser: %s", e)

        if not pending.done.wait(timeout):
            self.pending.pop(state, None)
            raise AuthenticationError(
                f"OAuth timeout: User did not complete authentication within {int(timeout // 60)} minutes"
            )
        if pending.error:
            raise AuthenticationError(pending.error)
        return pending.result

    def start_oauth_flow(self, timeout: float = OAUTH_TIMEOUT,
                         open_browser: Callable[[str], Any] = webbrowser.open) -> Dict[str, Any]:
        if not self.app_id or not self.app_secret:
            raise AuthenticationError(
                "Facebook App credentials not configured. Set FACEBOOK_APP_ID and FACEBOOK_APP_SECRET."
            )
        return self._run_flow(self.build_auth_url, timeout, open_browser)

    def start_relay_oauth_flow(self, relay_url: Optional[str] = OAUTH_RELAY_URL,
                               timeout: float = OAUTH_TIMEOUT,
                               open_browser: Callable[[str], Any] = webbrowser.open) -> Dict[str, Any]:
        if not relay_url:
            raise AuthenticationError("OAUTH_RELAY_URL is not configured")
        return self._run_flow(
            lambda state: f"{relay_url}/auth/start?{urlencode({'state': state, 'port': self.port})}",
            timeout, open_browser,
        )


def main():
    configure_logging()

    # Validate configuration
    if not FACEBOOK_APP_ID or not FACEBOOK_APP_SECRET:
        print("\n" + "="*80)
        print("❌ ERROR: Missing Facebook App Configuration")
        print("="*80)
        print("\nAdd your Facebook App credentials to the .env file:\n")
        print("   FACEBOOK_APP_ID=\"your_app_id\"")
        print("   FACEBOOK_APP_SECRET=\"your_app_secret\"\n")
        print("Make sure this redirect URI is allowed in your Facebook App settings:")
        print(f"   {FACEBOOK_REDIRECT_URI}\n")
        print("="*80 + "\n")
        return 1

    oauth = OAuthServer()
    oauth.start()

    print("\n" + "="*80)
    print("🚀 Meta Ads OAuth Server")
    print("="*80)
    print(f"\n✓ App ID: {FACEBOOK_APP_ID}")
    print(f"✓ Redirect URI: {FACEBOOK_REDIRECT_URI}")
    print(f"\n📱 Required Permissions: {', '.join(OAUTH_PERMISSIONS)}")
    print("\n⏳ Waiting for authorization...\n")

    try:
        result = oauth.start_oauth_flow()
    except AuthenticationError as e:
        print(f"\n❌ {e}")
        return 1
    except KeyboardInterrupt:
        print("\n\n⚠️  Server stopped by user.")
        return 1
    finally:
        oauth.stop()

    token_info = oauth.get_token_info(result['access_token'])
    print("\n" + "="*80)
    print("SUCCESS! Token saved to", oauth.storage.token_file)
    print("="*80)
    print(f"User ID: {token_info.get('user_id', 'N/A')}")
    print(f"Valid: {'Yes' if token_info.get('is_valid') else 'No'}")
    print(f"Scopes: {', '.join(token_info.get('scopes', []))}")
    print("="*80 + "\n")
    return 0


if __name__ == '__main__':
    sys.exit(main())
