# auth_tools.py
import logging
from typing import Any, Dict, Optional

from config import OAUTH_RELAY_URL
from errors import create_error_response
from oauth_server import OAuthServer
from token_storage import AccessTokenProvider, get_token_from_cli
from validation import EmptyParams, LoginParams, validate_parameters

logger = logging.getLogger(__name__)

_oauth_server: Optional[OAuthServer] = None


def _text(text: str) -> Dict[str, Any]:
    return {'content': [{'type': 'text', 'text': text}]}


def _get_oauth_server(provider: AccessTokenProvider) -> OAuthServer:
    global _oauth_server
    if _oauth_server is None:
        _oauth_server = OAuthServer(storage=provider.storage, user_id=provider.user_id)
        _oauth_server.start()
    return _oauth_server


def facebook_login(args: Optional[Dict[str, Any]], provider: AccessTokenProvider) -> Dict[str, Any]:
    """Log in with a CLI token, an existing stored token, or the browser OAuth flow."""
    try:
        validated = validate_parameters(LoginParams, args)
        user_id = validated['user_id'] or provider.user_id

        cli = get_token_from_cli(provider.argv)
        if cli['token']:
            provider.storage.store_token_for_user(cli['user_id'] or user_id, cli['token'], cli['expires_in'])
            provider.set(cli['token'])
            return _text(
                f"✅ Facebook token provided via CLI for user ID {cli['user_id'] or user_id}. "
                "You are now logged in."
            )

        if provider.storage.has_valid_token(user_id):
            return _text(
                "✅ You are already logged in to Facebook. Use facebook_logout to disconnect "
                "and login with another account."
            )

        oauth = _get_oauth_server(provider)
        if OAUTH_RELAY_URL:
            try:
                logger.info("Using OAuth relay service: %s", OAUTH_RELAY_URL)
                result = oauth.start_relay_oauth_flow()
            except Exception as e:
                logger.warning("Relay OAuth failed, falling back to direct OAuth: %s", e)
                result = oauth.start_oauth_flow()
        else:
            result = oauth.start_oauth_flow()

        provider.set(result['access_token'])
        return _text(
            "✅ Successfully logged in to Facebook using OAuth!\n"
            "You can now access ad accounts and insights."
        )
    except Exception as e:
        return create_error_response(e)


def facebook_logout(args: Optional[Dict[str, Any]], provider: AccessTokenProvider) -> Dict[str, Any]:
    try:
        validate_parameters(EmptyParams, args)
        cleared = provider.storage.clear_token_for_user(provider.user_id)
        provider.clear()
        if cleared:
            return _text("✅ Logged out of Facebook. Stored token removed.")
        return _text("ℹ️ No stored Facebook token found. You were not logged in.")
    except Exception as e:
        return create_error_response(e)


def facebook_check_auth(args: Optional[Dict[str, Any]], provider: AccessTokenProvider) -> Dict[str, Any]:
    try:
        validate_parameters(EmptyParams, args)
        info = provider.storage.get_token_info_for_user(provider.user_id)
        if info['hasToken'] and not info['isExpired']:
            return _text(
                "✅ Authenticated with Facebook.\n"
                f"Stored at: {info['storedAt']}\nExpires at: {info['expiresAt']}"
            )
        if provider.get():
            return _text("✅ Authenticated with Facebook (token supplied by environment or command line).")
        if info['hasToken']:
            return _text("⚠️ Your Facebook token has expired. Use facebook_login to authenticate again.")
        return _text("❌ Not authenticated. Use facebook_login to connect your Facebook account.")
    except Exception as e:
        return create_error_response(e)
