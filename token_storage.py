# token_storage.py
"""On-disk token store and the access token provider used by the servers."""
import json
import logging
import os
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from config import DEFAULT_USER_ID, TOKEN_FILE

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _iso(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).isoformat()


class TokenStorage:
    """Per-user access tokens kept in a small JSON file.

    Layout: ``{user_id: {"accessToken", "storedAt", "expiresAt"}}`` with
    epoch-millisecond timestamps; ``expiresAt`` is null for tokens that do
    not expire.
    """

    def __init__(self, token_file: str = TOKEN_FILE):
        self.token_file = token_file

    def _read(self) -> Dict[str, Any]:
        if not os.path.exists(self.token_file):
            return {}
        try:
            with open(self.token_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error("Failed to read token file %s: %s", self.token_file, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        existing = self._read()
        existing.update(data)
        with open(self.token_file, 'w', encoding='utf-8') as f:
            json.dump(existing, f, indent=2)

    def _replace(self, data: Dict[str, Any]) -> None:
        with open(self.token_file, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)

    def store_token_for_user(self, user_id: str, access_token: str,
                             expires_in: Optional[int] = None) -> bool:
        now = _now_ms()
        try:
            self._write({
                user_id: {
                    'accessToken': access_token,
                    'storedAt': now,
                    'expiresAt': now + expires_in * 1000 if expires_in else None,
                }
            })
        except OSError as e:
            logger.error("Failed to store token for user %s: %s", user_id, e)
            return False
        logger.info("Token stored for user: %s", user_id)
        return True

    def get_token_for_user(self, user_id: str) -> Optional[str]:
        all_tokens = self._read()
        token_data = all_tokens.get(user_id)
        if not token_data:
            return None

        expires_at = token_data.get('expiresAt')
        if expires_at and _now_ms() > expires_at:
            logger.warning("Token for user %s has expired", user_id)
            del all_tokens[user_id]
            self._replace(all_tokens)
            return None

        return token_data.get('accessToken')

    def get_token_info_for_user(self, user_id: str) -> Dict[str, Any]:
        token_data = self._read().get(user_id)
        if not token_data:
            return {'hasToken': False}

        expires_at = token_data.get('expiresAt')
        return {
            'hasToken': True,
            'isExpired': bool(expires_at and _now_ms() > expires_at),
            'storedAt': _iso(token_data['storedAt']) if token_data.get('storedAt') else None,
            'expiresAt': _iso(expires_at) if expires_at else 'Never',
        }

    def clear_token_for_user(self, user_id: str) -> bool:
        all_tokens = self._read()
        if user_id not in all_tokens:
            return False
        del all_tokens[user_id]
        self._replace(all_tokens)
        logger.info("Cleared token for user: %s", user_id)
        return True

    def has_valid_token(self, user_id: str = DEFAULT_USER_ID) -> bool:
        return self.get_token_for_user(user_id) is not None


def get_token_from_cli(argv: Optional[List[str]] = None) -> Dict[str, Any]:
    """Read ``--fb-token``, ``--expires-in`` and ``--user-id`` from the command line."""
    argv = sys.argv if argv is None else argv
    result: Dict[str, Any] = {'token': None, 'expires_in': None, 'user_id': None}

    def _value(flag: str) -> Optional[str]:
        if flag in argv:
            index = argv.index(flag) + 1
            if index < len(argv):
                return argv[index]
        return None

    result['token'] = _value('--fb-token')
    result['user_id'] = _value('--user-id')
    expires_in = _value('--expires-in')
    if expires_in and expires_in.isdigit():
        result['expires_in'] = int(expires_in)
    return result


class AccessTokenProvider:
    """The hosting process's token cache.

    Passed explicitly into tool dispatch; the core tool functions only ever
    see the resolved token string. Resolution order: cached value, the
    ``FB_ACCESS_TOKEN`` environment variable, ``--fb-token`` on the command
    line, then the token store.
    """

    def __init__(self, storage: Optional[TokenStorage] = None, user_id: str = DEFAULT_USER_ID,
                 argv: Optional[List[str]] = None):
        self.storage = storage or TokenStorage()
        self.user_id = user_id
        self.argv = argv
        self._token: Optional[str] = None

    def get(self) -> Optional[str]:
        if self._token is None:
            self._token = (
                os.getenv('FB_ACCESS_TOKEN')
                or get_token_from_cli(self.argv)['token']
                or self.storage.get_token_for_user(self.user_id)
            )
            if self._token:
                logger.info("Using Facebook token %s...", self._token[:10])
        return self._token

    def set(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None
