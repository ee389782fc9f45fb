# config.py
import logging
import os
import sys

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# --- Graph API ---
FACEBOOK_BASE_URL = os.getenv('FACEBOOK_BASE_URL', 'https://graph.facebook.com')
FACEBOOK_API_VERSION = os.getenv('FACEBOOK_API_VERSION', 'v23.0')
FB_GRAPH_URL = f"{FACEBOOK_BASE_URL}/{FACEBOOK_API_VERSION}"
REQUEST_TIMEOUT = 30  # seconds

# --- OAuth ---
FACEBOOK_APP_ID = os.getenv('FACEBOOK_APP_ID')
FACEBOOK_APP_SECRET = os.getenv('FACEBOOK_APP_SECRET')
OAUTH_PORT = int(os.getenv('OAUTH_PORT', '3002'))
FACEBOOK_REDIRECT_URI = os.getenv(
    'FACEBOOK_REDIRECT_URI', f'http://localhost:{OAUTH_PORT}/auth/callback'
)
OAUTH_RELAY_URL = os.getenv('OAUTH_RELAY_URL')
OAUTH_TIMEOUT = 5 * 60  # seconds
OAUTH_PERMISSIONS = [
    'ads_read',
    'ads_management',
    'business_management',
]

# --- Token storage ---
TOKEN_FILE = os.getenv('TOKEN_FILE', os.path.abspath('.tokens.json'))
DEFAULT_USER_ID = 'default'

# --- Server ---
SERVER_MODE = os.getenv('SERVER_MODE', 'mcp')
PORT = int(os.getenv('PORT', '3003'))
MCP_SERVER_NAME = os.getenv('MCP_SERVER_NAME', 'facebook-ads-universal')
MCP_SERVER_VERSION = os.getenv('MCP_SERVER_VERSION', '2.0.0')
DEPLOYED_URL = os.getenv('DEPLOYED_URL', f'http://localhost:{PORT}')

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Send all log output to stderr; stdout belongs to the MCP stdio transport."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, stream=sys.stderr)
