import auth_tools
from auth_tools import facebook_check_auth, facebook_login, facebook_logout
from errors import AuthenticationError


def _text(result):
    return result['content'][0]['text']


class FakeOAuth:
    def __init__(self, storage, relay_fails=False):
        self.storage = storage
        self.relay_fails = relay_fails
        self.flows = []

    def start_oauth_flow(self):
        self.flows.append('direct')
        self.storage.store_token_for_user('default', 'oauth-token', 5184000)
        return {'access_token': 'oauth-token', 'expires_in': 5184000}

    def start_relay_oauth_flow(self):
        self.flows.append('relay')
        if self.relay_fails:
            raise AuthenticationError("relay unreachable")
        return {'access_token': 'relay-token'}


def test_login_with_cli_token(provider):
    provider.argv = ['server.py', '--fb-token', 'cli-token', '--expires-in', '3600']
    text = _text(facebook_login({}, provider))
    assert "provided via CLI" in text
    assert provider.get() == 'cli-token'
    assert provider.storage.get_token_for_user('default') == 'cli-token'


def test_login_when_already_logged_in(provider, monkeypatch):
    provider.storage.store_token_for_user('default', 'stored')
    monkeypatch.setattr(auth_tools, '_get_oauth_server', lambda p: _no_oauth())
    assert "already logged in" in _text(facebook_login(None, provider))


def _no_oauth():
    raise AssertionError("OAuth flow should not start")


def test_login_runs_oauth_flow(provider, monkeypatch):
    fake = FakeOAuth(provider.storage)
    monkeypatch.setattr(auth_tools, '_get_oauth_server', lambda p: fake)
    monkeypatch.setattr(auth_tools, 'OAUTH_RELAY_URL', None)

    text = _text(facebook_login({}, provider))
    assert "Successfully logged in" in text
    assert fake.flows == ['direct']
    assert provider.get() == 'oauth-token'


def test_login_falls_back_when_relay_fails(provider, monkeypatch):
    fake = FakeOAuth(provider.storage, relay_fails=True)
    monkeypatch.setattr(auth_tools, '_get_oauth_server', lambda p: fake)
    monkeypatch.setattr(auth_tools, 'OAUTH_RELAY_URL', 'https://relay.example.com')

    facebook_login({}, provider)
    assert fake.flows == ['relay', 'direct']


def test_login_failure_is_wrapped(provider, monkeypatch):
    class Broken(FakeOAuth):
        def start_oauth_flow(self):
            raise AuthenticationError("Facebook App credentials not configured.")

    monkeypatch.setattr(auth_tools, '_get_oauth_server', lambda p: Broken(provider.storage))
    monkeypatch.setattr(auth_tools, 'OAUTH_RELAY_URL', None)
    text = _text(facebook_login({}, provider))
    assert text == "❌ Authentication required: Facebook App credentials not configured."


def test_logout(provider):
    provider.storage.store_token_for_user('default', 'stored')
    provider.get()
    assert "Logged out" in _text(facebook_logout({}, provider))
    assert provider.get() is None
    assert "not logged in" in _text(facebook_logout({}, provider))


def test_check_auth(provider):
    assert "Not authenticated" in _text(facebook_check_auth({}, provider))

    provider.storage.store_token_for_user('default', 'stored')
    text = _text(facebook_check_auth({}, provider))
    assert "Authenticated with Facebook" in text
    assert "Expires at: Never" in text


def test_check_auth_with_environment_token(provider, monkeypatch):
    monkeypatch.setenv('FB_ACCESS_TOKEN', 'env-token')
    assert "supplied by environment" in _text(facebook_check_auth({}, provider))


def test_auth_tools_reject_non_object_arguments(provider):
    text = _text(facebook_check_auth('nope', provider))
    assert text.startswith("❌ Validation error:")
