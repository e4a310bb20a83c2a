import threading
import time

import pytest
import requests

from client import ApiClient
from errors import ApiError, NetworkError
from session import AuthSession, FileTokenStore, MemoryTokenStore, SessionState

USER = {"id": "u1", "email": "maya@grand.test", "name": "Maya Manager"}


class FakeApi:
    def __init__(self, me=None, error=None, delay=0.0):
        self.token = None
        self.me = me if me is not None else {"success": True, "data": USER}
        self.error = error
        self.delay = delay
        self.calls = []

    def get(self, path):
        self.calls.append(("GET", path))
        if self.delay:
            time.sleep(self.delay)
        if self.error:
            raise self.error
        return self.me

    def post(self, path, json=None):
        self.calls.append(("POST", path))
        if self.error:
            raise self.error
        return {"success": True, "token": "fresh-token", "user": USER}


def test_no_token_is_anonymous_without_network():
    api = FakeApi()
    session = AuthSession(api, MemoryTokenStore())

    session.initialize()

    assert session.state == SessionState.ANONYMOUS
    assert session.is_initialized
    assert api.calls == []


def test_valid_token_is_verified():
    api = FakeApi()
    session = AuthSession(api, MemoryTokenStore("stored"))

    session.initialize()

    assert session.is_authenticated
    assert session.user == USER
    assert api.token == "stored"


def test_concurrent_initialize_verifies_once():
    api = FakeApi(delay=0.05)
    session = AuthSession(api, MemoryTokenStore("stored"))

    threads = [threading.Thread(target=session.initialize) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert api.calls == [("GET", "/auth/me")]
    assert session.is_authenticated


@pytest.mark.parametrize("status", [401, 403])
def test_rejected_token_is_cleared(status):
    store = MemoryTokenStore("stale")
    session = AuthSession(FakeApi(error=ApiError(status, "Invalid token")), store)

    session.initialize()

    assert session.state == SessionState.ANONYMOUS
    assert store.get() is None


def test_network_error_keeps_token():
    store = MemoryTokenStore("stored")
    session = AuthSession(FakeApi(error=NetworkError("offline")), store)

    session.initialize()

    assert session.state == SessionState.ANONYMOUS
    assert store.get() == "stored"
    assert isinstance(session.last_error, NetworkError)


def test_server_error_keeps_token():
    store = MemoryTokenStore("stored")
    session = AuthSession(FakeApi(error=ApiError(500, "Server error")), store)

    session.initialize()

    assert store.get() == "stored"
    assert not session.is_authenticated


def test_login_then_logout_disposes_session():
    store = MemoryTokenStore()
    api = FakeApi()
    session = AuthSession(api, store)

    session.login("maya@grand.test", "secret123")
    assert session.is_authenticated
    assert store.get() == "fresh-token"

    session.logout()
    assert session.state == SessionState.DISPOSED
    assert session.user is None
    assert store.get() is None
    assert not session.is_initialized
    assert ("POST", "/auth/logout") in api.calls


def test_logout_clears_even_when_backend_fails():
    store = MemoryTokenStore("stored")
    api = FakeApi(error=NetworkError("offline"))
    session = AuthSession(api, store)

    session.logout()

    assert store.get() is None
    assert session.state == SessionState.DISPOSED


def test_file_token_store(tmp_path):
    store = FileTokenStore(tmp_path / "auth" / "token.json")
    assert store.get() is None

    store.set("abc")
    assert FileTokenStore(tmp_path / "auth" / "token.json").get() == "abc"

    store.clear()
    store.clear()
    assert store.get() is None


class FakeResponse:
    def __init__(self, status_code, body=None, text=""):
        self.status_code = status_code
        self._body = body
        self.text = text

    def json(self):
        if self._body is None:
            raise ValueError("no json")
        return self._body


class FakeHttp:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        if self.error:
            raise self.error
        return self.response


def test_api_client_sends_tenant_and_token_headers():
    http = FakeHttp(FakeResponse(200, {"success": True}))
    api = ApiClient("http://api.test/", token="tok", subdomain="grand", session=http)

    assert api.get("/auth/me") == {"success": True}
    method, url, kwargs = http.requests[0]
    assert (method, url) == ("GET", "http://api.test/auth/me")
    assert kwargs["headers"]["Authorization"] == "Bearer tok"
    assert kwargs["headers"]["X-Tenant-Subdomain"] == "grand"


def test_api_client_error_mapping():
    api = ApiClient("http://api.test", session=FakeHttp(FakeResponse(401, {"detail": "Token expired"})))
    with pytest.raises(ApiError) as exc_info:
        api.get("/auth/me")
    assert exc_info.value.status_code == 401
    assert exc_info.value.is_auth_error

    api = ApiClient("http://api.test", session=FakeHttp(error=requests.ConnectionError("refused")))
    with pytest.raises(NetworkError):
        api.get("/auth/me")
