"""
Dashboard-side authentication session.

`AuthSession` is constructed explicitly and handed to whatever needs to know
who is logged in (the route guard, the notification subscription). Its
lifecycle is: loading -> verified | anonymous -> disposed (after logout).
Only 401/403 answers from the backend clear the stored token; a network
failure leaves it in place so a blip does not log the user out.
"""

import json
import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

from client import ApiClient
from errors import ApiError, NetworkError

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    LOADING = "loading"
    VERIFIED = "verified"
    ANONYMOUS = "anonymous"
    DISPOSED = "disposed"


class MemoryTokenStore:
    def __init__(self, token: Optional[str] = None):
        self._token = token

    def get(self) -> Optional[str]:
        return self._token

    def set(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class FileTokenStore:
    """Keeps the token in a small JSON file so it survives restarts."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def get(self) -> Optional[str]:
        try:
            return json.loads(self.path.read_text()).get("token")
        except (OSError, ValueError):
            return None

    def set(self, token: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({"token": token}))

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass


class AuthSession:
    def __init__(self, api: ApiClient, store=None):
        self.api = api
        self.store = store if store is not None else MemoryTokenStore()
        self.user: Optional[Dict[str, Any]] = None
        self.state = SessionState.LOADING
        self.is_initialized = False
        self.last_error: Optional[Exception] = None
        self._lock = threading.Lock()

    @property
    def is_authenticated(self) -> bool:
        return self.state == SessionState.VERIFIED

    @property
    def is_loading(self) -> bool:
        return self.state == SessionState.LOADING

    @property
    def token(self) -> Optional[str]:
        return self.store.get()

    def _become_anonymous(self, clear_token: bool) -> None:
        if clear_token:
            self.store.clear()
            self.api.token = None
        self.user = None
        self.state = SessionState.ANONYMOUS

    def initialize(self) -> None:
        """Verify the stored token once; later and concurrent calls are no-ops."""
        with self._lock:
            if self.is_initialized:
                logger.debug("Auth already initialized, skipping")
                return
            self.state = SessionState.LOADING
            token = self.store.get()
            if not token:
                logger.info("No stored token, session is anonymous")
                self._become_anonymous(clear_token=False)
                self.is_initialized = True
                return

            self.api.token = token
            try:
                response = self.api.get("/auth/me")
            except ApiError as exc:
                self.last_error = exc
                if exc.is_auth_error:
                    logger.info(f"Stored token rejected ({exc.status_code}), clearing it")
                    self._become_anonymous(clear_token=True)
                else:
                    logger.warning(f"Token verification failed with {exc.status_code}, keeping token")
                    self._become_anonymous(clear_token=False)
            except NetworkError as exc:
                self.last_error = exc
                logger.warning(f"Network error verifying token, keeping it: {exc}")
                self._become_anonymous(clear_token=False)
            else:
                if response.get("success") and response.get("data"):
                    self.user = response["data"]
                    self.state = SessionState.VERIFIED
                    logger.info(f"Session verified for {self.user.get('email')}")
                else:
                    self._become_anonymous(clear_token=True)
            self.is_initialized = True

    def login(self, email: str, password: str) -> Dict[str, Any]:
        response = self.api.post("/auth/login", {"email": email, "password": password})
        with self._lock:
            self.store.set(response["token"])
            self.api.token = response["token"]
            self.user = response.get("user")
            self.state = SessionState.VERIFIED
            self.is_initialized = True
        return self.user

    def logout(self) -> None:
        try:
            self.api.post("/auth/logout")
        except (ApiError, NetworkError) as exc:
            logger.error(f"Logout error: {exc}")
        finally:
            with self._lock:
                self.store.clear()
                self.api.token = None
                self.user = None
                self.state = SessionState.DISPOSED
                self.is_initialized = False
