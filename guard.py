"""
Dashboard-side tenant context and route guard.

`TenantContext` works out which hotel (if any) the dashboard is being served
for. `RouteGuard` combines it with an `AuthSession` and decides, for a given
path, whether to render it or send the user somewhere else.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple

from client import ApiClient
from errors import ApiError, NetworkError
from session import AuthSession, SessionState
from tenancy import extract_subdomain

logger = logging.getLogger(__name__)

LOGIN_PATH = "/auth/login"
REGISTER_PATH = "/auth/register"
DASHBOARD_PATH = "/dashboard"
NOT_FOUND_PATH = "/hotel-not-found"

PUBLIC_MAIN_ROUTES = ("/about", "/contact", "/pricing", "/privacy", "/terms", "/security", NOT_FOUND_PATH)
PUBLIC_TENANT_ROUTES = (LOGIN_PATH, REGISTER_PATH, "/hotel")


class TenantState(str, Enum):
    LOADING = "loading"
    MAIN_DOMAIN = "main_domain"
    TENANT_WITH_HOTEL = "tenant_with_hotel"
    TENANT_NO_HOTEL = "tenant_no_hotel"


class TenantContext:
    def __init__(self, host: str, api: ApiClient):
        self.host = host
        self.api = api
        self.subdomain: Optional[str] = None
        self.hotel: Optional[Dict[str, Any]] = None
        self.error: Optional[str] = None
        self.state = TenantState.LOADING
        self._loaded = False
        self._lock = threading.Lock()

    @property
    def is_loading(self) -> bool:
        return self.state == TenantState.LOADING

    @property
    def is_main_domain(self) -> bool:
        return self.state == TenantState.MAIN_DOMAIN

    def load(self) -> TenantState:
        with self._lock:
            if self._loaded:
                return self.state
            self._fetch()
            self._loaded = True
            return self.state

    def refresh(self) -> TenantState:
        with self._lock:
            self._fetch()
            self._loaded = True
            return self.state

    def _fetch(self) -> None:
        self.state = TenantState.LOADING
        self.error = None
        self.hotel = None
        self.subdomain = extract_subdomain(self.host)
        if self.subdomain is None:
            logger.info("No subdomain, treating as main domain")
            self.state = TenantState.MAIN_DOMAIN
            return

        self.api.subdomain = self.subdomain
        try:
            response = self.api.get("/hotel/info")
        except (ApiError, NetworkError) as exc:
            self.error = str(exc) or "Failed to load hotel information"
            self.state = TenantState.TENANT_NO_HOTEL
            logger.warning(f"Hotel info fetch failed for {self.subdomain}: {self.error}")
            return
        if response.get("success") and response.get("data"):
            self.hotel = response["data"]
            self.state = TenantState.TENANT_WITH_HOTEL
            logger.info(f"Hotel info loaded: {self.hotel.get('name')}")
        else:
            self.error = response.get("message") or "Hotel not found or inactive"
            self.state = TenantState.TENANT_NO_HOTEL


@dataclass(frozen=True)
class GuardDecision:
    render: bool
    redirect: Optional[str] = None
    loading: bool = False


LOADING = GuardDecision(render=False, loading=True)
RENDER = GuardDecision(render=True)


def _matches(pathname: str, prefixes) -> bool:
    return any(pathname == p or pathname.startswith(p.rstrip("/") + "/") for p in prefixes)


class RouteGuard:
    def __init__(self, tenant: TenantContext, session: AuthSession, navigate: Callable[[str], None]):
        self.tenant = tenant
        self.session = session
        self.navigate = navigate
        self._last_redirect: Optional[Tuple[str, str]] = None

    def start(self) -> None:
        """Run the tenant lookup and the auth check; both are idempotent."""
        self.tenant.load()
        if not self.session.is_initialized:
            self.session.initialize()

    def _auth_pending(self) -> bool:
        # A disposed (logged out) session is settled and reads as anonymous.
        if self.session.state == SessionState.DISPOSED:
            return False
        return self.session.is_loading or not self.session.is_initialized

    def evaluate(self, pathname: str) -> GuardDecision:
        if self.tenant.is_loading or self._auth_pending():
            return LOADING
        target = self._decide(pathname)
        if target is None:
            self._last_redirect = None
            return RENDER
        if self._last_redirect != (pathname, target):
            self._last_redirect = (pathname, target)
            logger.info(f"Redirecting {pathname} -> {target}")
            self.navigate(target)
        return GuardDecision(render=False, redirect=target)

    def _decide(self, pathname: str) -> Optional[str]:
        authenticated = self.session.is_authenticated

        if self.tenant.is_main_domain:
            if pathname == "/" or _matches(pathname, PUBLIC_MAIN_ROUTES):
                return None
            if _matches(pathname, (LOGIN_PATH, REGISTER_PATH)):
                return None
            return None if authenticated else LOGIN_PATH

        if self.tenant.state == TenantState.TENANT_NO_HOTEL or self.tenant.hotel is None:
            return None if pathname == NOT_FOUND_PATH else NOT_FOUND_PATH

        if pathname == "/":
            return DASHBOARD_PATH if authenticated else LOGIN_PATH
        if _matches(pathname, PUBLIC_TENANT_ROUTES):
            if authenticated and _matches(pathname, (LOGIN_PATH, REGISTER_PATH)):
                return DASHBOARD_PATH
            return None
        return None if authenticated else LOGIN_PATH
