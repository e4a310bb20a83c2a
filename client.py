"""HTTP client used by dashboard-side objects (session, tenant context) to call the backend API."""

import logging
from typing import Any, Dict, Optional

import requests

from errors import ApiError, NetworkError

logger = logging.getLogger(__name__)


class ApiClient:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        subdomain: Optional[str] = None,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.subdomain = subdomain
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if self.subdomain:
            headers["X-Tenant-Subdomain"] = self.subdomain
        return headers

    def request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            response = self.session.request(method, url, json=json, headers=self._headers(), timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as exc:
            raise NetworkError(f"{method} {url} failed: {exc}") from exc
        if response.status_code >= 400:
            try:
                body = response.json()
                message = body.get("detail") or body.get("error") or body.get("message") or ""
            except (ValueError, AttributeError):
                message = response.text
            raise ApiError(response.status_code, str(message))
        try:
            return response.json()
        except ValueError:
            return {}

    def get(self, path: str) -> Dict[str, Any]:
        return self.request("GET", path)

    def post(self, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.request("POST", path, json=json or {})
