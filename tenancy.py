"""
Tenant resolution.

Every hotel is served on its own subdomain (`grand.innexora.com`); the bare
domain, `www` and `app` are the shared marketing site. The subdomain can also
be forced with the X-Tenant-Subdomain header for cross-origin API calls.
"""

import ipaddress
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from pymongo import MongoClient
from pymongo.database import Database

from config import Settings, get_settings
from database import get_client, serialize_doc, tenant_database

logger = logging.getLogger(__name__)

MAIN_DOMAIN_LABELS = {"www", "app"}
CACHE_TTL = 5 * 60


def _is_ip(hostname: str) -> bool:
    try:
        ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return True


def extract_subdomain(
    host: Optional[str],
    forwarded_host: Optional[str] = None,
    tenant_header: Optional[str] = None,
) -> Optional[str]:
    """Return the tenant subdomain for a request, or None on the main domain."""
    if tenant_header and tenant_header.strip():
        subdomain = tenant_header.strip().lower()
    else:
        effective = (forwarded_host or host or "").split(",")[0].strip().lower()
        hostname = effective.rsplit(":", 1)[0] if ":" in effective else effective
        if not hostname or hostname == "localhost" or _is_ip(hostname):
            return None
        labels = hostname.split(".")
        if len(labels) >= 3 or (len(labels) == 2 and labels[1] == "localhost"):
            subdomain = labels[0]
        else:
            return None
    if subdomain in MAIN_DOMAIN_LABELS:
        return None
    return subdomain


class TenantResolver:
    """Looks up active hotels by subdomain, caching hits for a few minutes."""

    def __init__(self, ttl: float = CACHE_TTL, clock=time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._cache: Dict[str, Tuple[float, Dict[str, Any]]] = {}

    def resolve(self, main_db: Database, subdomain: str) -> Optional[Dict[str, Any]]:
        key = subdomain.lower()
        cached = self._cache.get(key)
        if cached and self._clock() - cached[0] < self.ttl:
            return cached[1]
        hotel = main_db["hotel"].find_one({"subdomain": key, "status": "Active"})
        if not hotel:
            self._cache.pop(key, None)
            logger.info(f"No active hotel for subdomain {key}")
            return None
        hotel = serialize_doc(hotel)
        self._cache[key] = (self._clock(), hotel)
        logger.info(f"Resolved subdomain {key} to hotel {hotel['name']}")
        return hotel

    def clear(self, subdomain: str) -> None:
        self._cache.pop(subdomain.lower(), None)

    def clear_all(self) -> None:
        self._cache.clear()

    def stats(self) -> Dict[str, Any]:
        return {"cache_size": len(self._cache), "cache_keys": sorted(self._cache)}


resolver = TenantResolver()


@dataclass(frozen=True)
class Tenant:
    subdomain: Optional[str]
    hotel: Optional[Dict[str, Any]] = None
    db: Optional[Database] = None

    @property
    def is_main_domain(self) -> bool:
        return self.subdomain is None


def get_tenant(
    request: Request,
    x_tenant_subdomain: Optional[str] = Header(default=None),
    x_forwarded_host: Optional[str] = Header(default=None),
    mongo: MongoClient = Depends(get_client),
    settings: Settings = Depends(get_settings),
) -> Tenant:
    subdomain = extract_subdomain(request.headers.get("host"), x_forwarded_host, x_tenant_subdomain)
    if subdomain is None:
        return Tenant(subdomain=None)
    hotel = resolver.resolve(mongo[settings.database_name], subdomain)
    if hotel is None:
        return Tenant(subdomain=subdomain)
    return Tenant(subdomain=subdomain, hotel=hotel, db=tenant_database(mongo, subdomain, settings))


def require_tenant(tenant: Tenant = Depends(get_tenant)) -> Tenant:
    if tenant.is_main_domain:
        raise HTTPException(status_code=403, detail="This route requires a valid hotel subdomain")
    if tenant.hotel is None or tenant.db is None:
        raise HTTPException(status_code=404, detail="Hotel not found or inactive")
    return tenant


def require_main_domain(tenant: Tenant = Depends(get_tenant)) -> Tenant:
    if not tenant.is_main_domain:
        raise HTTPException(status_code=403, detail="This route is only available on the main domain")
    return tenant


def get_tenant_db(tenant: Tenant = Depends(require_tenant)) -> Database:
    return tenant.db


router = APIRouter(tags=["hotel"])


@router.get("/hotel/info")
def hotel_info(tenant: Tenant = Depends(require_tenant)):
    return {"success": True, "data": tenant.hotel}


@router.get("/api/tenants/cache")
def tenant_cache_stats(tenant: Tenant = Depends(require_main_domain)):
    return {"success": True, "data": resolver.stats()}


@router.delete("/api/tenants/cache/{subdomain}")
def evict_tenant(subdomain: str, tenant: Tenant = Depends(require_main_domain)):
    resolver.clear(subdomain)
    logger.info(f"Evicted {subdomain} from tenant cache")
    return {"success": True, "data": resolver.stats()}
