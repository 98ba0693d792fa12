# sitebuilder/tenants/resolver.py
import logging
import threading
import time
from typing import Callable, Dict, Iterable, Optional, Tuple

from sitebuilder.domain.exceptions import TenantNotFound
from sitebuilder.extensions import db
from sitebuilder.models.tenant import Tenant
from sitebuilder.models.website import Website
from sitebuilder.utils.identifiers import normalize_request_key

logger = logging.getLogger(__name__)


class TenantResolver:
    """
    Maps a request key (Host header or explicit tenant header) to a
    tenant id through the shared directory database.

    Positive lookups are cached for ``ttl`` seconds, which bounds how long
    a renamed or deleted subdomain can keep resolving in another process.
    Within this process, directory writes call ``invalidate()``.
    Misses are never cached, so a freshly created tenant resolves at once.
    """

    def __init__(
        self,
        *,
        suffixes: Iterable[str] = (),
        ttl: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.suffixes = tuple(suffixes)
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._cache: Dict[str, Tuple[str, float]] = {}

    @classmethod
    def from_config(cls, config) -> "TenantResolver":
        return cls(
            suffixes=config.get("TENANT_DOMAIN_SUFFIXES", ()),
            ttl=config.get("TENANT_RESOLVER_TTL", 5.0),
        )

    def resolve(self, request_key: Optional[str]) -> str:
        """
        Raises:
        - AmbiguousKey if the key carries no usable tenant name
        - TenantNotFound if no tenant (or custom domain) matches
        """
        key = normalize_request_key(request_key, self.suffixes)

        now = self._clock()
        with self._lock:
            cached = self._cache.get(key)
            if cached is not None:
                tenant_id, expires_at = cached
                if now < expires_at:
                    return tenant_id
                del self._cache[key]

        tenant_id = self._lookup(key)
        if tenant_id is None:
            raise TenantNotFound(f"No tenant matches '{key}'")

        with self._lock:
            self._cache[key] = (tenant_id, self._clock() + self.ttl)

        logger.debug("Resolved tenant key %s -> %s", key, tenant_id)
        return tenant_id

    def _lookup(self, key: str) -> Optional[str]:
        # Labels without a dot are platform subdomains; anything else is a
        # custom domain attached to one of the tenant's websites.
        if "." not in key:
            return db.session.execute(
                db.select(Tenant.id).where(Tenant.subdomain == key)
            ).scalar_one_or_none()

        return db.session.execute(
            db.select(Website.tenant_id).where(Website.domain == key)
        ).scalar_one_or_none()

    def invalidate(self, key: Optional[str] = None) -> None:
        with self._lock:
            if key is None:
                self._cache.clear()
            else:
                self._cache.pop(key, None)

    def invalidate_tenant(self, tenant_id: str) -> None:
        with self._lock:
            for key in [k for k, (tid, _) in self._cache.items() if tid == tenant_id]:
                del self._cache[key]
