# sitebuilder/tenants/registry.py
"""
Tenant store registry.

Hands out one live StoreHandle per tenant, provisioning it on first use.

Locking:
- ``_lock`` guards the handle map and the in-flight table only for
  lookups and inserts. Provisioning I/O always runs outside it, so a
  slow tenant never holds up the others.
- Concurrent first accesses for the same tenant share a single
  provisioning flight: the first caller provisions, the others wait on
  the flight's event and receive the same handle (or the same error).
"""
import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from sitebuilder.domain.exceptions import (
    InvalidIdentifier,
    ProvisioningError,
    RegistryClosedError,
)
from sitebuilder.utils.identifiers import canonical_tenant_id
from .store import SQLStoreProvisioner, StoreHandle

logger = logging.getLogger(__name__)

Provisioner = Callable[[str], StoreHandle]


class _Flight:
    """One in-progress provisioning attempt for a tenant."""

    def __init__(self):
        self.done = threading.Event()
        self.handle: Optional[StoreHandle] = None
        self.error: Optional[Exception] = None
        # Set by evict/close_all: the result must not be cached or handed out
        self.stale = False


class TenantStoreRegistry:
    def __init__(
        self,
        provisioner: Provisioner,
        *,
        retries: int = 2,
        backoff: float = 0.05,
        wait_timeout: float = 30.0,
    ):
        self._provisioner = provisioner
        self._retries = max(0, retries)
        self._backoff = backoff
        self._wait_timeout = wait_timeout

        self._lock = threading.Lock()
        self._handles: Dict[str, StoreHandle] = {}
        self._flights: Dict[str, _Flight] = {}
        self._closed = False

    @classmethod
    def from_config(cls, config) -> "TenantStoreRegistry":
        provisioner = SQLStoreProvisioner(
            url_template=config["TENANT_DATABASE_URL_TEMPLATE"],
            base_dir=config["TENANT_STORE_DIR"],
            engine_options=config.get("TENANT_ENGINE_OPTIONS"),
        )
        return cls(
            provisioner,
            retries=config.get("PROVISION_RETRIES", 2),
            backoff=config.get("PROVISION_BACKOFF", 0.05),
            wait_timeout=config.get("PROVISION_TIMEOUT", 30.0),
        )

    # -------------------------------------------------
    # Introspection
    # -------------------------------------------------

    @property
    def is_closed(self) -> bool:
        return self._closed

    def cached_tenants(self) -> List[str]:
        with self._lock:
            return sorted(self._handles)

    # -------------------------------------------------
    # Acquire
    # -------------------------------------------------

    def acquire(self, tenant_id: str) -> StoreHandle:
        """
        Return the tenant's store handle, provisioning it on first use.

        Raises:
        - RegistryClosedError after close_all()
        - ProvisioningError if the store could not be created; nothing is
          cached, so the next call starts over
        """
        try:
            tenant_id = canonical_tenant_id(tenant_id)
        except InvalidIdentifier as exc:
            raise ProvisioningError(str(exc)) from exc

        while True:
            with self._lock:
                if self._closed:
                    raise RegistryClosedError()

                handle = self._handles.get(tenant_id)
                if handle is not None:
                    return handle

                flight = self._flights.get(tenant_id)
                leader = flight is None
                if leader:
                    flight = _Flight()
                    self._flights[tenant_id] = flight

            if leader:
                handle = self._lead(tenant_id, flight)
            else:
                handle = self._follow(tenant_id, flight)

            if handle is not None:
                return handle
            # Flight went stale (evicted mid-provisioning); start over.

    def _lead(self, tenant_id: str, flight: _Flight) -> Optional[StoreHandle]:
        try:
            handle = self._provision(tenant_id)
        except ProvisioningError as exc:
            with self._lock:
                # An evict may already have let a successor flight start
                if self._flights.get(tenant_id) is flight:
                    del self._flights[tenant_id]
            flight.error = exc
            flight.done.set()
            raise

        with self._lock:
            if self._flights.get(tenant_id) is flight:
                del self._flights[tenant_id]
            closed = self._closed
            stale = flight.stale or closed
            if not stale:
                self._handles[tenant_id] = handle

        if stale:
            handle.close()
            if closed:
                flight.error = RegistryClosedError()
            flight.done.set()
            if closed:
                raise RegistryClosedError()
            logger.info("Discarded store for tenant %s provisioned across an eviction", tenant_id)
            return None

        flight.handle = handle
        flight.done.set()
        return handle

    def _follow(self, tenant_id: str, flight: _Flight) -> Optional[StoreHandle]:
        if not flight.done.wait(self._wait_timeout):
            raise ProvisioningError(
                f"Timed out waiting for store of tenant '{tenant_id}' to be provisioned"
            )
        if flight.error is not None:
            raise flight.error
        return flight.handle

    def _provision(self, tenant_id: str) -> StoreHandle:
        attempt = 0
        while True:
            try:
                return self._provisioner(tenant_id)
            except Exception as exc:
                if attempt >= self._retries:
                    logger.error(
                        "Provisioning store for tenant %s failed after %d attempt(s): %s",
                        tenant_id, attempt + 1, exc,
                        exc_info=True,
                    )
                    raise ProvisioningError(
                        f"Could not provision store for tenant '{tenant_id}': {exc}"
                    ) from exc

                delay = self._backoff * (2 ** attempt)
                logger.warning(
                    "Provisioning store for tenant %s failed (attempt %d), retrying in %.2fs: %s",
                    tenant_id, attempt + 1, delay, exc,
                )
                attempt += 1
                time.sleep(delay)

    # -------------------------------------------------
    # Lifecycle
    # -------------------------------------------------

    def evict(self, tenant_id: str) -> bool:
        """
        Close and forget a tenant's handle.

        Callers already holding the handle may finish their open sessions.
        Any acquire() that starts after this returns gets a fresh handle,
        including callers queued behind a provisioning flight that was in
        progress while evicting.
        """
        with self._lock:
            handle = self._handles.pop(tenant_id, None)
            flight = self._flights.pop(tenant_id, None)
            if flight is not None:
                flight.stale = True

        if handle is not None:
            handle.close()
            logger.info("Evicted store for tenant %s", tenant_id)
        return handle is not None

    def close_all(self) -> None:
        """Shutdown hook: close every handle and refuse further acquires."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            handles = list(self._handles.values())
            self._handles.clear()
            for flight in self._flights.values():
                flight.stale = True
            self._flights.clear()

        for handle in handles:
            handle.close()
        logger.info("Tenant store registry closed (%d handle(s) released)", len(handles))
