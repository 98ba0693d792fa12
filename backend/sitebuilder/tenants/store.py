# sitebuilder/tenants/store.py
"""
Per-tenant store handles and the default SQL provisioner.
"""
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from sitebuilder.domain.exceptions import StoreClosedError
from sitebuilder.models.store_base import TenantStoreBase
from sitebuilder.models import page, page_version  # noqa: F401  tenant tables
from sitebuilder.utils.identifiers import canonical_tenant_id

logger = logging.getLogger(__name__)


class StoreHandle:
    """
    Live access to one tenant's isolated store.

    A handle is shared by every worker serving the tenant. Concurrency is
    left to the engine's connection pool; the handle only counts open
    sessions so that ``close()`` can defer disposing the pool until the
    last in-flight session has been released.
    """

    def __init__(self, tenant_id: str, engine: Engine):
        self.tenant_id = tenant_id
        self.engine = engine
        self._sessionmaker = sessionmaker(bind=engine, expire_on_commit=False)
        self._lock = threading.Lock()
        self._active = 0
        self._closing = False
        self._disposed = False

    def __repr__(self):
        return f"<StoreHandle tenant={self.tenant_id} closed={self._closing}>"

    @property
    def closed(self) -> bool:
        return self._closing

    @property
    def active_sessions(self) -> int:
        return self._active

    @contextmanager
    def session(self) -> Iterator[Session]:
        """
        Transactional session on the tenant store.

        Commits when the block exits cleanly, rolls back and re-raises
        otherwise, so a failing unit of work leaves no partial writes.
        """
        with self._lock:
            if self._closing:
                raise StoreClosedError(f"Store for tenant '{self.tenant_id}' has been closed")
            self._active += 1

        session = self._sessionmaker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
            self._release()

    def _release(self) -> None:
        with self._lock:
            self._active -= 1
            dispose = self._closing and self._active == 0 and not self._disposed
            if dispose:
                self._disposed = True
        if dispose:
            self._dispose()

    def close(self) -> None:
        """Stop handing out sessions; dispose the pool once idle."""
        with self._lock:
            if self._closing:
                return
            self._closing = True
            dispose = self._active == 0
            if dispose:
                self._disposed = True
        if dispose:
            self._dispose()

    def _dispose(self) -> None:
        self.engine.dispose()
        logger.info("Disposed store engine for tenant %s", self.tenant_id)


class SQLStoreProvisioner:
    """
    Opens (creating on first use) the SQL store of a tenant.

    ``url_template`` is a SQLAlchemy URL with ``{base_dir}`` and
    ``{tenant_id}`` placeholders, e.g. ``sqlite:///{base_dir}/{tenant_id}.sqlite3``.
    """

    def __init__(
        self,
        url_template: str,
        base_dir: str,
        engine_options: Optional[Dict[str, Any]] = None,
    ):
        self.url_template = url_template
        self.base_dir = base_dir
        self.engine_options = engine_options or {}

    def url_for(self, tenant_id: str) -> str:
        return self.url_template.format(
            base_dir=self.base_dir,
            tenant_id=canonical_tenant_id(tenant_id),
        )

    def __call__(self, tenant_id: str) -> StoreHandle:
        url = make_url(self.url_for(tenant_id))
        options = dict(self.engine_options)

        if url.get_backend_name() == "sqlite":
            if url.database and url.database != ":memory:":
                Path(url.database).parent.mkdir(parents=True, exist_ok=True)
            connect_args = dict(options.pop("connect_args", {}))
            connect_args.setdefault("check_same_thread", False)
            connect_args.setdefault("timeout", 15)
            options["connect_args"] = connect_args

        engine = create_engine(url, **options)
        try:
            TenantStoreBase.metadata.create_all(engine)
        except Exception:
            engine.dispose()
            raise

        logger.info("Provisioned store for tenant %s at %s", tenant_id, url.render_as_string(hide_password=True))
        return StoreHandle(tenant_id, engine)
