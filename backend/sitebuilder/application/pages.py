# sitebuilder/application/pages.py
"""
Page use cases on a tenant's isolated store.

Every function takes the tenant's StoreHandle and runs one unit of work in
``handle.session()``: it commits on success and rolls back on any error,
so a failed call never leaves a page half-written.
"""
import logging
import time
from typing import Any, Dict, List, NamedTuple, Optional, Tuple

from sqlalchemy import select, update as sql_update
from sqlalchemy.exc import IntegrityError

from sitebuilder.domain.exceptions import (
    DuplicatePath,
    InvalidIdentifier,
    PageNotFound,
    VersionConflict,
    VersionNotFound,
)
from sitebuilder.models.page import Page
from sitebuilder.models.page_version import PageVersion
from sitebuilder.models.store_base import utc_now
from sitebuilder.tree.model import ComponentTree
from sitebuilder.tree.mutations import Operation, apply_operation
from sitebuilder.utils.identifiers import normalize_page_path
from sitebuilder.utils.pagination import CursorMeta, paginate
from sitebuilder.utils.versioning import next_version, snapshot_page

logger = logging.getLogger(__name__)

ALLOWED_UPDATE_FIELDS = {"title", "path", "meta"}


class MutationResult(NamedTuple):
    page: Page
    tree: ComponentTree
    # Component whose fragment changed; None when only the page root did
    component_id: Optional[str]


def _validate_meta(meta: Any) -> List[List[str]]:
    """Meta tags are an ordered list of [name, content] pairs."""
    if meta is None:
        return []
    if isinstance(meta, dict):
        meta = list(meta.items())
    if not isinstance(meta, (list, tuple)):
        raise InvalidIdentifier("meta must be a list of [name, content] pairs")

    pairs = []
    for pair in meta:
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise InvalidIdentifier("meta must be a list of [name, content] pairs")
        name, content = pair
        if not isinstance(name, str) or not name.strip() or not isinstance(content, str):
            raise InvalidIdentifier("meta tag names and contents must be strings")
        pairs.append([name.strip(), content])
    return pairs


def _validate_title(title: Any) -> str:
    if not isinstance(title, str) or not title.strip():
        raise InvalidIdentifier("Page title is required")
    return title.strip()


def _load_page(session, page_id: str) -> Page:
    page = session.get(Page, page_id)
    if not page:
        raise PageNotFound(f"Page '{page_id}' not found")
    return page


def _path_taken(session, website_id: str, path: str, page_id: Optional[str] = None) -> bool:
    stmt = select(Page.id).where(Page.website_id == website_id, Page.path == path)
    if page_id:
        stmt = stmt.where(Page.id != page_id)
    return session.execute(stmt).first() is not None


# ------------------------
# CRUD
# ------------------------

def create_page(
    handle,
    *,
    website_id: str,
    path: str,
    title: str,
    meta: Any = None,
    tree: Optional[List[Dict[str, Any]]] = None,
) -> Page:
    """
    Create a page with an (optionally pre-populated) component tree.

    Edge cases handled:
    - Path normalized to start with "/"; unique per website
    - Initial tree validated (ids, depth, property kinds) and renumbered
    """
    path = normalize_page_path(path)
    title = _validate_title(title)
    meta = _validate_meta(meta)
    payload = ComponentTree.from_payload(tree or []).to_payload()

    try:
        with handle.session() as session:
            if _path_taken(session, website_id, path):
                raise DuplicatePath(f"A page with path '{path}' already exists")

            page = Page(
                website_id=website_id,
                path=path,
                title=title,
                meta=meta,
                tree=payload,
                version=1,
            )
            session.add(page)
    except IntegrityError as exc:
        raise DuplicatePath(f"A page with path '{path}' already exists") from exc

    return page


def get_page(handle, page_id: str) -> Page:
    with handle.session() as session:
        return _load_page(session, page_id)


def get_page_by_path(handle, *, website_id: str, path: str) -> Page:
    path = normalize_page_path(path)
    with handle.session() as session:
        page = session.execute(
            select(Page).where(Page.website_id == website_id, Page.path == path)
        ).scalar_one_or_none()
    if not page:
        raise PageNotFound(f"No page at '{path}'")
    return page


def list_pages(
    handle,
    *,
    website_id: str,
    cursor: Optional[str] = None,
    limit: int = 20,
) -> Tuple[List[Page], CursorMeta]:
    with handle.session() as session:
        return paginate(
            session,
            select(Page).where(Page.website_id == website_id),
            model=Page,
            cursor=cursor,
            limit=limit,
        )


def update_page(handle, *, page_id: str, data: Dict[str, Any]) -> Page:
    """
    Update page attributes (not the component tree).

    Design rules:
    - Only whitelisted fields are mutable
    - No silent no-op updates
    """
    changes: Dict[str, Any] = {}
    if "title" in data:
        changes["title"] = _validate_title(data["title"])
    if "path" in data:
        changes["path"] = normalize_page_path(data["path"])
    if "meta" in data:
        changes["meta"] = _validate_meta(data["meta"])

    if not changes:
        raise InvalidIdentifier(
            f"No valid fields provided for update (allowed: {', '.join(sorted(ALLOWED_UPDATE_FIELDS))})"
        )

    try:
        with handle.session() as session:
            page = _load_page(session, page_id)

            if "path" in changes and _path_taken(session, page.website_id, changes["path"], page.id):
                raise DuplicatePath(f"A page with path '{changes['path']}' already exists")

            for field, value in changes.items():
                setattr(page, field, value)
    except IntegrityError as exc:
        raise DuplicatePath("A page with this path already exists") from exc

    return page


def delete_page(handle, *, page_id: str) -> None:
    with handle.session() as session:
        session.delete(_load_page(session, page_id))


# ------------------------
# Tree mutations
# ------------------------

def _compare_and_swap(session, page_id: str, loaded_version: int, **values) -> Optional[Page]:
    """
    Write a new tree only if the page is still at ``loaded_version``.

    The conditional UPDATE is the per-page serialization point: of two
    writers that loaded the same version, exactly one matches a row.
    """
    result = session.execute(
        sql_update(Page)
        .where(Page.id == page_id, Page.version == loaded_version)
        .values(version=loaded_version + 1, updated_at=utc_now(), **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return None
    return session.get(Page, page_id, populate_existing=True)


def mutate_page(
    handle,
    *,
    page_id: str,
    operation: Operation,
    expected_version: Optional[int] = None,
    retries: int = 3,
) -> MutationResult:
    """
    Apply one tree operation to a stored page.

    Concurrency contract:
    - ``expected_version`` given: the mutation applies only to that exact
      version; anything else raises VersionConflict without retrying, so
      the editor reloads instead of overwriting a change it never saw.
    - ``expected_version`` omitted: the current version is loaded, and a
      lost race is retried at most ``retries`` times before surfacing
      VersionConflict.

    Structural errors (ParentNotFound, CycleDetected, ...) propagate with
    the stored page unchanged.
    """
    attempt = 0
    while True:
        page = get_page(handle, page_id)

        if expected_version is not None and page.version != expected_version:
            raise VersionConflict(
                f"Page is at version {page.version}, mutation was based on {expected_version}",
                current_version=page.version,
            )

        current_tree = page.load_tree()
        tree, component_id = apply_operation(current_tree, operation)
        if tree == current_tree:
            return MutationResult(page, tree, component_id)

        with handle.session() as session:
            updated = _compare_and_swap(session, page_id, page.version, tree=tree.to_payload())
        if updated is not None:
            logger.debug(
                "Applied %s to page %s (version %d -> %d)",
                operation.op, page_id, page.version, updated.version,
            )
            return MutationResult(updated, tree, component_id)

        if expected_version is not None or attempt >= retries:
            current = get_page(handle, page_id).version
            logger.warning(
                "Version conflict applying %s to page %s (loaded %d, now %d)",
                operation.op, page_id, page.version, current,
            )
            raise VersionConflict(
                f"Page changed while applying {operation.op}; reload and retry",
                current_version=current,
            )

        attempt += 1
        time.sleep(0.01 * (2 ** attempt))


# ------------------------
# Publishing
# ------------------------

def publish_page(handle, *, page_id: str, renderer, theme: Optional[str] = None) -> PageVersion:
    """
    Publishes a page as an immutable version.

    Responsibilities:
    - snapshot the live tree and page attributes
    - render and store the published document
    - number versions per page (1..N)
    """
    with handle.session() as session:
        page = _load_page(session, page_id)

        version = PageVersion(
            page_id=page.id,
            version=next_version(session, page.id),
            status="published",
            tree_version=page.version,
            snapshot=snapshot_page(page),
            html=renderer.render_page(page, theme),
        )
        session.add(version)

    logger.info("Published page %s as version %d", page_id, version.version)
    return version


def list_versions(handle, *, page_id: str) -> List[PageVersion]:
    with handle.session() as session:
        _load_page(session, page_id)
        return list(
            session.execute(
                select(PageVersion)
                .where(PageVersion.page_id == page_id)
                .order_by(PageVersion.version.desc())
            ).scalars()
        )


def latest_published(handle, *, website_id: str, path: str) -> PageVersion:
    page = get_page_by_path(handle, website_id=website_id, path=path)
    with handle.session() as session:
        version = session.execute(
            select(PageVersion)
            .where(PageVersion.page_id == page.id, PageVersion.status == "published")
            .order_by(PageVersion.version.desc())
            .limit(1)
        ).scalar_one_or_none()
    if not version:
        raise PageNotFound(f"Page '{path}' has not been published")
    return version


def rollback_page(
    handle,
    *,
    page_id: str,
    version: int,
    expected_version: Optional[int] = None,
) -> Page:
    """
    Restore a published snapshot as the live tree.

    The page gets a new tree version; the snapshot row stays immutable.
    """
    with handle.session() as session:
        page = _load_page(session, page_id)
        snapshot_row = session.execute(
            select(PageVersion).where(
                PageVersion.page_id == page_id,
                PageVersion.version == version,
            )
        ).scalar_one_or_none()
        if not snapshot_row:
            raise VersionNotFound(f"Page '{page_id}' has no version {version}")

        loaded_version = page.version if expected_version is None else expected_version

        snapshot = snapshot_row.snapshot
        attributes = snapshot.get("page") or {}
        tree = ComponentTree.from_payload(snapshot.get("tree") or [])

        restored = _compare_and_swap(
            session,
            page_id,
            loaded_version,
            tree=tree.to_payload(),
            title=attributes.get("title") or page.title,
            meta=_validate_meta(attributes.get("meta")),
        )
        if restored is None:
            raise VersionConflict(
                f"Page is at version {page.version}, rollback was based on {loaded_version}",
                current_version=page.version,
            )

    logger.info("Rolled back page %s to published version %d", page_id, version)
    return restored

