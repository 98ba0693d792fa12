# sitebuilder/application/directory.py
"""
Tenant and website administration on the shared directory database.
"""
import logging
import re
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError

from sitebuilder.domain.exceptions import (
    DuplicateDomain,
    DuplicateSubdomain,
    InvalidIdentifier,
    TenantNotFound,
    WebsiteNotFound,
)
from sitebuilder.extensions import db
from sitebuilder.models.tenant import Tenant
from sitebuilder.models.website import Website
from sitebuilder.utils.identifiers import (
    canonical_domain,
    canonical_subdomain,
    canonical_tenant_id,
)
from sitebuilder.utils.transaction import transactional

logger = logging.getLogger(__name__)

ALLOWED_WEBSITE_FIELDS = {"name", "domain", "theme", "settings", "published"}

_THEME_RE = re.compile(r"^[a-z0-9][a-z0-9_-]{0,99}$")


def _validate_theme(theme: Optional[str], default: str) -> str:
    theme = (theme or default).strip().lower()
    if not _THEME_RE.match(theme):
        raise InvalidIdentifier(f"Invalid theme key: {theme!r}")
    return theme


def _validate_settings(settings: Optional[Dict[str, Any]]) -> Dict[str, str]:
    if settings is None:
        return {}
    if not isinstance(settings, dict):
        raise InvalidIdentifier("Website settings must be an object")
    for key, value in settings.items():
        if not isinstance(key, str) or not key or not isinstance(value, str):
            raise InvalidIdentifier("Website settings map non-empty string keys to strings")
    return dict(settings)


# ------------------------
# Tenants
# ------------------------

def get_tenant(tenant_id: str) -> Tenant:
    tenant = db.session.get(Tenant, tenant_id)
    if not tenant:
        raise TenantNotFound(f"Tenant '{tenant_id}' not found")
    return tenant


def create_tenant(
    *,
    subdomain: str,
    name: str,
    tenant_id: Optional[str] = None,
) -> Tenant:
    """
    Provision a tenant in the directory.

    Edge cases handled:
    - Subdomains compared case-insensitively (stored canonical)
    - Duplicate subdomain, including a concurrent insert
    """
    subdomain = canonical_subdomain(subdomain)
    if not name or not name.strip():
        raise InvalidIdentifier("Tenant name is required")

    if Tenant.query.filter_by(subdomain=subdomain).first():
        raise DuplicateSubdomain(f"Subdomain '{subdomain}' is already taken")

    tenant = Tenant()
    if tenant_id:
        tenant.id = canonical_tenant_id(tenant_id)
    tenant.subdomain = subdomain
    tenant.name = name.strip()

    try:
        with transactional():
            db.session.add(tenant)
    except IntegrityError as exc:
        raise DuplicateSubdomain(f"Subdomain '{subdomain}' is already taken") from exc

    logger.info("Created tenant %s (%s)", tenant.id, subdomain)
    return tenant


def rename_tenant(*, tenant_id: str, subdomain: str, resolver=None) -> Tenant:
    """
    Move a tenant to a new subdomain.

    The old subdomain stops resolving in this process immediately; other
    processes observe the change within the resolver's cache TTL.
    """
    tenant = get_tenant(tenant_id)
    subdomain = canonical_subdomain(subdomain)

    if subdomain == tenant.subdomain:
        return tenant

    if Tenant.query.filter(Tenant.subdomain == subdomain, Tenant.id != tenant.id).first():
        raise DuplicateSubdomain(f"Subdomain '{subdomain}' is already taken")

    old = tenant.subdomain
    try:
        with transactional():
            tenant.subdomain = subdomain
    except IntegrityError as exc:
        raise DuplicateSubdomain(f"Subdomain '{subdomain}' is already taken") from exc

    if resolver is not None:
        resolver.invalidate(old)
        resolver.invalidate_tenant(tenant.id)

    logger.info("Renamed tenant %s: %s -> %s", tenant.id, old, subdomain)
    return tenant


def delete_tenant(*, tenant_id: str, registry, resolver=None) -> None:
    """
    Remove a tenant from the directory.

    Responsibilities:
    - Stop resolving the tenant and evict its store handle both before
      and after the row is deleted; no handle outlives the tenant
    - Cascade-delete the tenant's websites
    - Leave the tenant's store data on disk untouched
    """
    tenant = get_tenant(tenant_id)

    if resolver is not None:
        resolver.invalidate_tenant(tenant_id)
    registry.evict(tenant_id)

    with transactional():
        db.session.delete(tenant)

    if resolver is not None:
        resolver.invalidate_tenant(tenant_id)
    registry.evict(tenant_id)

    logger.info("Deleted tenant %s", tenant_id)


# ------------------------
# Websites
# ------------------------

def get_website(*, website_id: str, tenant_id: str) -> Website:
    website = Website.query.filter_by(id=website_id, tenant_id=tenant_id).first()
    if not website:
        raise WebsiteNotFound(f"Website '{website_id}' not found")
    return website


def _ensure_domain_free(domain: str, website_id: Optional[str] = None) -> None:
    query = Website.query.filter(Website.domain == domain)
    if website_id:
        query = query.filter(Website.id != website_id)
    if query.first():
        raise DuplicateDomain(f"Domain '{domain}' is already attached to a website")


def create_website(
    *,
    tenant_id: str,
    name: str,
    domain: Optional[str] = None,
    theme: Optional[str] = None,
    settings: Optional[Dict[str, str]] = None,
    default_theme: str = "default",
) -> Website:
    """
    Create a website owned by ``tenant_id``.

    Edge cases handled:
    - Custom domain collisions across all tenants
    - Settings restricted to string -> string
    """
    get_tenant(tenant_id)

    if not name or not name.strip():
        raise InvalidIdentifier("Website name is required")

    website = Website()
    website.tenant_id = tenant_id
    website.name = name.strip()
    website.theme = _validate_theme(theme, default_theme)
    website.settings = _validate_settings(settings)
    website.published = False

    if domain:
        website.domain = canonical_domain(domain)
        _ensure_domain_free(website.domain)

    try:
        with transactional():
            db.session.add(website)
    except IntegrityError as exc:
        raise DuplicateDomain(f"Domain '{website.domain}' is already attached to a website") from exc

    return website


def update_website(
    *,
    website_id: str,
    tenant_id: str,
    data: Dict[str, Any],
    resolver=None,
) -> Website:
    """
    Update mutable fields on a website.

    Design rules:
    - Only whitelisted fields are mutable
    - A domain change is checked for global uniqueness at write time
    """
    website = get_website(website_id=website_id, tenant_id=tenant_id)
    old_domain = website.domain
    changes: Dict[str, Any] = {}

    for field in ALLOWED_WEBSITE_FIELDS:
        if field not in data:
            continue
        value = data[field]

        if field == "name":
            if not value or not str(value).strip():
                raise InvalidIdentifier("Website name is required")
            value = str(value).strip()
        elif field == "theme":
            value = _validate_theme(value, website.theme)
        elif field == "settings":
            value = _validate_settings(value)
        elif field == "published":
            value = bool(value)
        elif field == "domain":
            value = canonical_domain(value) if value else None
            if value and value != old_domain:
                _ensure_domain_free(value, website.id)

        changes[field] = value

    try:
        with transactional():
            for field, value in changes.items():
                setattr(website, field, value)
    except IntegrityError as exc:
        raise DuplicateDomain(f"Domain '{website.domain}' is already attached to a website") from exc

    if resolver is not None and old_domain and old_domain != website.domain:
        resolver.invalidate(old_domain)

    return website
