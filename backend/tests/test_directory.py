from contextlib import contextmanager

import pytest

from sitebuilder.application import directory
from sitebuilder.domain.exceptions import (
    DuplicateDomain,
    DuplicateSubdomain,
    InvalidIdentifier,
    TenantNotFound,
    WebsiteNotFound,
)
from sitebuilder.extensions import get_store_registry
from sitebuilder.models.website import Website


def test_create_tenant_canonicalizes_subdomain(app_ctx):
    tenant = directory.create_tenant(subdomain=" Globex ", name=" Globex Inc ")
    assert tenant.subdomain == "globex"
    assert tenant.name == "Globex Inc"
    assert directory.get_tenant(tenant.id) is tenant


def test_duplicate_subdomain_is_case_insensitive(tenant):
    with pytest.raises(DuplicateSubdomain):
        directory.create_tenant(subdomain="ACME", name="Impostor")


@pytest.mark.parametrize("subdomain", ["www", "bad_label", ""])
def test_invalid_subdomain(app_ctx, subdomain):
    with pytest.raises(InvalidIdentifier):
        directory.create_tenant(subdomain=subdomain, name="X")


def test_rename_to_taken_subdomain(tenant):
    directory.create_tenant(subdomain="globex", name="Globex")
    with pytest.raises(DuplicateSubdomain):
        directory.rename_tenant(tenant_id=tenant.id, subdomain="globex")


def test_website_defaults(tenant):
    website = directory.create_website(tenant_id=tenant.id, name="Main")
    assert website.theme == "default"
    assert website.settings == {}
    assert website.published is False
    assert website.domain is None


def test_domains_are_unique_across_tenants(tenant):
    other = directory.create_tenant(subdomain="globex", name="Globex")
    directory.create_website(tenant_id=tenant.id, name="A", domain="shop.example.com")

    with pytest.raises(DuplicateDomain):
        directory.create_website(tenant_id=other.id, name="B", domain="SHOP.example.com")


def test_website_validation(tenant):
    with pytest.raises(InvalidIdentifier):
        directory.create_website(tenant_id=tenant.id, name="A", theme="Bad Theme!")
    with pytest.raises(InvalidIdentifier):
        directory.create_website(tenant_id=tenant.id, name="A", settings={"k": 1})
    with pytest.raises(TenantNotFound):
        directory.create_website(tenant_id="ghost", name="A")


def test_update_website_is_all_or_nothing(website):
    with pytest.raises(InvalidIdentifier):
        directory.update_website(
            website_id=website.id,
            tenant_id=website.tenant_id,
            data={"name": "Renamed", "theme": "!!"},
        )
    assert website.name == "Acme"

    updated = directory.update_website(
        website_id=website.id,
        tenant_id=website.tenant_id,
        data={"name": "Renamed", "published": True, "domain": "acme.example.org", "ignored": 1},
    )
    assert updated.name == "Renamed"
    assert updated.published is True
    assert updated.domain == "acme.example.org"


def test_website_is_scoped_to_its_tenant(website):
    other = directory.create_tenant(subdomain="globex", name="Globex")
    with pytest.raises(WebsiteNotFound):
        directory.get_website(website_id=website.id, tenant_id=other.id)


def test_delete_tenant_evicts_store_and_cascades(tenant, website):
    registry = get_store_registry()
    handle = registry.acquire(tenant.id)

    directory.delete_tenant(tenant_id=tenant.id, registry=registry)

    assert handle.closed
    assert tenant.id not in registry.cached_tenants()
    assert Website.query.filter_by(tenant_id=tenant.id).count() == 0
    with pytest.raises(TenantNotFound):
        directory.get_tenant(tenant.id)


def test_delete_tenant_racing_requests_leave_nothing_cached(tenant, resolver, monkeypatch):
    registry = get_store_registry()
    real_transactional = directory.transactional

    @contextmanager
    def interleaved():
        # A request lands between the first eviction and the row delete
        registry.acquire(tenant.id)
        assert resolver.resolve("acme") == tenant.id
        with real_transactional():
            yield

    monkeypatch.setattr(directory, "transactional", interleaved)

    directory.delete_tenant(tenant_id=tenant.id, registry=registry, resolver=resolver)

    assert tenant.id not in registry.cached_tenants()
    with pytest.raises(TenantNotFound):
        resolver.resolve("acme")
