import pytest

from sitebuilder.application import directory
from sitebuilder.domain.exceptions import AmbiguousKey, TenantNotFound
from sitebuilder.extensions import get_store_registry
from sitebuilder.tenants import TenantResolver


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def local_resolver(app_ctx, clock):
    return TenantResolver(suffixes=("sitebuilder.io",), ttl=5.0, clock=clock)


def test_subdomain_resolves_to_tenant_id(local_resolver, tenant):
    assert local_resolver.resolve("acme.sitebuilder.io") == "acme-id"
    assert local_resolver.resolve("ACME") == "acme-id"


def test_unknown_tenant(local_resolver):
    with pytest.raises(TenantNotFound):
        local_resolver.resolve("ghost.sitebuilder.io")


def test_misses_are_not_cached(local_resolver):
    with pytest.raises(TenantNotFound):
        local_resolver.resolve("newco")

    tenant = directory.create_tenant(subdomain="newco", name="New Co")
    assert local_resolver.resolve("newco") == tenant.id


def test_apex_is_ambiguous(local_resolver):
    with pytest.raises(AmbiguousKey):
        local_resolver.resolve("sitebuilder.io")


def test_custom_domain(local_resolver, tenant):
    directory.create_website(tenant_id=tenant.id, name="Shop", domain="Shop.Acme.com")
    assert local_resolver.resolve("shop.acme.com:443") == tenant.id


def test_cached_mapping_is_bounded_by_ttl(local_resolver, clock, tenant):
    assert local_resolver.resolve("acme") == "acme-id"

    # Rename from "another process": nothing invalidates this cache
    directory.rename_tenant(tenant_id=tenant.id, subdomain="acme-new")

    clock.now += 4.9
    assert local_resolver.resolve("acme") == "acme-id"

    clock.now += 0.2
    with pytest.raises(TenantNotFound):
        local_resolver.resolve("acme")
    assert local_resolver.resolve("acme-new") == "acme-id"


def test_rename_invalidates_local_cache(local_resolver, tenant):
    local_resolver.resolve("acme")

    directory.rename_tenant(tenant_id=tenant.id, subdomain="acme-new", resolver=local_resolver)

    with pytest.raises(TenantNotFound):
        local_resolver.resolve("acme")
    assert local_resolver.resolve("acme-new") == "acme-id"


def test_delete_invalidates_tenant_entries(local_resolver, tenant):
    local_resolver.resolve("acme")

    directory.delete_tenant(tenant_id=tenant.id, registry=get_store_registry(), resolver=local_resolver)

    with pytest.raises(TenantNotFound):
        local_resolver.resolve("acme")


def test_invalidate_all(local_resolver, tenant):
    local_resolver.resolve("acme")
    local_resolver.invalidate()
    assert local_resolver._cache == {}
