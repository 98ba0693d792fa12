from functools import wraps
from flask import g
from sitebuilder.domain.exceptions import AmbiguousKey

def tenant_required(fn):
    """
    Marks a view as tenant-scoped: the tenant middleware resolves the
    request key and acquires the tenant's store before the view runs.
    """
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "store", None) is None:
            raise AmbiguousKey("Tenant context missing")
        return fn(*args, **kwargs)

    wrapper.tenant_scoped = True
    return wrapper
