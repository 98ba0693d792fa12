from flask import current_app, g, request
from sitebuilder.extensions import get_resolver, get_store_registry

def _is_tenant_scoped():
    view = current_app.view_functions.get(request.endpoint)
    return bool(view is not None and getattr(view, "tenant_scoped", False))

def tenant_middleware(app):
    @app.before_request
    def load_tenant():
        if not _is_tenant_scoped():
            return None

        # Explicit header wins over the Host the request arrived on
        key = request.headers.get(current_app.config["TENANT_HEADER"]) or request.host

        tenant_id = get_resolver().resolve(key)
        store = get_store_registry().acquire(tenant_id)

        # Attach tenant to global context
        g.tenant_id = tenant_id
        g.store = store
        return None
