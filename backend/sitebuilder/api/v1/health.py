from flask import jsonify
from sitebuilder.extensions import get_store_registry
from . import v1_bp

@v1_bp.route('/health', methods=['GET'])
def health_check():
    registry = get_store_registry()
    return jsonify({
        "status": "ok" if not registry.is_closed else "shutting_down",
        "service": "sitebuilder",
        "cached_tenant_stores": len(registry.cached_tenants()),
    })
