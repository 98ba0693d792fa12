# sitebuilder/api/v1/admin.py
from flask import current_app, jsonify, request
from sitebuilder.application import directory
from sitebuilder.extensions import get_resolver, get_store_registry
from . import v1_bp


# ------------------------
# Tenants
# ------------------------

@v1_bp.route("/admin/tenants", methods=["POST"])
def create_tenant():
    data = request.get_json(silent=True) or {}

    tenant = directory.create_tenant(
        subdomain=data.get("subdomain"),
        name=data.get("name"),
        tenant_id=data.get("id"),
    )
    return jsonify(tenant.to_dict()), 201

@v1_bp.route("/admin/tenants/<tenant_id>", methods=["GET"])
def get_tenant(tenant_id):
    tenant = directory.get_tenant(tenant_id)
    data = tenant.to_dict()
    data["websites"] = [w.to_dict() for w in tenant.websites]
    return jsonify(data)

@v1_bp.route("/admin/tenants/<tenant_id>", methods=["PATCH"])
def rename_tenant(tenant_id):
    data = request.get_json(silent=True) or {}

    tenant = directory.rename_tenant(
        tenant_id=tenant_id,
        subdomain=data.get("subdomain"),
        resolver=get_resolver(),
    )
    return jsonify(tenant.to_dict())

@v1_bp.route("/admin/tenants/<tenant_id>", methods=["DELETE"])
def delete_tenant(tenant_id):
    directory.delete_tenant(
        tenant_id=tenant_id,
        registry=get_store_registry(),
        resolver=get_resolver(),
    )
    return jsonify({"message": "Tenant deleted successfully"}), 200

@v1_bp.route("/admin/tenants/<tenant_id>/store", methods=["DELETE"])
def evict_tenant_store(tenant_id):
    """Administrative reset: drop the cached store handle."""
    evicted = get_store_registry().evict(tenant_id)
    return jsonify({"evicted": evicted})


# ------------------------
# Websites
# ------------------------

@v1_bp.route("/admin/tenants/<tenant_id>/websites", methods=["POST"])
def create_website(tenant_id):
    data = request.get_json(silent=True) or {}

    website = directory.create_website(
        tenant_id=tenant_id,
        name=data.get("name"),
        domain=data.get("domain"),
        theme=data.get("theme"),
        settings=data.get("settings"),
        default_theme=current_app.config["DEFAULT_THEME"],
    )
    return jsonify(website.to_dict()), 201

@v1_bp.route("/admin/tenants/<tenant_id>/websites/<website_id>", methods=["PATCH"])
def update_website(tenant_id, website_id):
    data = request.get_json(silent=True) or {}

    website = directory.update_website(
        website_id=website_id,
        tenant_id=tenant_id,
        data=data,
        resolver=get_resolver(),
    )
    return jsonify(website.to_dict())