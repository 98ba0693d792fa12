# sitebuilder/api/v1/pages.py
from flask import Response, current_app, g, jsonify, request
from werkzeug.exceptions import BadRequest

from sitebuilder.application import pages as page_service
from sitebuilder.application.directory import get_website
from sitebuilder.extensions import get_renderer
from sitebuilder.normalizers.page import normalize_page, normalize_version
from sitebuilder.normalizers.pagination import normalize_pagination
from sitebuilder.utils.decorators import tenant_required
from . import v1_bp


def expected_version_from(data):
    """
    The version a write was based on: ``expected_version`` in the body,
    else an ``If-Match`` header. None means "whatever is current".
    """
    value = data.get("expected_version")
    if value is None:
        value = request.headers.get("If-Match")
    if value is None:
        return None

    try:
        return int(str(value).strip('"'))
    except (TypeError, ValueError) as exc:
        raise BadRequest("expected_version must be an integer") from exc


def _page_for_tenant(page_id):
    page = page_service.get_page(g.store, page_id)
    # Ownership check: the page's website must belong to the resolved tenant
    website = get_website(website_id=page.website_id, tenant_id=g.tenant_id)
    return page, website


# ------------------------
# Pages
# ------------------------

@v1_bp.route("/websites/<website_id>/pages", methods=["GET"])
@tenant_required
def list_pages(website_id):
    get_website(website_id=website_id, tenant_id=g.tenant_id)

    cursor = request.args.get("cursor")
    limit = request.args.get("limit", default=20, type=int)

    pages, meta = page_service.list_pages(
        g.store,
        website_id=website_id,
        cursor=cursor,
        limit=min(limit, 100),
    )
    return jsonify(
        normalize_pagination(
            pages,
            lambda p: normalize_page(p, include_tree=False),
            cursor=meta,
        )
    )

@v1_bp.route("/websites/<website_id>/pages", methods=["POST"])
@tenant_required
def create_page(website_id):
    get_website(website_id=website_id, tenant_id=g.tenant_id)
    data = request.get_json(silent=True) or {}

    page = page_service.create_page(
        g.store,
        website_id=website_id,
        path=data.get("path"),
        title=data.get("title"),
        meta=data.get("meta"),
        tree=data.get("tree"),
    )
    return jsonify(normalize_page(page)), 201

@v1_bp.route("/pages/<page_id>", methods=["GET"])
@tenant_required
def get_page(page_id):
    page, _ = _page_for_tenant(page_id)
    return jsonify(normalize_page(page))

@v1_bp.route("/pages/<page_id>", methods=["PATCH"])
@tenant_required
def update_page(page_id):
    _page_for_tenant(page_id)
    data = request.get_json(silent=True) or {}

    page = page_service.update_page(g.store, page_id=page_id, data=data)
    return jsonify(normalize_page(page, include_tree=False))

@v1_bp.route("/pages/<page_id>", methods=["DELETE"])
@tenant_required
def delete_page(page_id):
    _page_for_tenant(page_id)
    page_service.delete_page(g.store, page_id=page_id)
    return jsonify({"message": "Page deleted successfully"}), 200


# ------------------------
# Preview and publishing
# ------------------------

@v1_bp.route("/pages/<page_id>/preview", methods=["GET"])
@tenant_required
def preview_page(page_id):
    page, website = _page_for_tenant(page_id)
    html = get_renderer().render_page(page, website.theme)
    return Response(html, mimetype="text/html")

@v1_bp.route("/pages/<page_id>/publish", methods=["POST"])
@tenant_required
def publish_page(page_id):
    _, website = _page_for_tenant(page_id)

    version = page_service.publish_page(
        g.store,
        page_id=page_id,
        renderer=get_renderer(),
        theme=website.theme,
    )
    return jsonify(normalize_version(version)), 201

@v1_bp.route("/pages/<page_id>/versions", methods=["GET"])
@tenant_required
def list_versions(page_id):
    _page_for_tenant(page_id)
    versions = page_service.list_versions(g.store, page_id=page_id)
    return jsonify({"items": [normalize_version(v) for v in versions]})

@v1_bp.route("/pages/<page_id>/rollback", methods=["POST"])
@tenant_required
def rollback_page(page_id):
    _page_for_tenant(page_id)
    data = request.get_json(silent=True) or {}

    version = data.get("version")
    if not isinstance(version, int) or isinstance(version, bool):
        raise BadRequest("version must be an integer")

    page = page_service.rollback_page(
        g.store,
        page_id=page_id,
        version=version,
        expected_version=expected_version_from(data),
    )
    current_app.logger.info("Page %s restored from version %d", page_id, version)
    return jsonify(normalize_page(page))
