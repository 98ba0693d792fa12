# sitebuilder/api/published.py
from flask import Blueprint, Response, g

from sitebuilder.application.directory import get_website
from sitebuilder.application.pages import latest_published
from sitebuilder.domain.exceptions import WebsiteNotFound
from sitebuilder.utils.decorators import tenant_required

published_bp = Blueprint("published", __name__)


@published_bp.route("/sites/<website_id>/", defaults={"path": "/"}, methods=["GET"])
@published_bp.route("/sites/<website_id>/<path:path>", methods=["GET"])
@tenant_required
def serve_page(website_id, path):
    """Serve the latest published HTML of a page; drafts never leak."""
    website = get_website(website_id=website_id, tenant_id=g.tenant_id)
    if not website.published:
        raise WebsiteNotFound(f"Website '{website_id}' is not published")

    version = latest_published(g.store, website_id=website.id, path=path)
    return Response(version.html, mimetype="text/html")
