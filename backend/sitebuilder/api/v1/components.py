# sitebuilder/api/v1/components.py
from flask import current_app, g, jsonify, request

from sitebuilder.application import pages as page_service
from sitebuilder.extensions import get_renderer
from sitebuilder.normalizers.component import normalize_component
from sitebuilder.tree.mutations import find, parse_operation
from sitebuilder.utils.decorators import tenant_required
from . import v1_bp
from .pages import _page_for_tenant, expected_version_from


@v1_bp.route("/pages/<page_id>/mutations", methods=["POST"])
@tenant_required
def mutate_page(page_id):
    """
    Apply one editor operation (insert / update / move / remove).

    The response carries the re-rendered fragment of the component the
    editor has to swap; ``fragment`` is null when the change landed
    directly under the page root and the caller should refresh the body.
    """
    _page_for_tenant(page_id)
    data = request.get_json(silent=True) or {}

    operation = parse_operation(data)
    result = page_service.mutate_page(
        g.store,
        page_id=page_id,
        operation=operation,
        expected_version=expected_version_from(data),
        retries=current_app.config["MUTATION_RETRIES"],
    )

    fragment = None
    if result.component_id is not None:
        fragment = get_renderer().render_component(result.tree, result.component_id)

    return jsonify({
        "version": result.page.version,
        "component_id": result.component_id,
        "tree": result.tree.to_payload(),
        "fragment": fragment,
    })

@v1_bp.route("/pages/<page_id>/components/<component_id>", methods=["GET"])
@tenant_required
def get_component(page_id, component_id):
    page, _ = _page_for_tenant(page_id)
    tree = page.load_tree()

    component = find(tree, component_id)
    data = normalize_component(component, tree)
    data["html"] = get_renderer().render_component(tree, component_id)
    return jsonify(data)
