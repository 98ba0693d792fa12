def normalize_component(component, tree=None):
    data = {
        "id": component.id,
        "type": component.type,
        "props": component.props,
        "parent_id": component.parent_id,
        "order": component.order,
        "depth": component.depth,
        "children": list(component.children),
    }

    # Full nested payload when the caller has the tree at hand
    if tree is not None:
        data["subtree"] = tree.to_payload(component.id)

    return data
