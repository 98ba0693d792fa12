def _iso(value):
    return value.isoformat() if value else None


def normalize_page(page, include_tree=True):
    data = {
        "id": page.id,
        "website_id": page.website_id,
        "path": page.path,
        "title": page.title,
        "meta": [list(pair) for pair in page.meta_pairs()],
        "version": page.version,
        "created_at": _iso(page.created_at),
        "updated_at": _iso(page.updated_at),
    }

    if include_tree:
        data["tree"] = page.load_tree().to_payload()

    return data


def normalize_version(version):
    return {
        "id": version.id,
        "page_id": version.page_id,
        "version": version.version,
        "status": version.status,
        "tree_version": version.tree_version,
        "created_at": _iso(version.created_at),
    }
