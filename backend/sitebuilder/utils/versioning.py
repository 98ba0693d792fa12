from sqlalchemy import func, select


def snapshot_page(page):
    return {
        "page": {
            "id": page.id,
            "website_id": page.website_id,
            "title": page.title,
            "path": page.path,
            "meta": [list(pair) for pair in page.meta_pairs()],
            "version": page.version,
        },
        "tree": page.load_tree().to_payload(),
    }

def next_version(session, page_id):
    from sitebuilder.models.page_version import PageVersion

    last = session.execute(
        select(func.max(PageVersion.version)).where(PageVersion.page_id == page_id)
    ).scalar()
    return (last + 1) if last else 1
