from contextlib import contextmanager
from sitebuilder.extensions import db

@contextmanager
def transactional():
    """Context manager for directory database transactions."""
    try:
        yield
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
