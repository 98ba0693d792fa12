import pytest

from sitebuilder import create_app
from sitebuilder.application import directory
from sitebuilder.extensions import db, get_resolver, get_store_registry
from sitebuilder.rendering import Renderer
from sitebuilder.tenants import SQLStoreProvisioner


@pytest.fixture
def app(tmp_path):
    app = create_app(
        "testing",
        {
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'directory.sqlite3'}",
            "TENANT_STORE_DIR": str(tmp_path / "tenants"),
        },
    )

    yield app

    with app.app_context():
        get_store_registry().close_all()
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture
def tenant(app_ctx):
    return directory.create_tenant(subdomain="acme", name="Acme Corp", tenant_id="acme-id")


@pytest.fixture
def website(tenant):
    return directory.create_website(tenant_id=tenant.id, name="Acme", theme="ocean")


@pytest.fixture
def store(app_ctx, tenant):
    return get_store_registry().acquire(tenant.id)


@pytest.fixture
def resolver(app_ctx):
    return get_resolver()


@pytest.fixture
def provisioner(tmp_path):
    return SQLStoreProvisioner(
        url_template="sqlite:///{base_dir}/{tenant_id}.sqlite3",
        base_dir=str(tmp_path / "stores"),
    )


@pytest.fixture
def renderer():
    return Renderer()
