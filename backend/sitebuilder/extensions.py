from flask import current_app
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

# Directory database: tenants and websites shared by every tenant.
db = SQLAlchemy()
migrate = Migrate()


def get_store_registry():
    return current_app.extensions["tenant_store_registry"]


def get_resolver():
    return current_app.extensions["tenant_resolver"]


def get_renderer():
    return current_app.extensions["renderer"]
