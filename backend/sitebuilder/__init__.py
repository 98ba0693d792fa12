import atexit
import logging
import os
import weakref

from flask import Flask, current_app, send_file
from flask_swagger_ui import get_swaggerui_blueprint

from .config import config_by_name
from .extensions import db, migrate
from .api.v1 import v1_bp
from .api.published import published_bp
from .middleware.tenant_middleware import tenant_middleware
from .errors import register_error_handlers
from .rendering import Renderer
from .tenants import TenantResolver, TenantStoreRegistry

# Registries of every app built in this process, closed once at exit
_registries = weakref.WeakSet()


def _close_registries():
    for registry in list(_registries):
        registry.close_all()


atexit.register(_close_registries)


def create_app(config_name: str = "development", overrides: dict = None) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_by_name[config_name])
    if overrides:
        app.config.update(overrides)

    logging.getLogger("sitebuilder").setLevel(app.config["LOG_LEVEL"])

    # -------------------------------------------------
    # Extensions
    # -------------------------------------------------
    db.init_app(app)
    migrate.init_app(app, db)

    registry = TenantStoreRegistry.from_config(app.config)
    app.extensions["tenant_store_registry"] = registry
    app.extensions["tenant_resolver"] = TenantResolver.from_config(app.config)
    app.extensions["renderer"] = Renderer(default_theme=app.config["DEFAULT_THEME"])

    _registries.add(registry)

    if app.config.get("AUTO_CREATE_DIRECTORY"):
        from . import models  # noqa: F401  directory tables
        with app.app_context():
            db.create_all()

    # -------------------------------------------------
    # Middleware
    # -------------------------------------------------
    tenant_middleware(app)

    # -------------------------------------------------
    # Blueprints
    # -------------------------------------------------
    app.register_blueprint(v1_bp, url_prefix="/api/v1")
    app.register_blueprint(published_bp)
    register_error_handlers(app)

    # -------------------------------------------------
    # Serve OpenAPI YAML (PUBLIC, NO TENANT)
    # -------------------------------------------------
    @app.route("/openapi/sites.yaml", methods=["GET"], endpoint="openapi_sites")
    def serve_openapi():
        spec_path = os.path.join(
            current_app.root_path,
            "api",
            "v1",
            "sites_openapi.yaml",
        )

        if not os.path.exists(spec_path):
            raise FileNotFoundError("sites_openapi.yaml not found")

        return send_file(
            spec_path,
            mimetype="application/yaml",
            as_attachment=False,
        )

    # -------------------------------------------------
    # Swagger UI
    # -------------------------------------------------
    SWAGGER_URL = "/swagger"
    API_URL = "/openapi/sites.yaml"

    swaggerui_blueprint = get_swaggerui_blueprint(
        SWAGGER_URL,
        API_URL,
        config={
            "app_name": "Site Builder API",
            "deepLinking": True,
        },
    )

    app.register_blueprint(swaggerui_blueprint, url_prefix=SWAGGER_URL)

    return app
