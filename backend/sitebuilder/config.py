import os
from dotenv import load_dotenv

load_dotenv()


def _csv(value):
    return tuple(item.strip() for item in (value or "").split(",") if item.strip())


class BaseConfig:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    AUTO_CREATE_DIRECTORY = False

    # Tenant routing
    TENANT_HEADER = os.getenv("TENANT_HEADER", "X-Tenant")
    TENANT_DOMAIN_SUFFIXES = _csv(os.getenv("TENANT_DOMAIN_SUFFIXES", "localhost"))
    TENANT_RESOLVER_TTL = float(os.getenv("TENANT_RESOLVER_TTL", "5"))

    # Tenant stores
    TENANT_STORE_DIR = os.getenv("TENANT_STORE_DIR", os.path.abspath("instance/tenants"))
    TENANT_DATABASE_URL_TEMPLATE = os.getenv(
        "TENANT_DATABASE_URL_TEMPLATE", "sqlite:///{base_dir}/{tenant_id}.sqlite3"
    )
    TENANT_ENGINE_OPTIONS = {"pool_pre_ping": True}
    PROVISION_RETRIES = int(os.getenv("PROVISION_RETRIES", "2"))
    PROVISION_BACKOFF = float(os.getenv("PROVISION_BACKOFF", "0.05"))
    PROVISION_TIMEOUT = float(os.getenv("PROVISION_TIMEOUT", "30"))

    # Editing
    MUTATION_RETRIES = int(os.getenv("MUTATION_RETRIES", "3"))
    DEFAULT_THEME = os.getenv("DEFAULT_THEME", "default")

class DevelopmentConfig(BaseConfig):
    DEBUG = True
    AUTO_CREATE_DIRECTORY = True
    SQLALCHEMY_DATABASE_URI = os.getenv("DEV_DATABASE_URI", "sqlite:///sitebuilder-dev.sqlite3")

class ProductionConfig(BaseConfig):
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URI")

class TestingConfig(BaseConfig):
    TESTING = True
    AUTO_CREATE_DIRECTORY = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    TENANT_RESOLVER_TTL = 5.0
    PROVISION_BACKOFF = 0.0

config_by_name = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
}
