from .tenant import Tenant
from .website import Website
from .page import Page
from .page_version import PageVersion
from .store_base import TenantStoreBase
