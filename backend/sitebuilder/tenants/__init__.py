from .store import SQLStoreProvisioner, StoreHandle
from .registry import TenantStoreRegistry
from .resolver import TenantResolver
