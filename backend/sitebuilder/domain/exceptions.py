# sitebuilder/domain/exceptions.py
"""
Error taxonomy shared by the tenant routing and component tree subsystems.

Every error carries a stable ``kind`` (what the editing client switches on)
and the HTTP status the API layer answers with.
"""


class SiteBuilderError(Exception):
    kind = "SiteBuilderError"
    status_code = 400
    default_message = "Site builder error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


# -------------------------------------------------
# Identifiers
# -------------------------------------------------

class InvalidIdentifier(SiteBuilderError, ValueError):
    kind = "InvalidIdentifier"
    default_message = "Invalid identifier"


# -------------------------------------------------
# Tenant routing
# -------------------------------------------------

class TenantNotFound(SiteBuilderError):
    kind = "TenantNotFound"
    status_code = 404
    default_message = "Tenant not found"


class AmbiguousKey(SiteBuilderError):
    kind = "AmbiguousKey"
    status_code = 400
    default_message = "Request key does not identify a tenant"


class ProvisioningError(SiteBuilderError):
    kind = "ProvisioningError"
    status_code = 503
    default_message = "Tenant store could not be provisioned"


class RegistryClosedError(SiteBuilderError):
    kind = "RegistryClosedError"
    status_code = 503
    default_message = "Tenant store registry is closed"


class StoreClosedError(SiteBuilderError):
    kind = "StoreClosedError"
    status_code = 503
    default_message = "Tenant store handle has been closed"


class DuplicateSubdomain(SiteBuilderError):
    kind = "DuplicateSubdomain"
    status_code = 409
    default_message = "Subdomain is already taken"


class DuplicateDomain(SiteBuilderError):
    kind = "DuplicateDomain"
    status_code = 409
    default_message = "Domain is already attached to another website"


class WebsiteNotFound(SiteBuilderError):
    kind = "WebsiteNotFound"
    status_code = 404
    default_message = "Website not found"


# -------------------------------------------------
# Component tree
# -------------------------------------------------

class TreeError(SiteBuilderError):
    """Structural validation error; the prior tree is always left intact."""
    kind = "TreeError"
    status_code = 422


class ParentNotFound(TreeError):
    kind = "ParentNotFound"
    status_code = 404
    default_message = "Target parent component does not exist"


class ComponentNotFound(TreeError):
    kind = "ComponentNotFound"
    status_code = 404
    default_message = "Component does not exist"


class DuplicateID(TreeError):
    kind = "DuplicateID"
    status_code = 409
    default_message = "Component id is already used in this page"


class CycleDetected(TreeError):
    kind = "CycleDetected"
    default_message = "Cannot drop a component inside itself"


class DepthExceeded(TreeError):
    kind = "DepthExceeded"
    default_message = "Component tree is nested too deeply"


class InvalidProperty(TreeError):
    kind = "InvalidProperty"
    default_message = "Unsupported property value"


class InvalidOperation(TreeError):
    kind = "InvalidOperation"
    status_code = 400
    default_message = "Invalid mutation operation"


# -------------------------------------------------
# Pages
# -------------------------------------------------

class PageNotFound(SiteBuilderError):
    kind = "PageNotFound"
    status_code = 404
    default_message = "Page not found"


class DuplicatePath(SiteBuilderError):
    kind = "DuplicatePath"
    status_code = 409
    default_message = "A page with this path already exists"


class VersionNotFound(SiteBuilderError):
    kind = "VersionNotFound"
    status_code = 404
    default_message = "Page version not found"


class VersionConflict(SiteBuilderError):
    kind = "VersionConflict"
    status_code = 409
    default_message = "Page was modified by another editor; reload and retry"

    def __init__(self, message: str | None = None, *, current_version: int | None = None):
        super().__init__(message)
        self.current_version = current_version

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.current_version is not None:
            data["current_version"] = self.current_version
        return data


# -------------------------------------------------
# Rendering
# -------------------------------------------------

class RenderPlaceholderUsed(UserWarning):
    """Emitted (not raised) when a component type has no template."""
