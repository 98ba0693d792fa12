from sitebuilder.extensions import db
from .base import BaseModel
from .tenant_mixin import TenantMixin

class Website(BaseModel, TenantMixin):
    __tablename__ = "websites"

    name = db.Column(db.String(255), nullable=False)
    # Custom domain, globally unique across tenants when present
    domain = db.Column(db.String(255), unique=True, nullable=True, index=True)
    theme = db.Column(db.String(100), nullable=False, default="default")
    settings = db.Column(db.JSON, nullable=False, default=dict)  # str -> str
    published = db.Column(db.Boolean, nullable=False, default=False)

    tenant = db.relationship("Tenant", back_populates="websites")

    def to_dict(self):
        return {
            "id": self.id,
            "tenant_id": self.tenant_id,
            "name": self.name,
            "domain": self.domain,
            "theme": self.theme,
            "settings": dict(self.settings or {}),
            "published": self.published,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
