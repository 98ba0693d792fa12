from sitebuilder.extensions import db
from .base import BaseModel

class Tenant(BaseModel):
    __tablename__ = "tenants"

    # Stored canonical (lower-case); unique across the platform
    subdomain = db.Column(db.String(63), unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)

    websites = db.relationship(
        "Website",
        back_populates="tenant",
        order_by="Website.created_at",
        cascade="all, delete-orphan"
    )

    def to_dict(self):
        return {
            "id": self.id,
            "subdomain": self.subdomain,
            "name": self.name,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
