# sitebuilder/models/store_base.py
"""
Declarative base for tables that live in a tenant's isolated store.

These tables are created on the tenant's own engine when the store is
provisioned; they never touch the shared directory database.
"""
from datetime import datetime, timezone
import uuid

from sqlalchemy import DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now():
    return datetime.now(timezone.utc)


class TenantStoreBase(DeclarativeBase):
    pass


class StoreModel(TenantStoreBase):
    __abstract__ = True

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, index=True
    )
