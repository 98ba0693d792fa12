from typing import Optional

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .store_base import StoreModel


class PageVersion(StoreModel):
    __tablename__ = "page_versions"

    page_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("pages.id", ondelete="CASCADE"),
        nullable=False
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    # published | rollback

    # Page tree version the snapshot was taken from
    tree_version: Mapped[int] = mapped_column(Integer, nullable=False)
    snapshot: Mapped[dict] = mapped_column(JSON, nullable=False)
    html: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    page = relationship("Page", back_populates="versions")

    __table_args__ = (
        UniqueConstraint("page_id", "version", name="uq_page_version"),
        Index("idx_page_version_page", "page_id"),
    )
