from typing import List, Tuple

from sqlalchemy import JSON, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sitebuilder.tree.model import ComponentTree
from .store_base import StoreModel


class Page(StoreModel):
    __tablename__ = "pages"

    # Website rows live in the directory database; no FK across stores
    website_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    path: Mapped[str] = mapped_column(String(512), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    meta: Mapped[list] = mapped_column(JSON, nullable=False, default=list)  # [[name, content], ...]
    tree: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    versions = relationship(
        "PageVersion",
        back_populates="page",
        order_by="PageVersion.version",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        UniqueConstraint("website_id", "path", name="uq_page_path_per_website"),
    )

    def load_tree(self) -> ComponentTree:
        return ComponentTree.from_payload(self.tree)

    def meta_pairs(self) -> List[Tuple[str, str]]:
        return [(str(name), str(content)) for name, content in (self.meta or [])]
