"""Provider category ORM model."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from provider_sync.models.base import Base, CreatedAtMixin, IdMixin


class Category(Base, IdMixin, CreatedAtMixin):
    """Listing category (djs, photographers, videographers)."""

    __tablename__ = "categories"

    slug: Mapped[str] = mapped_column(String(64), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
