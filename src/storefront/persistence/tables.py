"""SQLAlchemy ORM models for the storefront catalog.

Only the tables the catalog cache reads from are mapped here. Products and
categories are addressed by slug; the UUID primary keys never leave the
database.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class CategoryTable(Base):
    """Product category. Hidden categories have ``display = false``."""

    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid4())
    )
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    display: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    images: Mapped[list[CategoryImageTable]] = relationship(
        back_populates="category", lazy="selectin", order_by="CategoryImageTable.display_order"
    )


class CategoryImageTable(Base):
    __tablename__ = "categories_images"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid4())
    )
    category_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )
    storage_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    category: Mapped[CategoryTable] = relationship(back_populates="images")


class SizeTable(Base):
    """Size catalogue. The lower-case slug is the primary key."""

    __tablename__ = "sizes"

    slug: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (CheckConstraint("slug = lower(slug)", name="sizes_slug_lowercase"),)


class ProductTable(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid4())
    )
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    category_slug: Mapped[str | None] = mapped_column(
        String(255), ForeignKey("categories.slug", ondelete="SET NULL"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    category: Mapped[CategoryTable | None] = relationship(lazy="selectin")
    images: Mapped[list[ProductImageTable]] = relationship(
        back_populates="product", lazy="selectin"
    )
    variants: Mapped[list[ProductVariantTable]] = relationship(
        back_populates="product", lazy="selectin"
    )

    __table_args__ = (
        CheckConstraint("price >= 0", name="products_price_positive"),
        CheckConstraint("stock_quantity >= 0", name="products_stock_quantity_non_negative"),
        Index("idx_products_category_slug", "category_slug"),
        Index("idx_products_is_featured", "is_featured"),
        Index("idx_products_created_at", "created_at"),
        Index("idx_products_price", "price"),
    )


class ProductImageTable(Base):
    __tablename__ = "product_images"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid4())
    )
    product_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    product: Mapped[ProductTable] = relationship(back_populates="images")


class ProductVariantTable(Base):
    """One purchasable size of a product."""

    __tablename__ = "product_variants"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid4())
    )
    product_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    size_slug: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("sizes.slug"), nullable=True
    )
    price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    product: Mapped[ProductTable] = relationship(back_populates="variants")
    size: Mapped[SizeTable | None] = relationship(lazy="selectin")


class RatingTable(Base):
    __tablename__ = "ratings"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False), primary_key=True, default=lambda: str(uuid4())
    )
    product_slug: Mapped[str | None] = mapped_column(
        String(255), ForeignKey("products.slug", ondelete="CASCADE"), nullable=True, index=True
    )
    user_id: Mapped[str | None] = mapped_column(UUID(as_uuid=False), nullable=True)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    images: Mapped[list[str]] = mapped_column(
        ARRAY(Text), nullable=False, default=list, server_default="{}"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint("rating >= 1 AND rating <= 5", name="ratings_rating_range"),
    )
