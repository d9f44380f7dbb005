"""Turn ORM rows into the cached catalog value shapes."""

from __future__ import annotations

from collections.abc import Iterable

from storefront.catalog.schemas import (
    MAX_LISTING_IMAGES,
    Category,
    CategoryImage,
    CategoryOption,
    CategoryRef,
    Product,
    Rating,
    SizeOption,
)
from storefront.persistence.tables import (
    CategoryTable,
    ProductImageTable,
    ProductTable,
    ProductVariantTable,
    RatingTable,
)


def listing_images(images: Iterable[ProductImageTable]) -> list[str]:
    """Up to three image URLs in display order."""
    ordered = sorted(images, key=lambda img: img.display_order or 0)
    return [img.url for img in ordered if img.url][:MAX_LISTING_IMAGES]


def aggregate_sizes(
    variants: Iterable[ProductVariantTable], fallback_price: float
) -> list[SizeOption]:
    """Collapse variants into one entry per size.

    Stock is summed across variants of the same size and the lowest variant
    price wins. Variants without a price use ``fallback_price``. Variants
    without a size are skipped.
    """
    sizes: dict[str, SizeOption] = {}
    for variant in variants:
        if not variant.size_slug:
            continue
        price = float(variant.price) if variant.price is not None else fallback_price
        existing = sizes.get(variant.size_slug)
        if existing is None:
            sizes[variant.size_slug] = SizeOption(
                name=variant.size.name if variant.size else variant.size_slug,
                slug=variant.size_slug,
                price=price,
                stock_quantity=variant.stock_quantity or 0,
                display_order=variant.size.display_order if variant.size else 0,
            )
        else:
            existing.stock_quantity += variant.stock_quantity or 0
            existing.price = min(existing.price, price)
    return sorted(sizes.values(), key=lambda size: (size.display_order, size.name))


def shape_product(row: ProductTable) -> Product:
    price = float(row.price) if row.price is not None else 0.0
    return Product(
        id=row.slug,
        slug=row.slug,
        name=row.name,
        description=row.description,
        price=price,
        stock_quantity=row.stock_quantity or 0,
        is_featured=bool(row.is_featured),
        category_slug=row.category_slug,
        category=CategoryRef(name=row.category.name, slug=row.category.slug)
        if row.category
        else None,
        images=listing_images(row.images),
        sizes=aggregate_sizes(row.variants, price),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def shape_category(row: CategoryTable) -> Category:
    """Category with its images; images without a storage path are dropped."""
    images = [
        CategoryImage(
            id=img.id,
            url=f"/{img.storage_path}",
            storage_path=img.storage_path,
            is_primary=bool(img.is_primary),
            display_order=img.display_order or 0,
        )
        for img in row.images
        if img.storage_path
    ]
    images.sort(key=lambda img: img.display_order)
    return Category(
        id=row.slug,
        slug=row.slug,
        name=row.name,
        description=row.description,
        display=row.display,
        images=images,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def shape_category_option(row: CategoryTable) -> CategoryOption:
    return CategoryOption(id=row.slug, name=row.name, slug=row.slug)


def shape_rating(row: RatingTable) -> Rating:
    return Rating(
        id=row.id,
        product_slug=row.product_slug,
        user_id=row.user_id,
        rating=row.rating,
        comment=row.comment,
        images=[url for url in row.images or [] if url],
        created_at=row.created_at,
    )
