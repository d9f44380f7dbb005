"""Tests for turning ORM rows into catalog values."""

from datetime import datetime, timezone
from decimal import Decimal

from storefront.catalog.shaping import (
    aggregate_sizes,
    listing_images,
    shape_category,
    shape_product,
    shape_rating,
)
from storefront.persistence.tables import (
    CategoryImageTable,
    CategoryTable,
    ProductImageTable,
    ProductTable,
    ProductVariantTable,
    RatingTable,
    SizeTable,
)

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)

SMALL = SizeTable(slug="s", name="Small", display_order=1)
MEDIUM = SizeTable(slug="m", name="Medium", display_order=2)


def image(url, order):
    return ProductImageTable(url=url, display_order=order, is_primary=False)


def variant(size, price=None, stock=1):
    return ProductVariantTable(
        size_slug=size.slug if size else None,
        size=size,
        price=Decimal(price) if price is not None else None,
        stock_quantity=stock,
    )


class TestListingImages:
    def test_ordered_and_capped(self) -> None:
        images = [image("/d.jpg", 4), image("/b.jpg", 2), image("/a.jpg", 1), image("/c.jpg", 3)]
        assert listing_images(images) == ["/a.jpg", "/b.jpg", "/c.jpg"]

    def test_skips_missing_urls(self) -> None:
        assert listing_images([image(None, 1), image("/b.jpg", 2)]) == ["/b.jpg"]


class TestAggregateSizes:
    def test_one_entry_per_size(self) -> None:
        """Stock is summed and the lowest price wins."""
        sizes = aggregate_sizes(
            [
                variant(MEDIUM, "30.00", stock=2),
                variant(SMALL, "25.00", stock=1),
                variant(SMALL, "22.50", stock=4),
            ],
            fallback_price=20.0,
        )

        assert [s.slug for s in sizes] == ["s", "m"]
        assert sizes[0].name == "Small"
        assert sizes[0].stock_quantity == 5
        assert sizes[0].price == 22.5
        assert sizes[1].stock_quantity == 2

    def test_fallback_price(self) -> None:
        sizes = aggregate_sizes([variant(SMALL)], fallback_price=19.99)
        assert sizes[0].price == 19.99

    def test_variant_without_size_skipped(self) -> None:
        assert aggregate_sizes([variant(None, "10.00")], fallback_price=10.0) == []


class TestShapeProduct:
    def test_full_row(self) -> None:
        row = ProductTable(
            slug="blue-shirt",
            name="Blue Shirt",
            description="Cotton",
            price=Decimal("29.90"),
            stock_quantity=7,
            is_featured=True,
            category_slug="shirts",
            created_at=NOW,
            updated_at=NOW,
        )
        row.category = CategoryTable(slug="shirts", name="Shirts")
        row.images = [image("/b.jpg", 2), image("/a.jpg", 1)]
        row.variants = [variant(SMALL, stock=3)]

        product = shape_product(row)

        assert product.id == "blue-shirt"
        assert product.price == 29.9
        assert product.is_featured is True
        assert product.category is not None
        assert product.category.slug == "shirts"
        assert product.images == ["/a.jpg", "/b.jpg"]
        assert [s.slug for s in product.sizes] == ["s"]
        assert product.sizes[0].price == 29.9

    def test_row_without_category(self) -> None:
        row = ProductTable(slug="loose", name="Loose", price=Decimal("5"), created_at=NOW)
        product = shape_product(row)
        assert product.category is None
        assert product.images == []
        assert product.stock_quantity == 0


class TestShapeCategory:
    def test_images_have_urls(self) -> None:
        row = CategoryTable(slug="hats", name="Hats", display=True, created_at=NOW)
        row.images = [
            CategoryImageTable(storage_path="categories/hats-2.jpg", display_order=2),
            CategoryImageTable(storage_path=None, display_order=0),
            CategoryImageTable(
                storage_path="categories/hats-1.jpg", display_order=1, is_primary=True
            ),
        ]

        category = shape_category(row)

        assert category.id == "hats"
        assert [img.url for img in category.images] == [
            "/categories/hats-1.jpg",
            "/categories/hats-2.jpg",
        ]
        assert category.images[0].is_primary is True


def test_shape_rating() -> None:
    row = RatingTable(
        id="r1", product_slug="blue-shirt", user_id=None, rating=4, comment="Nice", created_at=NOW
    )
    rating = shape_rating(row)
    assert rating.rating == 4
    assert rating.product_slug == "blue-shirt"
    assert rating.images == []


def test_shape_rating_keeps_uploaded_images() -> None:
    row = RatingTable(
        id="r2",
        product_slug="blue-shirt",
        rating=5,
        images=["https://img.example/r2-a.jpg", "", "https://img.example/r2-b.jpg"],
        created_at=NOW,
    )
    assert shape_rating(row).images == [
        "https://img.example/r2-a.jpg",
        "https://img.example/r2-b.jpg",
    ]
