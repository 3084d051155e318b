# storefront/data/seed.py
"""Development catalog: a handful of watches, some with colour variants.

    python -m storefront.data.seed
"""
from decimal import Decimal

from storefront.data.database import SessionLocal, init_db
from storefront.data.models.product import ProductModel, ProductVariantModel
from storefront.utils.logging import get_logger

logger = get_logger(__name__)

CATALOG = [
    {"name": "Classic Analog Watch", "price": "2499.00", "stock": 25, "variants": []},
    {
        "name": "Smart Fitness Band",
        "price": "3999.00",
        "stock": 0,
        "variants": [
            {"label": "Black", "price": "3999.00", "stock": 40},
            {"label": "Rose Gold", "price": "4299.00", "stock": 15},
        ],
    },
    {
        "name": "Dive Watch 200m",
        "price": "12999.00",
        "stock": 0,
        "variants": [
            {"label": "Steel", "price": "12999.00", "stock": 8},
            {"label": "Titanium", "price": "15999.00", "stock": 3},
        ],
    },
]


def seed():
    init_db()
    db = SessionLocal()
    try:
        # not forcing: only seed an empty catalog
        if db.query(ProductModel).first():
            logger.info("Catalog already seeded, skipping")
            return

        for entry in CATALOG:
            product = ProductModel(
                name=entry["name"],
                price=Decimal(entry["price"]),
                stock=entry["stock"],
            )
            for v in entry["variants"]:
                product.variants.append(
                    ProductVariantModel(label=v["label"], price=Decimal(v["price"]), stock=v["stock"])
                )
            db.add(product)
        db.commit()
        logger.info(f"Seeded {len(CATALOG)} products")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
