# storefront/services/catalog_provider.py
from sqlalchemy.orm import Session

from storefront.domain.errors import ProductNotFound, VariantNotFound
from storefront.domain.schemas import CatalogItem
from storefront.repos.catalog_repo import CatalogRepo
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CatalogProvider:
    """
    Price and stock lookups against the catalog tables.

    Works on the caller's session, so stock writes commit or roll back
    together with the order / cancellation that caused them.
    Stock is only ever changed with single conditional UPDATE statements.
    """

    def __init__(self, db: Session):
        self.repo = CatalogRepo(db)

    def get_item(self, product_id: int, variant_id: int | None = None) -> CatalogItem:
        product = self.repo.get_product(product_id)
        if not product or not product.is_active:
            raise ProductNotFound(f"Product {product_id} not found")

        if variant_id is None:
            return CatalogItem(
                product_id=product.id,
                variant_id=None,
                name=product.name,
                variant_label=None,
                price=product.price,
                stock=product.stock,
            )

        variant = self.repo.get_variant(product_id, variant_id)
        if not variant or not variant.is_active:
            raise VariantNotFound(f"Variant {variant_id} not found for product {product.name}")

        return CatalogItem(
            product_id=product.id,
            variant_id=variant.id,
            name=product.name,
            variant_label=variant.label,
            price=variant.price,
            stock=variant.stock,
        )

    def get_stock(self, product_id: int, variant_id: int | None = None) -> int:
        return self.get_item(product_id, variant_id).stock

    def decrement_stock(self, product_id: int, variant_id: int | None, quantity: int) -> bool:
        """False means insufficient stock (or the row vanished); nothing was written."""
        rowcount = self.repo.conditional_decrement(product_id, variant_id, quantity)
        if rowcount == 0:
            logger.info(
                f"Stock decrement refused for product {product_id} variant {variant_id} qty {quantity}"
            )
            return False
        return True

    def increment_stock(self, product_id: int, variant_id: int | None, quantity: int):
        rowcount = self.repo.increment(product_id, variant_id, quantity)
        if rowcount == 0:
            if variant_id is None:
                raise ProductNotFound(f"Cannot restock product {product_id}: not in catalog")
            raise VariantNotFound(
                f"Cannot restock variant {variant_id} of product {product_id}: not in catalog"
            )
