# storefront/repos/catalog_repo.py
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from storefront.data.models.product import ProductModel, ProductVariantModel


class CatalogRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_product(self, product_id: int) -> ProductModel | None:
        return self.db.get(ProductModel, product_id, populate_existing=True)

    def get_variant(self, product_id: int, variant_id: int) -> ProductVariantModel | None:
        return self.db.execute(
            select(ProductVariantModel)
            .where(
                ProductVariantModel.id == variant_id,
                ProductVariantModel.product_id == product_id,
            )
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    @staticmethod
    def _stock_update(product_id: int, variant_id: int | None):
        # stock lives on the variant row when there is one, on the product otherwise
        if variant_id is None:
            return ProductModel, [ProductModel.id == product_id]
        return ProductVariantModel, [
            ProductVariantModel.id == variant_id,
            ProductVariantModel.product_id == product_id,
        ]

    def conditional_decrement(self, product_id: int, variant_id: int | None, quantity: int) -> int:
        """UPDATE ... SET stock = stock - :q WHERE id = :id AND stock >= :q.

        Returns the affected row count; 0 means the stock was not there.
        """
        model, where = self._stock_update(product_id, variant_id)
        result = self.db.execute(
            update(model)
            .where(*where, model.stock >= quantity)
            .values(stock=model.stock - quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def increment(self, product_id: int, variant_id: int | None, quantity: int) -> int:
        model, where = self._stock_update(product_id, variant_id)
        result = self.db.execute(
            update(model)
            .where(*where)
            .values(stock=model.stock + quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
