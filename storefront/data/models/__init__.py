# import all models so SQLAlchemy registers them in Base.metadata

from storefront.data.models.product import ProductModel, ProductVariantModel
from storefront.data.models.cart import CartModel
from storefront.data.models.cart_line import CartLineModel
from storefront.data.models.order import OrderModel
from storefront.data.models.order_line import OrderLineModel

__all__ = [
    "ProductModel",
    "ProductVariantModel",
    "CartModel",
    "CartLineModel",
    "OrderModel",
    "OrderLineModel",
]
