# storefront/api/__init__.py
from storefront.api.routers import admin_orders, carts, health, orders

ROUTERS = (
    health.router,
    carts.router,
    orders.router,
    admin_orders.router,
)
