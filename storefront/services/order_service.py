# storefront/services/order_service.py
from decimal import Decimal

from sqlalchemy.orm import Session

from storefront.data.models.order import OrderModel
from storefront.data.models.order_line import OrderLineModel
from storefront.domain.errors import (
    EmptyCart,
    InsufficientStock,
    OrderNotFound,
    Result,
    Unauthorized,
)
from storefront.domain.order_status import (
    OrderStatus,
    ensure_admin_transition,
    ensure_cancellable,
    is_terminal,
)
from storefront.domain.schemas import ShippingInfo
from storefront.repos.cart_repo import CartRepo
from storefront.repos.order_repo import OrderRepo
from storefront.services.catalog_provider import CatalogProvider
from storefront.services.notification_service import NotificationService
from storefront.services.unit_of_work import run_in_transaction
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def authorize(order: OrderModel, acting_user_id: str | None, is_admin: bool):
    """Only the owner or an administrator may act on an order."""
    if not is_admin and order.user_id != acting_user_id:
        raise Unauthorized("Not allowed to access this order")


class OrderService:
    """
    Order domain: placing an order from the cart and driving its lifecycle.

    create_order is one transaction: validate the cart against live stock,
    deduct stock, snapshot lines, insert the order, clear the cart. Either
    all of it commits or none of it does.
    """

    def __init__(
        self,
        db: Session,
        catalog: CatalogProvider,
        notifier: NotificationService | None = None,
    ):
        self.db = db
        self.repo = OrderRepo(db)
        self.carts = CartRepo(db)
        self.catalog = catalog
        self.notifier = notifier or NotificationService()

    # commands

    def create_order(self, user_id: str, shipping: ShippingInfo) -> Result[OrderModel]:
        result = run_in_transaction(
            self.db,
            lambda: self._place_order(user_id, shipping),
            f"Order placement for user {user_id}",
        )
        if result.ok:
            order = result.value
            logger.info(
                f"Order {order.id} placed for user {user_id}: "
                f"{len(order.lines)} lines, total {order.total_amount}"
            )
            self.notifier.order_placed(user_id, order.id)
        return result

    def cancel_order(
        self,
        order_id: int,
        acting_user_id: str | None,
        is_admin: bool = False,
        comment: str | None = None,
    ) -> Result[OrderModel]:
        def action():
            order = self._load(order_id, for_update=True)
            authorize(order, acting_user_id, is_admin)
            ensure_cancellable(order.status)

            # give back exactly what was taken, to the row it was taken from
            for line in order.lines:
                self.catalog.increment_stock(line.product_id, line.variant_id, line.quantity_snapshot)

            previous = order.status
            order.set_status(OrderStatus.CANCELLED)
            if comment:
                order.admin_comment = comment
            logger.info(
                f"Order {order.id} cancelled by {'admin' if is_admin else acting_user_id} "
                f"(was {previous.value}), stock restored for {len(order.lines)} lines"
            )
            return order

        result = run_in_transaction(self.db, action, f"Cancellation of order {order_id}")
        if result.ok:
            self.notifier.order_cancelled(result.value.user_id, order_id)
        return result

    def update_order_status(
        self,
        order_id: int,
        new_status: OrderStatus,
        comment: str | None = None,
    ) -> Result[OrderModel]:
        """Administrative status write.

        Cancelled goes through cancel_order so stock is restituted; every
        other target is a plain status write plus shipped/delivered stamps.
        """
        if new_status == OrderStatus.CANCELLED:
            return self.cancel_order(order_id, acting_user_id=None, is_admin=True, comment=comment)

        changed = []

        def action():
            order = self._load(order_id, for_update=True)

            if order.status == new_status and not is_terminal(order.status):
                logger.info(f"Order {order_id} already {new_status.value}, nothing to do")
            else:
                ensure_admin_transition(order.status, new_status)
                logger.info(f"Order {order_id}: {order.status.value} -> {new_status.value} (admin)")
                order.set_status(new_status)
                changed.append(True)

            if comment:
                order.admin_comment = comment
            return order

        result = run_in_transaction(self.db, action, f"Status update of order {order_id}")
        if result.ok and changed:
            self.notifier.status_changed(result.value.user_id, order_id, new_status.value)
        return result

    # queries

    def get_order(self, order_id: int, acting_user_id: str | None, is_admin: bool = False) -> Result[OrderModel]:
        def action():
            order = self._load(order_id)
            authorize(order, acting_user_id, is_admin)
            return order

        return run_in_transaction(self.db, action, f"Lookup of order {order_id}")

    def list_user_orders(self, user_id: str) -> Result[list[OrderModel]]:
        return run_in_transaction(
            self.db, lambda: self.repo.list_by_user(user_id), f"Order listing for user {user_id}"
        )

    def list_orders(self, status: OrderStatus | None = None) -> Result[list[OrderModel]]:
        return run_in_transaction(self.db, lambda: self.repo.list_all(status), "Order listing")

    # internals

    def _load(self, order_id: int, for_update: bool = False) -> OrderModel:
        order = self.repo.get_order(order_id, for_update=for_update)
        if not order:
            raise OrderNotFound()
        return order

    def _place_order(self, user_id: str, shipping: ShippingInfo) -> OrderModel:
        cart = self.carts.get_cart_by_user(user_id)
        if cart is None or not cart.lines:
            raise EmptyCart()

        # 1. re-validate every line against live stock before touching anything
        checked = []
        for line in cart.lines:
            item = self.catalog.get_item(line.product_id, line.variant_id)
            if item.stock < line.quantity:
                raise InsufficientStock(
                    f"Insufficient stock for {item.describe()}. Available: {item.stock}"
                )
            checked.append((line, item))

        order = OrderModel(
            user_id=user_id,
            status=OrderStatus.PENDING,
            shipping_address=shipping.shipping_address,
            customer_phone=shipping.customer_phone,
            customer_email=shipping.customer_email,
            total_amount=Decimal("0.00"),
        )

        # 2. deduct stock and snapshot each line at the current catalog price
        total = Decimal("0.00")
        for line, item in checked:
            if not self.catalog.decrement_stock(item.product_id, item.variant_id, line.quantity):
                # lost a race with another order since the check above
                raise InsufficientStock(f"Insufficient stock for {item.describe()}")

            order_line = OrderLineModel(
                product_id=item.product_id,
                variant_id=item.variant_id,
                quantity_snapshot=line.quantity,
                unit_price_snapshot=item.price,
                product_name_snapshot=item.name,
                variant_label_snapshot=item.variant_label,
            )
            order.lines.append(order_line)
            total += order_line.total_price

        order.total_amount = total
        self.repo.add_order(order)

        # 3. the cart is emptied in the same transaction
        self.carts.clear_lines(cart.id)
        cart.touch()

        return order
