# storefront/services/cart_service.py
from contextlib import contextmanager
from typing import Callable

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_line import CartLineModel
from storefront.domain.errors import (
    CartLineNotFound,
    DomainError,
    InvalidQuantity,
    OutOfStock,
    Result,
)
from storefront.domain.schemas import CartLineOut, CartOut, CatalogItem
from storefront.repos.cart_repo import CartRepo
from storefront.services.catalog_provider import CatalogProvider
from storefront.services.lock_service import LockService
from storefront.services.unit_of_work import run_in_transaction
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class CartService:
    """
    Use cases for a user's shopping cart.

    commands (add_line, set_line_quantity, remove_line, clear) run under the
    per-user cart lock (when one is configured) and in one DB transaction each;
    get_cart only creates the cart row on first use.
    Every call returns a Result; domain errors never escape.
    """

    def __init__(
        self,
        db: Session,
        catalog: CatalogProvider,
        lock_service: LockService | None = None,
    ):
        self.db = db
        self.repo = CartRepo(db)
        self.catalog = catalog
        self.lock_service = lock_service

    # query

    def get_cart(self, user_id: str) -> Result[CartOut]:
        return self._run(user_id, lambda: self.repo.get_or_create_cart(user_id), locked=False)

    # commands

    def add_line(
        self,
        user_id: str,
        product_id: int,
        variant_id: int | None,
        quantity: int,
    ) -> Result[CartOut]:
        if quantity < 1:
            return Result.failure(InvalidQuantity())

        def action():
            item = self.catalog.get_item(product_id, variant_id)
            cart = self.repo.get_or_create_cart(user_id)

            existing = self.repo.find_line(cart.id, product_id, variant_id)
            requested = quantity + (existing.quantity if existing else 0)
            if item.stock < requested:
                raise OutOfStock(
                    f"Insufficient stock for {item.describe()}. Available: {item.stock}"
                )

            if existing:
                logger.info(
                    f"Product {product_id}/{variant_id} already in cart {cart.id}, "
                    f"adding {quantity} to {existing.quantity}"
                )
                self.repo.increment_line_quantity(existing.id, quantity)
            else:
                logger.info(f"Adding product {product_id}/{variant_id} x{quantity} to cart {cart.id}")
                self._insert_or_merge(cart, item, quantity)

            cart.touch()

        return self._run(user_id, action)

    def set_line_quantity(self, user_id: str, line_id: int, quantity: int) -> Result[CartOut]:
        if quantity < 1:
            return Result.failure(InvalidQuantity())

        def action():
            cart = self.repo.get_or_create_cart(user_id)
            line = self.repo.get_line(cart.id, line_id)
            if not line:
                raise CartLineNotFound()

            available = self.catalog.get_stock(line.product_id, line.variant_id)
            if available < quantity:
                raise OutOfStock(f"Insufficient stock available. Available: {available}")

            # the captured price stays as it was
            self.repo.set_line_quantity(line.id, quantity)
            cart.touch()
            logger.info(f"Cart {cart.id} line {line_id} quantity set to {quantity}")

        return self._run(user_id, action)

    def remove_line(self, user_id: str, line_id: int) -> Result[CartOut]:
        def action():
            cart = self.repo.get_or_create_cart(user_id)
            if self.repo.delete_line(cart.id, line_id) == 0:
                raise CartLineNotFound()
            cart.touch()
            logger.info(f"Removed line {line_id} from cart {cart.id}")

        return self._run(user_id, action)

    def clear(self, user_id: str) -> Result[CartOut]:
        def action():
            cart = self.repo.get_or_create_cart(user_id)
            removed = self.repo.clear_lines(cart.id)
            cart.touch()
            logger.info(f"Cleared cart {cart.id} ({removed} lines)")

        return self._run(user_id, action)

    # internals

    def _insert_or_merge(self, cart: CartModel, item: CatalogItem, quantity: int):
        line = CartLineModel(
            cart_id=cart.id,
            product_id=item.product_id,
            variant_id=item.variant_id,
            quantity=quantity,
            unit_price_captured=item.price,
        )
        try:
            with self.db.begin_nested():
                self.repo.add_line(line)
        except IntegrityError:
            # another request created the same line first; merge into it
            existing = self.repo.find_line(cart.id, item.product_id, item.variant_id)
            if existing is None:
                raise
            self.repo.increment_line_quantity(existing.id, quantity)

    @contextmanager
    def _locked(self, user_id: str):
        if self.lock_service is None:
            yield
            return
        with self.lock_service.hold(user_id):
            yield

    def _run(self, user_id: str, action: Callable[[], object], locked: bool = True) -> Result[CartOut]:
        label = f"Cart operation for user {user_id}"
        try:
            if locked:
                with self._locked(user_id):
                    result = run_in_transaction(self.db, action, label)
            else:
                result = run_in_transaction(self.db, action, label)
        except DomainError as e:
            # raised by the lock itself (busy / redis down), nothing touched yet
            logger.info(f"{label} not started: {e.code.value} {e.message}")
            return Result.failure(e)

        if not result.ok:
            return result
        return run_in_transaction(self.db, lambda: self._view(user_id), label)

    def _view(self, user_id: str) -> CartOut:
        cart = self.repo.get_cart_by_user(user_id)

        lines = []
        for line in cart.lines:
            try:
                available = self.catalog.get_stock(line.product_id, line.variant_id)
            except DomainError:
                # dropped from the catalog since it was added; order placement will reject it
                available = None
            lines.append(
                CartLineOut(
                    line_id=line.id,
                    product_id=line.product_id,
                    variant_id=line.variant_id,
                    unit_price=line.unit_price_captured,
                    quantity=line.quantity,
                    line_total=line.line_total,
                    available_stock=available,
                )
            )

        return CartOut(
            cart_id=cart.id,
            user_id=cart.user_id,
            lines=lines,
            total_amount=cart.total_amount,
            total_items=cart.total_items,
            last_updated=cart.last_updated,
        )
