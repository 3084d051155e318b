# storefront/repos/cart_repo.py
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_line import CartLineModel


class CartRepo:
    def __init__(self, db: Session):
        self.db = db

    def get_cart_by_user(self, user_id: str) -> CartModel | None:
        return self.db.execute(
            select(CartModel)
            .where(CartModel.user_id == user_id)
            .options(selectinload(CartModel.lines))
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_or_create_cart(self, user_id: str) -> CartModel:
        cart = self.get_cart_by_user(user_id)
        if cart:
            return cart

        cart = CartModel(user_id=user_id)
        try:
            # savepoint: a concurrent first request for the same user may win
            with self.db.begin_nested():
                self.db.add(cart)
                self.db.flush()
        except IntegrityError:
            cart = self.get_cart_by_user(user_id)
        return cart

    def get_line(self, cart_id: int, line_id: int) -> CartLineModel | None:
        return self.db.execute(
            select(CartLineModel).where(
                CartLineModel.id == line_id,
                CartLineModel.cart_id == cart_id,
            )
        ).scalar_one_or_none()

    def find_line(self, cart_id: int, product_id: int, variant_id: int | None) -> CartLineModel | None:
        stmt = select(CartLineModel).where(
            CartLineModel.cart_id == cart_id,
            CartLineModel.product_id == product_id,
        )
        if variant_id is None:
            stmt = stmt.where(CartLineModel.variant_id.is_(None))
        else:
            stmt = stmt.where(CartLineModel.variant_id == variant_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def add_line(self, line: CartLineModel) -> CartLineModel:
        self.db.add(line)
        self.db.flush()
        return line

    def increment_line_quantity(self, line_id: int, quantity: int) -> int:
        # UPDATE cart_lines SET quantity = quantity + :q, so two racing merges both land
        result = self.db.execute(
            update(CartLineModel)
            .where(CartLineModel.id == line_id)
            .values(quantity=CartLineModel.quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def set_line_quantity(self, line_id: int, quantity: int) -> int:
        result = self.db.execute(
            update(CartLineModel)
            .where(CartLineModel.id == line_id)
            .values(quantity=quantity)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete_line(self, cart_id: int, line_id: int) -> int:
        result = self.db.execute(
            delete(CartLineModel)
            .where(CartLineModel.id == line_id, CartLineModel.cart_id == cart_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def clear_lines(self, cart_id: int) -> int:
        result = self.db.execute(
            delete(CartLineModel)
            .where(CartLineModel.cart_id == cart_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
