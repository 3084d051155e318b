from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from storefront.data.models.cart import CartModel
from storefront.data.models.cart_line import CartLineModel
from storefront.data.models.product import ProductModel, ProductVariantModel
from storefront.domain.errors import ErrorCode
from storefront.repos.cart_repo import CartRepo
from storefront.services.cart_service import CartService
from storefront.services.catalog_provider import CatalogProvider
from storefront.services.lock_service import LockService


class FakeRedis:
    """Just enough of redis.Redis for LockService."""

    def __init__(self):
        self.store = {}

    def set(self, name, value, nx=False, ex=None):
        if nx and name in self.store:
            return None
        self.store[name] = value
        return True

    def eval(self, script, numkeys, key, token):
        if self.store.get(key) == token:
            del self.store[key]
            return 1
        return 0


def _set_price(session_factory, model, row_id, price):
    session = session_factory()
    try:
        session.get(model, row_id).price = price
        session.commit()
    finally:
        session.close()


def test_get_cart_creates_empty_cart_once(cart_service):
    first = cart_service.get_cart("u1")
    second = cart_service.get_cart("u1")

    assert first.ok and second.ok
    assert first.value.cart_id == second.value.cart_id
    assert first.value.lines == []
    assert first.value.total_amount == Decimal("0")
    assert first.value.total_items == 0


def test_adding_same_item_twice_merges_into_one_line(cart_service, catalog):
    cart_service.add_line("u1", catalog.watch, None, 2)
    result = cart_service.add_line("u1", catalog.watch, None, 3)

    assert result.ok
    assert len(result.value.lines) == 1
    assert result.value.lines[0].quantity == 5
    assert result.value.total_items == 5
    assert result.value.total_amount == Decimal("500.00")


def test_variants_of_one_product_are_separate_lines(cart_service, catalog):
    cart_service.add_line("u1", catalog.band, catalog.black, 1)
    result = cart_service.add_line("u1", catalog.band, catalog.red, 2)

    assert result.ok
    assert {(l.variant_id, l.quantity) for l in result.value.lines} == {
        (catalog.black, 1),
        (catalog.red, 2),
    }
    assert result.value.total_amount == Decimal("190.00")


def test_add_beyond_stock_is_rejected(cart_service, catalog):
    result = cart_service.add_line("u1", catalog.band, catalog.black, 4)

    assert not result.ok
    assert result.error.code == ErrorCode.OUT_OF_STOCK
    assert "Available: 3" in result.error.message
    assert cart_service.get_cart("u1").value.lines == []


def test_merge_counts_quantity_already_in_cart(cart_service, catalog):
    assert cart_service.add_line("u1", catalog.band, catalog.black, 3).ok

    result = cart_service.add_line("u1", catalog.band, catalog.black, 1)

    assert result.error.code == ErrorCode.OUT_OF_STOCK
    assert cart_service.get_cart("u1").value.lines[0].quantity == 3


def test_non_positive_quantity_is_invalid(cart_service, catalog):
    assert cart_service.add_line("u1", catalog.watch, None, 0).error.code == ErrorCode.INVALID_QUANTITY
    assert cart_service.add_line("u1", catalog.watch, None, -2).error.code == ErrorCode.INVALID_QUANTITY


def test_unknown_product_and_foreign_variant(cart_service, catalog):
    assert cart_service.add_line("u1", 9999, None, 1).error.code == ErrorCode.PRODUCT_NOT_FOUND
    # red belongs to the band, not to the watch
    assert cart_service.add_line("u1", catalog.watch, catalog.red, 1).error.code == ErrorCode.VARIANT_NOT_FOUND


def test_inactive_product_is_not_found(cart_service, catalog, session_factory):
    session = session_factory()
    session.get(ProductModel, catalog.watch).is_active = False
    session.commit()
    session.close()

    assert cart_service.add_line("u1", catalog.watch, None, 1).error.code == ErrorCode.PRODUCT_NOT_FOUND


def test_captured_price_survives_catalog_change(cart_service, catalog, session_factory):
    cart_service.add_line("u1", catalog.band, catalog.black, 1)
    _set_price(session_factory, ProductVariantModel, catalog.black, Decimal("75.00"))

    result = cart_service.add_line("u1", catalog.band, catalog.black, 1)

    line = result.value.lines[0]
    assert line.unit_price == Decimal("60.00")
    assert line.line_total == Decimal("120.00")


def test_duplicate_line_without_variant_is_refused_by_the_database(db, catalog):
    cart = CartModel(user_id="u1")
    db.add(cart)
    db.flush()
    price = Decimal("100.00")
    db.add(CartLineModel(cart_id=cart.id, product_id=catalog.watch, quantity=1, unit_price_captured=price))
    db.flush()

    db.add(CartLineModel(cart_id=cart.id, product_id=catalog.watch, quantity=2, unit_price_captured=price))
    with pytest.raises(IntegrityError):
        db.flush()
    db.rollback()


def test_racing_first_add_merges_into_existing_line(cart_service, catalog, monkeypatch):
    assert cart_service.add_line("u1", catalog.watch, None, 1).ok

    # the other request's line is not visible yet when this one looks for it
    real_find_line = CartRepo.find_line
    misses = []

    def find_line_missing_once(self, cart_id, product_id, variant_id):
        if not misses:
            misses.append(True)
            return None
        return real_find_line(self, cart_id, product_id, variant_id)

    monkeypatch.setattr(CartRepo, "find_line", find_line_missing_once)

    result = cart_service.add_line("u1", catalog.watch, None, 2)

    assert result.ok
    assert [(l.product_id, l.quantity) for l in result.value.lines] == [(catalog.watch, 3)]


def test_set_line_quantity(cart_service, catalog):
    line_id = cart_service.add_line("u1", catalog.watch, None, 1).value.lines[0].line_id

    result = cart_service.set_line_quantity("u1", line_id, 7)

    assert result.ok
    assert result.value.lines[0].quantity == 7
    assert result.value.lines[0].unit_price == Decimal("100.00")


def test_set_line_quantity_rejections(cart_service, catalog):
    line_id = cart_service.add_line("u1", catalog.band, catalog.black, 1).value.lines[0].line_id

    assert cart_service.set_line_quantity("u1", line_id, 0).error.code == ErrorCode.INVALID_QUANTITY
    assert cart_service.set_line_quantity("u1", line_id, 4).error.code == ErrorCode.OUT_OF_STOCK
    # a line from someone else's cart does not exist for this user
    assert cart_service.set_line_quantity("u2", line_id, 1).error.code == ErrorCode.CART_LINE_NOT_FOUND
    assert cart_service.get_cart("u1").value.lines[0].quantity == 1


def test_remove_line_and_clear(cart_service, catalog):
    cart = cart_service.add_line("u1", catalog.watch, None, 1).value
    cart = cart_service.add_line("u1", catalog.band, catalog.red, 1).value
    watch_line = next(l for l in cart.lines if l.product_id == catalog.watch)

    after_remove = cart_service.remove_line("u1", watch_line.line_id)
    assert after_remove.ok
    assert [l.product_id for l in after_remove.value.lines] == [catalog.band]

    assert cart_service.remove_line("u1", watch_line.line_id).error.code == ErrorCode.CART_LINE_NOT_FOUND

    cleared = cart_service.clear("u1")
    assert cleared.ok
    assert cleared.value.lines == []
    assert cleared.value.cart_id == cart.cart_id


def test_mutations_advance_last_updated(cart_service, catalog):
    before = cart_service.get_cart("u1").value.last_updated
    after = cart_service.add_line("u1", catalog.watch, None, 1).value.last_updated

    assert after >= before


def test_view_reports_live_stock(cart_service, catalog):
    line = cart_service.add_line("u1", catalog.band, catalog.red, 2).value.lines[0]

    assert line.available_stock == 5


def test_busy_cart_lock_rejects_mutation(db, catalog):
    fake = FakeRedis()
    locks = LockService(client=fake, attempts=2)
    fake.store[locks._key("u1")] = "someone-else"
    service = CartService(db=db, catalog=CatalogProvider(db), lock_service=locks)

    result = service.add_line("u1", catalog.watch, None, 1)

    assert result.error.code == ErrorCode.CART_BUSY
    # reads do not take the lock
    assert service.get_cart("u1").ok
    assert service.get_cart("u1").value.lines == []


def test_lock_is_released_after_mutation(db, catalog):
    fake = FakeRedis()
    service = CartService(db=db, catalog=CatalogProvider(db), lock_service=LockService(client=fake, attempts=2))

    assert service.add_line("u1", catalog.watch, None, 1).ok
    assert fake.store == {}


def test_lock_release_needs_matching_token():
    fake = FakeRedis()
    locks = LockService(client=fake, attempts=1)

    token = locks.acquire("u1")
    assert token
    assert locks.acquire("u1") is None
    assert locks.release("u1", "not-the-token") is False
    assert locks.release("u1", token) is True
    assert locks.acquire("u1")
