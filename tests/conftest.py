import os
import tempfile

# must be in place before anything under storefront reads its settings
_TMP_DIR = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'app.db')}"
os.environ["REDIS_URL"] = ""
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["PAYMENT_GATEWAY_KEY_SECRET"] = "test-secret"
os.environ["PAYMENT_GATEWAY_KEY_ID"] = "rzp_test_key"

from decimal import Decimal
from types import SimpleNamespace

import pytest
import requests
from sqlalchemy.orm import sessionmaker

from storefront.data.database import init_db, make_engine
from storefront.data.models.order import OrderModel
from storefront.data.models.product import ProductModel, ProductVariantModel
from storefront.domain.order_status import OrderStatus
from storefront.domain.schemas import ShippingInfo
from storefront.services.cart_service import CartService
from storefront.services.catalog_provider import CatalogProvider
from storefront.services.order_service import OrderService
from storefront.services.payment_service import PaymentService

SECRET = "test-secret"


class RecordingNotifier:
    def __init__(self):
        self.calls = []

    def order_placed(self, user_id, order_id):
        self.calls.append(("order_placed", user_id, order_id))

    def order_cancelled(self, user_id, order_id):
        self.calls.append(("order_cancelled", user_id, order_id))

    def payment_confirmed(self, user_id, order_id):
        self.calls.append(("payment_confirmed", user_id, order_id))

    def status_changed(self, user_id, order_id, status):
        self.calls.append(("status_changed", user_id, order_id, status))

    def named(self, name):
        return [c for c in self.calls if c[0] == name]


class FakeGateway:
    currency = "INR"

    def __init__(self):
        self.should_fail = False
        self.calls = []

    def create_gateway_order(self, order_id, amount):
        self.calls.append((order_id, amount))
        if self.should_fail:
            raise requests.ConnectionError("gateway down")
        return f"gw_order_{order_id}_{len(self.calls)}"


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def catalog(db):
    """
    watch: 100.00, stock 10, no variants
    band:  variants black (60.00, stock 3) and red (65.00, stock 5)
    """
    watch = ProductModel(name="Classic Analog Watch", price=Decimal("100.00"), stock=10)
    band = ProductModel(name="Smart Band", price=Decimal("50.00"), stock=0)
    black = ProductVariantModel(label="Black", price=Decimal("60.00"), stock=3)
    red = ProductVariantModel(label="Red", price=Decimal("65.00"), stock=5)
    band.variants.extend([black, red])
    db.add_all([watch, band])
    db.commit()
    return SimpleNamespace(watch=watch.id, band=band.id, black=black.id, red=red.id)


@pytest.fixture
def stock_of(session_factory):
    """Reads stock in a fresh session so nothing cached can hide a write."""

    def read(product_id, variant_id=None):
        session = session_factory()
        try:
            if variant_id is None:
                return session.get(ProductModel, product_id).stock
            return session.get(ProductVariantModel, variant_id).stock
        finally:
            session.close()

    return read


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def cart_service(db):
    return CartService(db=db, catalog=CatalogProvider(db))


@pytest.fixture
def order_service(db, notifier):
    return OrderService(db=db, catalog=CatalogProvider(db), notifier=notifier)


@pytest.fixture
def payment_service(db, gateway, notifier):
    return PaymentService(db=db, gateway=gateway, key_secret=SECRET, notifier=notifier)


@pytest.fixture
def shipping():
    return ShippingInfo(
        shipping_address="12 MG Road, Bengaluru 560001",
        customer_phone="+91 98765 43210",
        customer_email="asha@example.com",
    )


@pytest.fixture
def place_order(cart_service, order_service, shipping):
    """Fills the user's cart and places the order; returns the OrderModel."""

    def place(user_id, *lines):
        for product_id, variant_id, quantity in lines:
            assert cart_service.add_line(user_id, product_id, variant_id, quantity).ok
        result = order_service.create_order(user_id, shipping)
        assert result.ok, result.error
        return result.value

    return place


@pytest.fixture
def force_status(db):
    def force(order_id, status: OrderStatus):
        order = db.get(OrderModel, order_id)
        order.status = status
        db.commit()

    return force


@pytest.fixture
def fetch(session_factory):
    """Runs a query function in a short-lived session and returns its result."""

    def run(query):
        session = session_factory()
        try:
            return query(session)
        finally:
            session.close()

    return run
