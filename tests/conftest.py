import os
from pathlib import Path

import pytest
from protean.integrations.pytest import DomainFixture


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Select the config overlay before the domain is imported."""
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = Path(item.fspath)

        if "/domain/" in str(test_path):
            item.add_marker(pytest.mark.domain)
        elif "/application/" in str(test_path) or "/bdd/" in str(test_path):
            item.add_marker(pytest.mark.application)
        elif "/integration/" in str(test_path):
            item.add_marker(pytest.mark.integration)
            # Integration tests are often slower
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield

        from protean import current_domain

        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture(autouse=True)
def _reset_adapters():
    """Every test starts with fresh in-memory stores and fake providers."""
    from storefront.fulfillment.carrier import reset_carrier
    from storefront.inventory.store import reset_stock_store
    from storefront.notifications.channel import reset_channels
    from storefront.payments.gateway import reset_gateway
    from storefront.shared.keys import reset_key_store

    reset_stock_store()
    reset_key_store()
    reset_channels()
    reset_carrier()
    reset_gateway()
    yield
    reset_stock_store()
    reset_key_store()
    reset_channels()
    reset_carrier()
    reset_gateway()


# ---------------------------------------------------------------------------
# Saga builders
# ---------------------------------------------------------------------------
SHIPPING_METADATA = {
    "customer_email": "ana@example.com",
    "customer_name": "Ana López",
    "simple_shipping": {
        "address": {
            "street": "Calle 5",
            "number": "12",
            "city": "Monterrey",
            "state": "NL",
            "postal_code": "64000",
            "country": "MX",
        },
        "contact": {"first_name": "Ana", "last_name": "López", "phone": "8112345678"},
    },
}


@pytest.fixture()
def make_product():
    """Persist a product and seed its stock: ``make_product(stock={"M": 3})``."""
    from protean import current_domain

    from storefront.catalogue.product import Product
    from storefront.inventory.ledger import StockLedger

    def _make(name="Linen Shirt", price=100.0, stock=None, is_preorder=False):
        product = Product.create(name=name, price=price, category="apparel", is_preorder=is_preorder)
        current_domain.repository_for(Product).add(product)
        ledger = StockLedger()
        for size, quantity in (stock or {}).items():
            ledger.set_stock(str(product.id), size, quantity)
        return product

    return _make


@pytest.fixture()
def make_payment():
    """Persist a PENDING payment: ``make_payment([(product, 2, "M")])``."""
    from uuid import uuid4

    from protean import current_domain

    from storefront.payments.payment.payment import Payment

    def _make(lines, user_id="user-001", metadata=None, provider="paypal"):
        items_data = [
            {
                "product_id": str(product.id),
                "name": product.name,
                "size": size,
                "quantity": quantity,
                "unit_price": product.price,
            }
            for product, quantity, size in lines
        ]
        payment = Payment.initiate(
            user_id=user_id,
            provider=provider,
            provider_payment_id=f"PAY-{uuid4().hex[:12].upper()}",
            amount=sum(i["unit_price"] * i["quantity"] for i in items_data),
            items_data=items_data,
            metadata=SHIPPING_METADATA if metadata is None else metadata,
        )
        current_domain.repository_for(Payment).add(payment)
        return payment

    return _make


@pytest.fixture()
def completed_payment(make_payment):
    """A COMPLETED payment, as the reconciler hands it to the materializer."""
    from protean import current_domain

    from storefront.payments.payment.payment import Payment

    def _make(lines, **kwargs):
        payment = make_payment(lines, **kwargs)
        payment.complete()
        current_domain.repository_for(Payment).add(payment)
        return payment

    return _make
