import pytest

from storefront.fulfillment.carrier import get_carrier
from storefront.fulfillment.shipment.orchestrator import ShipmentOrchestrator
from storefront.ordering.order.materializer import OrderMaterializer


@pytest.fixture()
def carrier():
    return get_carrier()


@pytest.fixture()
def sleeps():
    return []


@pytest.fixture()
def orchestrator(carrier, sleeps):
    return ShipmentOrchestrator(carrier=carrier, sleep=sleeps.append)


@pytest.fixture()
def paid_order(make_product, completed_payment):
    """A PAID order with an address, created the way a payment callback creates it."""

    def _make(user_id="user-001", quantity=2, metadata=None):
        shirt = make_product(price=150.0, stock={"M": quantity})
        payment = completed_payment([(shirt, quantity, "M")], user_id=user_id, metadata=metadata)
        return OrderMaterializer().materialize(payment)

    return _make
