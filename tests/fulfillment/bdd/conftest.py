"""Shared BDD fixtures and step definitions for shipments."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then

from storefront.fulfillment.shipment.orchestrator import shipments_for_order
from storefront.ordering.order.order import Order


@pytest.fixture()
def error():
    """Container for the exception a step raised."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse("a paid order for {quantity:d} units"), target_fixture="order")
def a_paid_order(paid_order, quantity):
    return paid_order(quantity=quantity)


@given(parsers.cfparse("the carrier fails with {outcomes}"))
def carrier_fails(carrier, outcomes):
    carrier.script(*[int(o) for o in outcomes.split(", ")])


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the shipment is "{status}"'))
def shipment_status(order, status):
    (shipment,) = shipments_for_order(order.id)
    assert shipment.status == status


@then(parsers.cfparse('the order is "{status}"'))
def order_status(order, status):
    assert current_domain.repository_for(Order).get(order.id).status == status


@then(parsers.cfparse('the generation fails with "{error_type}"'))
def generation_failed(error, error_type):
    assert error["exc"] is not None
    assert type(error["exc"]).__name__ == error_type
