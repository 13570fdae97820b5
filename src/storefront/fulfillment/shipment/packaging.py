"""Package sizing and carrier request building.

Items are stacked in one box: weights add up, length and width take the
largest item, heights add up. Catalogue products carry no physical data, so
every unit counts as 0.5 kg in a 10×10×10 cm box.
"""

import os

from protean.exceptions import ValidationError

from storefront.fulfillment.shipment.shipment import PackageSpec

DEFAULT_ITEM_WEIGHT = 0.5  # kg
DEFAULT_ITEM_SIDE = 10.0  # cm

MIN_WEIGHT = 0.1
MIN_LENGTH = 10.0
MIN_WIDTH = 10.0
MIN_HEIGHT = 5.0

MAX_WEIGHT = 50.0
MAX_DIMENSION = 150.0

INSURANCE_THRESHOLD = 1000.0


def warehouse_origin() -> dict:
    return {
        "name": os.environ.get("WAREHOUSE_NAME", "Storefront Warehouse"),
        "street": os.environ.get("WAREHOUSE_STREET", "Av. Insurgentes Sur"),
        "number": os.environ.get("WAREHOUSE_NUMBER", "1602"),
        "city": os.environ.get("WAREHOUSE_CITY", "Ciudad de México"),
        "state": os.environ.get("WAREHOUSE_STATE", "CDMX"),
        "postal_code": os.environ.get("WAREHOUSE_POSTAL_CODE", "03940"),
        "country": os.environ.get("WAREHOUSE_COUNTRY", "MX"),
        "email": os.environ.get("SENDER_EMAIL", "shipping@storefront.example"),
    }


def size_package(quantities, declared_value: float) -> PackageSpec:
    """Size one package holding ``quantities`` units per line.

    Raises:
        ValidationError: the package exceeds the carrier's limits.
    """
    weight = 0.0
    length = 0.0
    width = 0.0
    height = 0.0
    for quantity in quantities:
        weight += DEFAULT_ITEM_WEIGHT * quantity
        length = max(length, DEFAULT_ITEM_SIDE)
        width = max(width, DEFAULT_ITEM_SIDE)
        height += DEFAULT_ITEM_SIDE * quantity

    package = PackageSpec(
        weight=round(max(weight, MIN_WEIGHT), 2),
        length=max(length, MIN_LENGTH),
        width=max(width, MIN_WIDTH),
        height=max(height, MIN_HEIGHT),
        declared_value=round(declared_value or 0.0, 2),
        insured=(declared_value or 0.0) > INSURANCE_THRESHOLD,
    )

    if package.weight > MAX_WEIGHT:
        raise ValidationError({"package": [f"Package weight exceeds maximum: {MAX_WEIGHT}kg"]})
    if max(package.length, package.width, package.height) > MAX_DIMENSION:
        raise ValidationError({"package": [f"Package dimensions exceed maximum: {MAX_DIMENSION}cm"]})
    return package


def package_payload(package: PackageSpec) -> dict:
    return {
        "weight": package.weight,
        "length": package.length,
        "width": package.width,
        "height": package.height,
        "declared_value": package.declared_value,
        "insurance": package.insured,
    }


def destination_from(shipping) -> dict:
    """Carrier destination from an order's ShippingDetails.

    Raises:
        ValidationError: the order has no deliverable address.
    """
    if shipping is None or shipping.method == "none" or not shipping.street or not shipping.postal_code:
        raise ValidationError({"shipping": ["Order has no shipping address"]})

    return {
        "name": shipping.recipient_name,
        "email": shipping.email,
        "phone": shipping.phone,
        "street": shipping.street,
        "number": shipping.number,
        "city": shipping.city,
        "state": shipping.state,
        "postal_code": shipping.postal_code,
        "country": shipping.country or "MX",
    }


def build_shipment_request(order, package: PackageSpec, origin: dict, destination: dict, service: str) -> dict:
    return {
        "reference": order.order_number,
        "service": service,
        "carrier": order.shipping.carrier if order.shipping else None,
        "quote_id": order.shipping.quote_id if order.shipping else None,
        "origin": origin,
        "destination": destination,
        "packages": [package_payload(package)],
        "items": [
            {
                "name": item.snapshot.name if item.snapshot else str(item.product_id),
                "quantity": item.quantity,
                "unit_price": item.unit_price,
            }
            for item in order.items
        ],
        "declared_value": package.declared_value,
    }
