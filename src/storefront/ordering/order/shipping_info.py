"""Shipping info carried in payment metadata, resolved into ShippingDetails.

Checkout can send shipping in three shapes:

- ``shipping_data``: a carrier quote with origin/destination
  (``{"shipment": {"carrier", "service", "price", ...}, "destination": {...}}``)
  or a bare ``shipping_option`` (``{"carrier", "service", "price"}``) with a
  separate ``shipping_address`` / ``shipping_contact``;
- ``simple_shipping``: an address and contact, no carrier chosen yet;
- nothing at all (pickup / digital).

``parse_shipping_info`` picks exactly one variant, in that priority order,
and ``to_details`` turns it into the canonical value object stored on the
Order. Nothing downstream looks at the raw metadata again.
"""

from dataclasses import dataclass

from storefront.ordering.order.order import ShippingDetails


@dataclass(frozen=True)
class Address:
    recipient_name: str | None = None
    email: str | None = None
    phone: str | None = None
    street: str | None = None
    number: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None

    @classmethod
    def from_dict(cls, data: dict | None, contact: dict | None = None) -> "Address | None":
        if not data and not contact:
            return None
        data = data or {}
        contact = contact or {}

        name = data.get("name") or " ".join(
            part for part in (contact.get("first_name"), contact.get("last_name")) if part
        )
        email_or_phone = contact.get("email_or_phone") or ""
        return cls(
            recipient_name=name or None,
            email=data.get("email") or contact.get("email") or (email_or_phone if "@" in email_or_phone else None),
            phone=data.get("phone") or contact.get("phone") or (email_or_phone if email_or_phone and "@" not in email_or_phone else None),
            street=data.get("street"),
            number=data.get("number"),
            city=data.get("city"),
            state=data.get("state"),
            postal_code=data.get("postal_code"),
            country=data.get("country"),
        )


@dataclass(frozen=True)
class CarrierShipping:
    carrier: str
    service: str
    cost: float
    address: Address | None = None
    quote_id: str | None = None
    estimated_days: int | None = None


@dataclass(frozen=True)
class AddressOnlyShipping:
    address: Address
    cost: float = 0.0


@dataclass(frozen=True)
class NoShipping:
    pass


ShippingInfo = CarrierShipping | AddressOnlyShipping | NoShipping


def parse_shipping_info(metadata: dict | None) -> ShippingInfo:
    """Resolve raw payment metadata into one shipping variant."""
    metadata = metadata or {}
    explicit_cost = metadata.get("shipping_cost")

    shipping_data = metadata.get("shipping_data")
    if shipping_data and shipping_data.get("shipment"):
        shipment = shipping_data["shipment"]
        return CarrierShipping(
            carrier=shipment.get("carrier") or "unknown",
            service=shipment.get("service") or "standard",
            cost=float(explicit_cost if explicit_cost is not None else shipment.get("price") or 0.0),
            address=Address.from_dict(shipping_data.get("destination"), metadata.get("shipping_contact")),
            quote_id=shipment.get("quote_id"),
            estimated_days=shipment.get("estimated_days"),
        )

    option = metadata.get("shipping_option")
    if option:
        return CarrierShipping(
            carrier=option.get("carrier") or "unknown",
            service=option.get("service") or "standard",
            cost=float(explicit_cost if explicit_cost is not None else option.get("price") or 0.0),
            address=Address.from_dict(metadata.get("shipping_address"), metadata.get("shipping_contact")),
            quote_id=option.get("quote_id"),
            estimated_days=option.get("estimated_days"),
        )

    simple = metadata.get("simple_shipping")
    if simple and simple.get("address"):
        return AddressOnlyShipping(
            address=Address.from_dict(simple["address"], simple.get("contact")),
            cost=float(explicit_cost or 0.0),
        )

    return NoShipping()


def to_details(info: ShippingInfo) -> ShippingDetails:
    """Canonical value object for the Order."""
    if isinstance(info, CarrierShipping):
        address = info.address or Address()
        return ShippingDetails(
            method="carrier",
            carrier=info.carrier,
            service=info.service,
            cost=info.cost,
            quote_id=info.quote_id,
            estimated_days=info.estimated_days,
            **_address_fields(address),
        )
    if isinstance(info, AddressOnlyShipping):
        return ShippingDetails(method="address_only", cost=info.cost, **_address_fields(info.address))
    return ShippingDetails(method="none", cost=0.0)


def _address_fields(address: Address) -> dict:
    return {
        "recipient_name": address.recipient_name,
        "email": address.email,
        "phone": address.phone,
        "street": address.street,
        "number": address.number,
        "city": address.city,
        "state": address.state,
        "postal_code": address.postal_code,
        "country": address.country,
    }
