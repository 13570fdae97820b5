"""Fulfillment API package."""

from storefront.fulfillment.api.routes import shipment_router

__all__ = ["shipment_router"]
