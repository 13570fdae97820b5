"""Products and stock API package."""

from storefront.inventory.api.routes import product_router

__all__ = ["product_router"]
