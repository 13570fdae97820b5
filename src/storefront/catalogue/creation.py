"""CreateProduct command + handler — add a product to the catalogue."""

import json

from protean.fields import Boolean, Float, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from storefront.catalogue.product import Product
from storefront.domain import storefront


@storefront.command(part_of="Product")
class CreateProduct:
    name: String(required=True, max_length=200)
    price: Float(required=True, min_value=0.0)
    description: Text()
    images: Text()  # JSON list of image URLs
    category: String(max_length=100)
    is_preorder: Boolean(default=False)


@storefront.command_handler(part_of=Product)
class CreateProductHandler:
    @handle(CreateProduct)
    def create_product(self, command: CreateProduct):
        product = Product.create(
            name=command.name,
            price=command.price,
            description=command.description,
            images=json.loads(command.images) if command.images else None,
            category=command.category,
            is_preorder=command.is_preorder,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)
