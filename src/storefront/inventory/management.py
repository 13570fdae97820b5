"""SetStock command + handler — seed or restock a product size."""

from protean.fields import Identifier, Integer, String
from protean.utils.mixins import handle

from storefront.catalogue.product import Product
from storefront.domain import storefront
from storefront.inventory.ledger import DEFAULT_SIZE, StockLedger


@storefront.command(part_of="Product")
class SetStock:
    """Overwrite the available quantity for one product size."""

    product_id: Identifier(required=True)
    size: String(max_length=32, default=DEFAULT_SIZE)
    quantity: Integer(required=True, min_value=0)


@storefront.command_handler(part_of=Product)
class StockManagementHandler:
    @handle(SetStock)
    def set_stock(self, command: SetStock):
        StockLedger().set_stock(command.product_id, command.size, command.quantity)
