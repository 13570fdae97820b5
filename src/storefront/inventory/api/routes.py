"""FastAPI routes for products and per-size stock levels."""

import json

from fastapi import APIRouter
from protean.utils.globals import current_domain

from storefront.catalogue.creation import CreateProduct
from storefront.catalogue.product import Product
from storefront.inventory.api.schemas import (
    CreateProductRequest,
    ProductIdResponse,
    ProductResponse,
    SetStockRequest,
    StatusResponse,
    StockResponse,
)
from storefront.inventory.ledger import StockLedger
from storefront.inventory.management import SetStock

product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.post("", status_code=201, response_model=ProductIdResponse)
async def create_product(body: CreateProductRequest) -> ProductIdResponse:
    command = CreateProduct(
        name=body.name,
        price=body.price,
        description=body.description,
        images=json.dumps(body.images),
        category=body.category,
        is_preorder=body.is_preorder,
    )
    product_id = current_domain.process(command, asynchronous=False)
    return ProductIdResponse(product_id=product_id)


@product_router.get("/{product_id}/stock", response_model=StockResponse)
async def get_stock(product_id: str) -> StockResponse:
    product = current_domain.repository_for(Product).get(product_id)
    return StockResponse(product_id=str(product.id), sizes=StockLedger().stock_for(product.id))


@product_router.put("/{product_id}/stock", response_model=StatusResponse)
async def set_stock(product_id: str, body: SetStockRequest) -> StatusResponse:
    """Seed or restock one size."""
    command = SetStock(product_id=product_id, size=body.size, quantity=body.quantity)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@product_router.get("/{product_id}", response_model=ProductResponse)
async def get_product(product_id: str) -> ProductResponse:
    product = current_domain.repository_for(Product).get(product_id)
    return ProductResponse(
        product_id=str(product.id),
        name=product.name,
        description=product.description,
        price=product.price,
        images=product.image_list,
        category=product.category,
        is_preorder=product.is_preorder,
    )

