"""Pydantic API schemas for products and their stock."""

from pydantic import BaseModel, Field


class CreateProductRequest(BaseModel):
    name: str = Field(max_length=200)
    price: float = Field(ge=0)
    description: str | None = None
    images: list[str] = Field(default_factory=list)
    category: str | None = None
    is_preorder: bool = False


class SetStockRequest(BaseModel):
    size: str = "unique"
    quantity: int = Field(ge=0)


class ProductIdResponse(BaseModel):
    product_id: str


class ProductResponse(BaseModel):
    product_id: str
    name: str
    description: str | None = None
    price: float
    images: list[str] = []
    category: str | None = None
    is_preorder: bool = False


class StockResponse(BaseModel):
    product_id: str
    sizes: dict[str, int]


class StatusResponse(BaseModel):
    status: str = "ok"
