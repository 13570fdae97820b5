"""Product aggregate — the catalogue data orders snapshot at purchase time.

Product CRUD belongs to the admin surface; the saga only reads products
(to build order snapshots) and never touches their stock, which lives in
the StockLedger.
"""

import json
from datetime import UTC, datetime

from protean.fields import Boolean, DateTime, Float, String, Text

from storefront.domain import storefront


@storefront.aggregate
class Product:
    name: String(required=True, max_length=200)
    description: Text()
    price: Float(required=True, min_value=0.0)
    images: Text()  # JSON list of image URLs
    category: String(max_length=100)
    is_preorder: Boolean(default=False)

    created_at: DateTime()
    updated_at: DateTime()

    @classmethod
    def create(cls, name, price, description=None, images=None, category=None, is_preorder=False, **kwargs):
        now = datetime.now(UTC)
        return cls(
            name=name,
            price=price,
            description=description,
            images=json.dumps(images or []),
            category=category,
            is_preorder=is_preorder,
            created_at=now,
            updated_at=now,
            **kwargs,
        )

    @property
    def image_list(self) -> list[str]:
        return json.loads(self.images) if self.images else []
