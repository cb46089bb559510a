"""
Read-only access to the external product catalog.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import httpx

from orderflow.core.config import CATALOG_BASE_URL, CATALOG_TIMEOUT
from orderflow.core.exceptions import CatalogUnavailableError
from orderflow.core.money import to_minor

logger = logging.getLogger(__name__)

PURCHASABLE_STATUSES = {"publish", "published", "active"}


@dataclass(frozen=True)
class ProductSnapshot:
    id: int
    name: str
    price: int  # minor units, sale price when the catalog has one
    stock: int
    is_purchasable: bool = True

    def is_available(self, quantity: int) -> bool:
        return self.is_purchasable and self.stock >= quantity


class CatalogClient(Protocol):
    def get_product(self, product_id: int) -> Optional[ProductSnapshot]:
        ...


class HttpCatalogClient:
    """Catalog service over HTTP; prices arrive as major-unit decimals."""

    def __init__(self, base_url: str = CATALOG_BASE_URL, timeout: float = CATALOG_TIMEOUT, transport=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def get_product(self, product_id: int) -> Optional[ProductSnapshot]:
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                resp = client.get(f"{self.base_url}/products/{product_id}")
        except httpx.RequestError as e:
            logger.error(f"Catalog request for product {product_id} failed: {e}")
            raise CatalogUnavailableError("Catalog unavailable")

        if resp.status_code == 404:
            return None
        if resp.status_code != 200:
            logger.error(f"Catalog returned {resp.status_code} for product {product_id}")
            raise CatalogUnavailableError(f"Catalog returned {resp.status_code}")
        return self._to_snapshot(resp.json())

    @staticmethod
    def _to_snapshot(data: dict) -> ProductSnapshot:
        price = data.get("sale_price") or data.get("price") or 0
        status = str(data.get("status", "publish")).lower()
        return ProductSnapshot(
            id=int(data["id"]),
            name=data.get("name") or "",
            price=to_minor(price),
            stock=int(data.get("quantity") or 0),
            is_purchasable=bool(data.get("in_stock", True)) and status in PURCHASABLE_STATUSES,
        )
