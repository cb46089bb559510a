import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from orderflow.core.catalog import CatalogClient, ProductSnapshot
from orderflow.core.config import DEFAULT_CURRENCY
from orderflow.core.coupon_validator import CouponValidator, DiscountResult
from orderflow.core.tax_shipping_calculator import TaxAndShippingCalculator

logger = logging.getLogger(__name__)


@dataclass
class PricedLine:
    product_id: int
    name: str
    quantity: int
    unit_price: int
    subtotal: int


@dataclass
class Quote:
    """All amounts in minor units."""
    subtotal: int
    discount: int
    tax: int
    shipping: int
    total: int
    currency: str = DEFAULT_CURRENCY
    free_shipping: bool = False
    unavailable_products: List[int] = field(default_factory=list)
    missing_products: List[int] = field(default_factory=list)
    lines: List[PricedLine] = field(default_factory=list)
    coupon: Optional[DiscountResult] = None

    def totals(self) -> Dict[str, int]:
        """The monetary fields an order must echo, keyed by their order column names."""
        return {
            "amount": self.subtotal,
            "sales_tax": self.tax,
            "delivery_fee": self.shipping,
            "discount": self.discount,
            "total": self.total,
        }


def destination_from(billing_address: Optional[Mapping], shipping_address: Optional[Mapping]) -> Optional[Mapping]:
    # Goods are taxed where they are delivered; billing only stands in when nothing ships
    return shipping_address or billing_address


def merge_quantities(items: Sequence) -> Dict[int, int]:
    """Total quantity per product, in first-seen order."""
    merged: Dict[int, int] = {}
    for item in items:
        merged[item.product_id] = merged.get(item.product_id, 0) + item.quantity
    return merged


class CheckoutVerifier:
    """
    Pre-flight quote. Never writes; ``create_order`` prices through the same path
    so a quote and the order built from it agree to the cent.
    """

    def __init__(
        self,
        catalog: CatalogClient,
        coupon_validator: Optional[CouponValidator] = None,
        calculator: Optional[TaxAndShippingCalculator] = None,
    ):
        self.catalog = catalog
        self.coupon_validator = coupon_validator or CouponValidator()
        self.calculator = calculator or TaxAndShippingCalculator()

    def verify(
        self,
        db: Session,
        items: Sequence,
        *,
        billing_address: Optional[Mapping] = None,
        shipping_address: Optional[Mapping] = None,
        coupon_id: Optional[int] = None,
    ) -> Quote:
        quote = self.price_cart(
            db, items, billing_address=billing_address, shipping_address=shipping_address, coupon_id=coupon_id
        )
        if quote.unavailable_products:
            logger.info(f"Checkout quote flagged unavailable products {quote.unavailable_products}")
        return quote

    def price_cart(
        self,
        db: Session,
        items: Sequence,
        *,
        billing_address: Optional[Mapping] = None,
        shipping_address: Optional[Mapping] = None,
        coupon_id: Optional[int] = None,
    ) -> Quote:
        """
        Price ``items`` (objects with product_id and quantity). Lines for the same
        product are merged first so stock is checked against the combined quantity.
        Unavailable or unknown products are flagged and left out of the subtotal.
        Coupon errors propagate.
        """
        lines: List[PricedLine] = []
        unavailable: List[int] = []
        missing: List[int] = []
        for product_id, quantity in merge_quantities(items).items():
            product: Optional[ProductSnapshot] = self.catalog.get_product(product_id)
            if product is None:
                missing.append(product_id)
                unavailable.append(product_id)
                continue
            if not product.is_available(quantity):
                unavailable.append(product_id)
                continue
            lines.append(
                PricedLine(
                    product_id=product.id,
                    name=product.name,
                    quantity=quantity,
                    unit_price=product.price,
                    subtotal=product.price * quantity,
                )
            )

        subtotal = sum(line.subtotal for line in lines)
        discount_result = None
        if coupon_id is not None:
            discount_result = self.coupon_validator.validate_by_id(db, coupon_id, subtotal)
        free_shipping = bool(discount_result and discount_result.free_shipping)
        discount = discount_result.discount if discount_result else 0

        destination = destination_from(billing_address, shipping_address)
        charges = self.calculator.compute(db, subtotal, destination, free_shipping=free_shipping)

        return Quote(
            subtotal=subtotal,
            discount=discount,
            tax=charges.tax_amount,
            shipping=charges.shipping_amount,
            total=subtotal + charges.tax_amount + charges.shipping_amount - discount,
            free_shipping=free_shipping,
            unavailable_products=unavailable,
            missing_products=missing,
            lines=lines,
            coupon=discount_result,
        )
