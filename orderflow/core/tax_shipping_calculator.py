"""
Destination-based tax and shipping resolution.

A rule matches a destination when every geographic field it sets equals the
destination's field (case-insensitive). Among matching rules the most specific
wins (zip > city > state > country > global); ``priority`` breaks ties, then
the lower id.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence, TypeVar

from sqlalchemy.orm import Session

from orderflow.core.enums import ShippingType
from orderflow.core.money import percentage_of
from orderflow.crud import crud_shipping, crud_tax

logger = logging.getLogger(__name__)

# Ordered most specific first
SCOPE_FIELDS = ("zip", "city", "state", "country")
_SPECIFICITY = {"zip": 4, "city": 3, "state": 2, "country": 1}

Rule = TypeVar("Rule")


@dataclass(frozen=True)
class TaxShippingResult:
    tax_amount: int
    shipping_amount: int
    tax_id: Optional[int] = None
    shipping_id: Optional[int] = None


def _norm(value) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip().lower()
    return value or None


def rule_specificity(rule, destination: Optional[Mapping[str, str]]) -> Optional[int]:
    """
    Specificity of the rule for this destination, or None when it does not apply.
    """
    scoped = [f for f in SCOPE_FIELDS if _norm(getattr(rule, f, None)) is not None]
    if not scoped:
        return 0 if rule.is_global else None
    if not destination:
        return None
    for field in scoped:
        if _norm(getattr(rule, field)) != _norm(destination.get(field)):
            return None
    return max(_SPECIFICITY[f] for f in scoped)


def select_rule(rules: Iterable[Rule], destination: Optional[Mapping[str, str]]) -> Optional[Rule]:
    best = None
    best_key = None
    for rule in rules:
        specificity = rule_specificity(rule, destination)
        if specificity is None:
            continue
        key = (specificity, rule.priority or 0, -(rule.id or 0))
        if best_key is None or key > best_key:
            best, best_key = rule, key
    return best


class TaxAndShippingCalculator:
    def compute(
        self,
        db: Session,
        subtotal: int,
        destination: Optional[Mapping[str, str]],
        *,
        free_shipping: bool = False,
    ) -> TaxShippingResult:
        """
        Tax and delivery fee in minor units for a pre-discount subtotal.
        """
        return self.compute_with_rules(
            crud_tax.get_all_taxes(db),
            crud_shipping.get_all_shippings(db),
            subtotal,
            destination,
            free_shipping=free_shipping,
        )

    def compute_with_rules(
        self,
        taxes: Sequence,
        shippings: Sequence,
        subtotal: int,
        destination: Optional[Mapping[str, str]],
        *,
        free_shipping: bool = False,
    ) -> TaxShippingResult:
        shipping = select_rule(shippings, destination)
        shipping_amount = 0
        if shipping is not None and not free_shipping:
            shipping_type = ShippingType(shipping.type)
            if shipping_type == ShippingType.FIXED:
                shipping_amount = shipping.amount or 0
            elif shipping_type == ShippingType.PERCENTAGE:
                shipping_amount = percentage_of(subtotal, shipping.amount)

        tax = select_rule(taxes, destination)
        tax_amount = 0
        if tax is not None:
            taxable = subtotal + (shipping_amount if tax.on_shipping else 0)
            tax_amount = percentage_of(taxable, tax.rate)

        logger.debug(
            "Resolved tax rule %s and shipping rule %s for destination %s",
            getattr(tax, "id", None),
            getattr(shipping, "id", None),
            (destination or {}).get("country"),
        )
        return TaxShippingResult(
            tax_amount=tax_amount,
            shipping_amount=shipping_amount,
            tax_id=getattr(tax, "id", None),
            shipping_id=getattr(shipping, "id", None),
        )
