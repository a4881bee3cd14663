"""
Cart totals service - line subtotals and cart-level aggregates.

Sign convention for the overall adjustment:
    overall_adjustment = computed_subtotal - subtotal_after_item_discounts
    < 0  manual subtotals took money off  -> additional_discount
    > 0  manual subtotals added money     -> advance_amount
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from pos_app.models import CartLine, SaleType
from pos_app.utils.number_format import ZERO, round2


def line_subtotal(line: CartLine, sale_type: SaleType) -> Decimal:
    """Manual subtotal when present, else discounted price x quantity (+ delivery charge)."""
    if line.manual_subtotal is not None:
        return line.manual_subtotal
    return line.discounted_price * line.quantity + _delivery_charge(line, sale_type)


def _delivery_charge(line: CartLine, sale_type: SaleType) -> Decimal:
    return line.delivery_charge if sale_type == SaleType.DELIVERY else ZERO


@dataclass(frozen=True)
class CartTotals:
    """Derived cart figures. `total` is what gets charged."""

    original_subtotal: Decimal
    item_discount_total: Decimal
    delivery_total: Decimal
    subtotal_after_item_discounts: Decimal
    computed_subtotal: Decimal
    overall_adjustment: Decimal
    additional_discount: Decimal
    advance_amount: Decimal
    overall_discount: Decimal
    total: Decimal

    @property
    def sale_total(self) -> Decimal:
        """
        Total billed on the created sale: item prices less the additional discount.

        Adding advance_amount back gives `total`.
        """
        return self.subtotal_after_item_discounts - self.additional_discount

    def to_dict(self) -> dict:
        return {
            'original_subtotal': str(round2(self.original_subtotal)),
            'item_discount_total': str(round2(self.item_discount_total)),
            'delivery_total': str(round2(self.delivery_total)),
            'subtotal_after_item_discounts': str(round2(self.subtotal_after_item_discounts)),
            'computed_subtotal': str(round2(self.computed_subtotal)),
            'overall_adjustment': str(round2(self.overall_adjustment)),
            'additional_discount': str(round2(self.additional_discount)),
            'advance_amount': str(round2(self.advance_amount)),
            'overall_discount': str(round2(self.overall_discount)),
            'total': str(round2(self.total)),
            'sale_total': str(round2(self.sale_total)),
        }


def compute_totals(lines: Iterable[CartLine], sale_type: SaleType) -> CartTotals:
    """Recompute every cart figure from scratch."""
    original_subtotal = ZERO
    item_discount_total = ZERO
    delivery_total = ZERO
    discounted_total = ZERO
    computed_subtotal = ZERO

    for line in lines:
        charge = _delivery_charge(line, sale_type)
        original_subtotal += line.original_price * line.quantity + charge
        item_discount_total += (line.original_price - line.discounted_price) * line.quantity
        delivery_total += charge
        discounted_total += line.discounted_price * line.quantity
        computed_subtotal += line_subtotal(line, sale_type)

    subtotal_after_item_discounts = discounted_total + delivery_total
    overall_adjustment = computed_subtotal - subtotal_after_item_discounts
    additional_discount = max(ZERO, -overall_adjustment)
    advance_amount = max(ZERO, overall_adjustment)

    return CartTotals(
        original_subtotal=original_subtotal,
        item_discount_total=item_discount_total,
        delivery_total=delivery_total,
        subtotal_after_item_discounts=subtotal_after_item_discounts,
        computed_subtotal=computed_subtotal,
        overall_adjustment=overall_adjustment,
        additional_discount=additional_discount,
        advance_amount=advance_amount,
        overall_discount=item_discount_total + additional_discount,
        total=computed_subtotal,
    )


def cart_totals(cart) -> CartTotals:
    """Totals for a Cart snapshot."""
    return compute_totals(cart.lines, cart.sale_type)
