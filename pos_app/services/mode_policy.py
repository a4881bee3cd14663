"""
Mode policy - which POS operations are legal for a (guest, sale type) pair.

Guest sales are walk-in sales without a registered customer: they can never
be sold under the catalog price, never carry manual subtotals or advances,
and must be paid exactly.
"""
from dataclasses import dataclass

from pos_app.models import SaleType


@dataclass(frozen=True)
class ModePolicy:
    """Predicate table for one cart mode."""

    is_guest: bool
    sale_type: SaleType
    allow_price_below_original: bool
    allow_discount_below_original: bool
    allow_manual_subtotal: bool
    allow_delivery: bool
    allow_use_advance: bool
    requires_exact_payment: bool
    allow_split_payment: bool

    @classmethod
    def for_cart(cls, is_guest: bool, sale_type: SaleType = SaleType.WALK_IN) -> 'ModePolicy':
        if is_guest:
            return cls(
                is_guest=True,
                # Guest carts are always walk-in
                sale_type=SaleType.WALK_IN,
                allow_price_below_original=False,
                allow_discount_below_original=False,
                allow_manual_subtotal=False,
                allow_delivery=False,
                allow_use_advance=False,
                requires_exact_payment=True,
                allow_split_payment=False,
            )
        return cls(
            is_guest=False,
            sale_type=sale_type,
            allow_price_below_original=True,
            allow_discount_below_original=True,
            allow_manual_subtotal=True,
            allow_delivery=True,
            allow_use_advance=True,
            requires_exact_payment=False,
            allow_split_payment=sale_type == SaleType.WALK_IN,
        )

    def to_dict(self) -> dict:
        return {
            'is_guest': self.is_guest,
            'sale_type': self.sale_type.value,
            'allow_price_below_original': self.allow_price_below_original,
            'allow_discount_below_original': self.allow_discount_below_original,
            'allow_manual_subtotal': self.allow_manual_subtotal,
            'allow_delivery': self.allow_delivery,
            'allow_use_advance': self.allow_use_advance,
            'requires_exact_payment': self.requires_exact_payment,
            'allow_split_payment': self.allow_split_payment,
        }


def policy_for(cart) -> ModePolicy:
    """Policy for a Cart snapshot."""
    return ModePolicy.for_cart(cart.is_guest, cart.sale_type)
