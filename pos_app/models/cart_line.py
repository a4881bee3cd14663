"""Cart line model - one stock item in the in-progress sale."""
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Optional

from pos_app.models.stock import StockSnapshot
from pos_app.utils.number_format import ZERO, HUNDRED, round2, parse_amount, parse_optional_amount


@dataclass(frozen=True)
class CartLine:
    """
    Cart Line - immutable pricing state of one stock record in the cart.

    Only unit_price and discount_amount are stored. discount_percentage and
    discounted_price are derived from them, so the three can never disagree.
    discount_amount may carry sub-cent precision after a percentage edit.
    Use the pricing service to produce updated lines.
    """

    stock: StockSnapshot
    quantity: int
    original_price: Decimal
    unit_price: Decimal
    discount_amount: Decimal = ZERO
    delivery_charge: Decimal = ZERO
    manual_subtotal: Optional[Decimal] = None

    @classmethod
    def for_stock(cls, stock: StockSnapshot) -> 'CartLine':
        """New line: quantity 1 at catalog price, no discount."""
        return cls(
            stock=stock,
            quantity=1,
            original_price=stock.selling_price,
            unit_price=stock.selling_price,
        )

    @property
    def stock_id(self) -> int:
        return self.stock.stock_id

    @property
    def discount_percentage(self) -> Decimal:
        if self.unit_price <= ZERO:
            return round2(ZERO)
        return round2(self.discount_amount / self.unit_price * HUNDRED)

    @property
    def discounted_price(self) -> Decimal:
        # 0 only for a zero-priced line; any discount leaves at least a cent
        return max(ZERO, self.unit_price - self.discount_amount)

    @property
    def is_below_cost(self) -> bool:
        cost = self.stock.last_purchase_price
        return cost is not None and self.discounted_price < cost

    def has_valid_discount(self) -> bool:
        """0 <= discount < unit price (a zero discount is always valid)."""
        if self.discount_amount < ZERO:
            return False
        if self.discount_amount == ZERO:
            return True
        return self.discount_amount < self.unit_price

    def evolve(self, **changes) -> 'CartLine':
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            'stock': self.stock.to_dict(),
            'quantity': self.quantity,
            'original_price': str(self.original_price),
            'unit_price': str(self.unit_price),
            'discount_amount': str(self.discount_amount),
            'discount_percentage': str(self.discount_percentage),
            'discounted_price': str(self.discounted_price),
            'delivery_charge': str(self.delivery_charge),
            'manual_subtotal': None if self.manual_subtotal is None else str(self.manual_subtotal),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'CartLine':
        # Derived fields in the payload are ignored; they are recomputed
        return cls(
            stock=StockSnapshot.from_dict(data['stock']),
            quantity=int(data['quantity']),
            original_price=parse_amount(data['original_price']),
            unit_price=parse_amount(data['unit_price']),
            discount_amount=parse_amount(data.get('discount_amount') or 0),
            delivery_charge=parse_amount(data.get('delivery_charge') or 0),
            manual_subtotal=parse_optional_amount(data.get('manual_subtotal')),
        )

    def __repr__(self):
        return (f"<CartLine(stock_id={self.stock_id}, qty={self.quantity}, "
                f"unit_price={self.unit_price}, discount={self.discount_amount})>")
