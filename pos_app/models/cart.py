"""Cart model - the in-progress POS sale (session scoped)."""
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple
import enum

from pos_app.models.cart_line import CartLine
from pos_app.models.payment import PaymentPlan


class SaleType(str, enum.Enum):
    """Sale type sent to the Sales API."""
    WALK_IN = 'walk-in'
    DELIVERY = 'delivery'


def normalize_sale_type(value) -> SaleType:
    """Accept enum values, 'walk-in'/'walk_in', and the legacy 'order' label for delivery."""
    if isinstance(value, SaleType):
        return value
    normalized = str(value or '').strip().lower().replace('_', '-')
    if normalized == 'order':
        return SaleType.DELIVERY
    try:
        return SaleType(normalized)
    except ValueError:
        raise ValueError(f"Invalid sale type: {value}. Must be 'walk-in' or 'delivery'.")


@dataclass(frozen=True)
class Cart:
    """
    Cart - ordered lines plus session-level sale state.

    Invariant: a guest cart is always walk-in and never uses the customer's
    advance balance. The cart service enforces it on every mutation.
    """

    lines: Tuple[CartLine, ...] = field(default_factory=tuple)
    sale_type: SaleType = SaleType.WALK_IN
    is_guest: bool = False
    customer_id: Optional[int] = None
    vehicle_id: Optional[int] = None
    payment: PaymentPlan = field(default_factory=PaymentPlan)
    use_advance: bool = False

    @property
    def is_delivery(self) -> bool:
        return self.sale_type == SaleType.DELIVERY

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def find_line(self, stock_id: int) -> Optional[CartLine]:
        for line in self.lines:
            if line.stock_id == stock_id:
                return line
        return None

    def reserved_quantity(self, stock_id: int) -> int:
        """Quantity of this stock record already held by the cart."""
        return sum(line.quantity for line in self.lines if line.stock_id == stock_id)

    def replace_line(self, updated: CartLine) -> 'Cart':
        lines = tuple(updated if line.stock_id == updated.stock_id else line for line in self.lines)
        return replace(self, lines=lines)

    def evolve(self, **changes) -> 'Cart':
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            'lines': [line.to_dict() for line in self.lines],
            'sale_type': self.sale_type.value,
            'is_guest': self.is_guest,
            'customer_id': self.customer_id,
            'vehicle_id': self.vehicle_id,
            'payment': self.payment.to_dict(),
            'use_advance': self.use_advance,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'Cart':
        if not data:
            return cls()
        customer_id = data.get('customer_id')
        vehicle_id = data.get('vehicle_id')
        return cls(
            lines=tuple(CartLine.from_dict(line) for line in data.get('lines') or ()),
            sale_type=normalize_sale_type(data.get('sale_type') or SaleType.WALK_IN),
            is_guest=bool(data.get('is_guest')),
            customer_id=int(customer_id) if customer_id is not None else None,
            vehicle_id=int(vehicle_id) if vehicle_id is not None else None,
            payment=PaymentPlan.from_dict(data.get('payment')),
            use_advance=bool(data.get('use_advance')),
        )
