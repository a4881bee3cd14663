"""Stock snapshot model (point-in-time copy of a remote stock record)."""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
import enum

from pos_app.utils.number_format import parse_amount, parse_optional_amount


class StockStatus(str, enum.Enum):
    """Availability of a stock record for the POS grid."""
    IN_STOCK = 'in_stock'
    LOW_STOCK = 'low_stock'
    OUT_OF_STOCK = 'out_of_stock'


@dataclass(frozen=True)
class StockSnapshot:
    """
    Stock record as returned by the stock listing.

    quantity_on_hand is a snapshot taken when the listing was fetched; it is
    never re-validated against the server before checkout.
    """

    stock_id: int
    item_id: int
    name: str
    quantity_on_hand: int
    selling_price: Decimal
    reorder_level: int = 0
    last_purchase_price: Optional[Decimal] = None
    unit: str = 'units'
    serial_number: Optional[str] = None
    brand: Optional[str] = None
    category: Optional[str] = None

    @property
    def stock_status(self) -> StockStatus:
        if self.quantity_on_hand <= 0:
            return StockStatus.OUT_OF_STOCK
        if self.quantity_on_hand <= self.reorder_level:
            return StockStatus.LOW_STOCK
        return StockStatus.IN_STOCK

    @classmethod
    def from_api(cls, data: dict) -> 'StockSnapshot':
        """Build a snapshot from a stock listing entry (with nested `item`)."""
        item = data.get('item') or {}
        category = item.get('category')
        if isinstance(category, dict):
            category = category.get('name')
        return cls(
            stock_id=int(data['id']),
            item_id=int(data.get('item_id') or item.get('id')),
            name=item.get('name') or f"Item #{data.get('item_id')}",
            # Fractional quantities are shown floored in the POS grid
            quantity_on_hand=int(Decimal(str(data.get('quantity_on_hand') or 0))),
            selling_price=parse_amount(item.get('selling_price') or 0),
            reorder_level=int(Decimal(str(data.get('reorder_level') or 0))),
            last_purchase_price=parse_optional_amount(item.get('last_purchase_price')),
            unit=item.get('primary_unit') or 'units',
            serial_number=item.get('serial_number'),
            brand=item.get('brand'),
            category=category,
        )

    def to_dict(self) -> dict:
        return {
            'stock_id': self.stock_id,
            'item_id': self.item_id,
            'name': self.name,
            'quantity_on_hand': self.quantity_on_hand,
            'selling_price': str(self.selling_price),
            'reorder_level': self.reorder_level,
            'last_purchase_price': None if self.last_purchase_price is None else str(self.last_purchase_price),
            'unit': self.unit,
            'serial_number': self.serial_number,
            'brand': self.brand,
            'category': self.category,
            'stock_status': self.stock_status.value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'StockSnapshot':
        """Inverse of to_dict (used when restoring a cart from the session)."""
        return cls(
            stock_id=int(data['stock_id']),
            item_id=int(data['item_id']),
            name=data['name'],
            quantity_on_hand=int(data['quantity_on_hand']),
            selling_price=parse_amount(data['selling_price']),
            reorder_level=int(data.get('reorder_level') or 0),
            last_purchase_price=parse_optional_amount(data.get('last_purchase_price')),
            unit=data.get('unit') or 'units',
            serial_number=data.get('serial_number'),
            brand=data.get('brand'),
            category=data.get('category'),
        )
