"""Payment plan models for POS checkout."""
from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Optional, Tuple
import enum

from pos_app.utils.number_format import parse_amount, parse_optional_amount


class PaymentMethod(str, enum.Enum):
    """Payment method accepted by the Sales API."""
    CASH = 'cash'
    BANK_TRANSFER = 'bank_transfer'
    CHEQUE = 'cheque'
    CARD = 'card'
    OTHER = 'other'


def normalize_payment_method(value) -> PaymentMethod:
    """
    Normalize a payment method value.

    Args:
        value: None, PaymentMethod enum, or string ('cash', 'BANK_TRANSFER', 'bank')

    Returns:
        PaymentMethod (CASH when value is None)

    Raises:
        ValueError: If value is not a known method
    """
    if value is None:
        return PaymentMethod.CASH

    if isinstance(value, PaymentMethod):
        return value

    normalized = str(value).strip().lower()
    if normalized == 'bank':
        return PaymentMethod.BANK_TRANSFER
    try:
        return PaymentMethod(normalized)
    except ValueError:
        valid = ', '.join(m.value for m in PaymentMethod)
        raise ValueError(f"Invalid payment method: {value}. Must be one of: {valid}.")


class PaymentMode(str, enum.Enum):
    SINGLE = 'single'
    SPLIT = 'split'


@dataclass(frozen=True)
class SplitPaymentEntry:
    """One tender of a split payment. Amount is always > 0."""

    method: PaymentMethod
    account_id: int
    amount: Decimal

    def to_dict(self) -> dict:
        return {'method': self.method.value, 'account_id': self.account_id, 'amount': str(self.amount)}

    @classmethod
    def from_dict(cls, data: dict) -> 'SplitPaymentEntry':
        return cls(
            method=normalize_payment_method(data.get('method')),
            account_id=int(data['account_id']),
            amount=parse_amount(data['amount']),
        )


@dataclass(frozen=True)
class PaymentPlan:
    """
    Payment Plan - how the sale will be paid.

    Single mode uses account_id/method and an optional tendered amount.
    Split mode uses the ordered splits; account_id/method are ignored.
    """

    mode: PaymentMode = PaymentMode.SINGLE
    account_id: Optional[int] = None
    method: PaymentMethod = PaymentMethod.CASH
    amount: Optional[Decimal] = None
    splits: Tuple[SplitPaymentEntry, ...] = field(default_factory=tuple)

    @property
    def is_split(self) -> bool:
        return self.mode == PaymentMode.SPLIT

    @property
    def total_split(self) -> Decimal:
        return sum((entry.amount for entry in self.splits), Decimal('0'))

    def evolve(self, **changes) -> 'PaymentPlan':
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            'mode': self.mode.value,
            'account_id': self.account_id,
            'method': self.method.value,
            'amount': None if self.amount is None else str(self.amount),
            'splits': [entry.to_dict() for entry in self.splits],
            'total_split': str(self.total_split),
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'PaymentPlan':
        if not data:
            return cls()
        account_id = data.get('account_id')
        return cls(
            mode=PaymentMode(data.get('mode') or PaymentMode.SINGLE.value),
            account_id=int(account_id) if account_id is not None else None,
            method=normalize_payment_method(data.get('method')),
            amount=parse_optional_amount(data.get('amount')),
            splits=tuple(SplitPaymentEntry.from_dict(s) for s in data.get('splits') or ()),
        )
