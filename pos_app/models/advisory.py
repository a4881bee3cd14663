"""Typed outcomes for cart edits.

Business-rule violations on the cart are expected, recoverable outcomes: the
edit is clamped or skipped and an Advisory explains why. Nothing here is
raised.
"""
from dataclasses import dataclass
from typing import Any, Optional
import enum


class AdvisoryReason(str, enum.Enum):
    """Reason attached to a clamped or rejected cart edit."""
    DISCOUNT_EXCEEDS_PRICE = 'discount_exceeds_price'
    GUEST_PRICE_FLOOR = 'guest_price_floor_violation'
    GUEST_MANUAL_OVERRIDE = 'guest_manual_override_not_allowed'
    GUEST_DELIVERY = 'guest_delivery_not_allowed'
    GUEST_ADVANCE = 'guest_advance_not_allowed'
    GUEST_SPLIT_PAYMENT = 'guest_split_payment_not_allowed'
    SPLIT_REQUIRES_WALK_IN = 'split_payment_requires_walk_in'
    QUANTITY_EXCEEDS_STOCK = 'quantity_exceeds_stock'
    OUT_OF_STOCK = 'out_of_stock'
    LINE_NOT_FOUND = 'line_not_found'
    VEHICLE_REQUIRES_DELIVERY = 'vehicle_requires_delivery'
    INVALID_SPLIT_AMOUNT = 'invalid_split_amount'
    INVALID_PAYMENT_METHOD = 'invalid_payment_method'
    SPLIT_ENTRY_NOT_FOUND = 'split_entry_not_found'
    BELOW_COST_PRICE = 'below_cost_price'


@dataclass(frozen=True)
class Advisory:
    """Human readable explanation of why an edit was clamped or refused."""

    reason: AdvisoryReason
    message: str

    def to_dict(self) -> dict:
        return {'reason': self.reason.value, 'message': self.message}


@dataclass(frozen=True)
class EditResult:
    """
    Result of a line or cart edit.

    `value` is the new snapshot (a CartLine or a Cart). When `applied` is
    False the requested edit was refused and `value` is the input, or the
    nearest legal state when a rule forces one (guest discount reset to 0).
    """

    value: Any
    advisory: Optional[Advisory] = None
    applied: bool = True

    @property
    def rejected(self) -> bool:
        return not self.applied


def accepted(value, advisory: Optional[Advisory] = None) -> EditResult:
    return EditResult(value=value, advisory=advisory, applied=True)


def rejected(value, reason: AdvisoryReason, message: str) -> EditResult:
    return EditResult(value=value, advisory=Advisory(reason, message), applied=False)
