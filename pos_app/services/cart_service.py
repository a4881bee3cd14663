"""
Cart service - cart-level mutations gated by the mode policy.

Every function takes a Cart snapshot and returns an EditResult whose value is
the new Cart. The cart itself never changes in place.
"""
import logging
from typing import Optional

from pos_app.models import (
    Cart, CartLine, StockSnapshot, SaleType, AdvisoryReason,
    PaymentMode, PaymentPlan, SplitPaymentEntry, normalize_payment_method
)
from pos_app.models.advisory import EditResult, accepted, rejected
from pos_app.services import line_pricing_service as pricing
from pos_app.services.mode_policy import ModePolicy, policy_for
from pos_app.utils.formatters import quantity as fmt_quantity
from pos_app.utils.number_format import ZERO, parse_amount, parse_optional_amount

logger = logging.getLogger(__name__)

# Line edits exposed to the POS screen, keyed by operation name
LINE_OPERATIONS = ('quantity', 'unit_price', 'discount_amount', 'discount_percentage',
                   'delivery_charge', 'manual_subtotal')


def clear_cart() -> Cart:
    """Fresh walk-in, non-guest cart with a single-payment plan."""
    return Cart()


# =====================================================
# LINES
# =====================================================

def add_stock_item(cart: Cart, stock: StockSnapshot) -> EditResult:
    """
    Add one unit of a stock record.

    A record already in the cart is incremented by one, limited to what is
    on hand minus what the cart already holds.
    """
    if stock.quantity_on_hand <= 0:
        return rejected(cart, AdvisoryReason.OUT_OF_STOCK, f'"{stock.name}" is out of stock.')

    existing = cart.find_line(stock.stock_id)
    if existing is None:
        line = CartLine.for_stock(stock)
        return accepted(cart.evolve(lines=cart.lines + (line,)))

    available = stock.quantity_on_hand - cart.reserved_quantity(stock.stock_id)
    if available < 1:
        return rejected(
            cart, AdvisoryReason.QUANTITY_EXCEEDS_STOCK,
            f'Only {fmt_quantity(stock.quantity_on_hand, stock.unit)} of "{stock.name}" in stock.'
        )

    return accepted(cart.replace_line(existing.evolve(quantity=existing.quantity + 1)))


def remove_line(cart: Cart, stock_id: int) -> EditResult:
    if cart.find_line(stock_id) is None:
        return _line_not_found(cart, stock_id)
    return accepted(cart.evolve(lines=tuple(l for l in cart.lines if l.stock_id != stock_id)))


def update_line(cart: Cart, stock_id: int, operation: str, value) -> EditResult:
    """Dispatch a named line edit with the cart's guest flag."""
    line = cart.find_line(stock_id)
    if line is None:
        return _line_not_found(cart, stock_id)

    if operation == 'quantity':
        result = pricing.set_quantity(line, int(value))
    elif operation == 'unit_price':
        result = pricing.set_unit_price(line, value, cart.is_guest)
    elif operation == 'discount_amount':
        result = pricing.set_discount_amount(line, value, cart.is_guest)
    elif operation == 'discount_percentage':
        result = pricing.set_discount_percentage(line, value, cart.is_guest)
    elif operation == 'delivery_charge':
        result = pricing.set_delivery_charge(line, value)
    elif operation == 'manual_subtotal':
        result = pricing.set_manual_subtotal(line, value, cart.is_guest)
    else:
        raise ValueError(f'Unknown line operation: {operation}')

    return EditResult(
        value=cart.replace_line(result.value),
        advisory=result.advisory,
        applied=result.applied,
    )


def _line_not_found(cart: Cart, stock_id: int) -> EditResult:
    return rejected(cart, AdvisoryReason.LINE_NOT_FOUND, f'Item #{stock_id} is not in the cart.')


# =====================================================
# SALE MODE
# =====================================================

def set_guest_mode(cart: Cart, is_guest: bool) -> EditResult:
    """
    Toggle guest mode.

    Enabling it brings the cart into the guest rule set: walk-in, no advance,
    no customer or vehicle, no manual subtotals, single payment, and every
    line back to at least its original price.
    """
    if not is_guest:
        return accepted(cart.evolve(is_guest=False))

    lines = []
    for line in cart.lines:
        line = line.evolve(manual_subtotal=None)
        if line.discounted_price < line.original_price:
            line = line.evolve(unit_price=line.original_price, discount_amount=ZERO)
        lines.append(line)

    if cart.is_delivery:
        logger.info("[POS] Guest mode enabled on a delivery cart; switching to walk-in")

    return accepted(cart.evolve(
        is_guest=True,
        sale_type=SaleType.WALK_IN,
        use_advance=False,
        customer_id=None,
        vehicle_id=None,
        lines=tuple(lines),
        payment=PaymentPlan(account_id=cart.payment.account_id, method=cart.payment.method),
    ))


def set_sale_type(cart: Cart, sale_type: SaleType) -> EditResult:
    if sale_type == SaleType.DELIVERY:
        if not ModePolicy.for_cart(cart.is_guest, sale_type).allow_delivery:
            return rejected(cart, AdvisoryReason.GUEST_DELIVERY,
                            'Guest sales are walk-in only; select a customer for delivery.')
        payment = cart.payment
        if payment.is_split:
            # Split payments are a walk-in feature
            payment = payment.evolve(mode=PaymentMode.SINGLE, splits=())
        return accepted(cart.evolve(sale_type=SaleType.DELIVERY, payment=payment))

    return accepted(cart.evolve(sale_type=SaleType.WALK_IN, vehicle_id=None))


def set_customer(cart: Cart, customer_id: Optional[int]) -> EditResult:
    """Select a registered customer; selecting one leaves guest mode."""
    if customer_id is None:
        return accepted(cart.evolve(customer_id=None))
    return accepted(cart.evolve(customer_id=int(customer_id), is_guest=False))


def set_vehicle(cart: Cart, vehicle_id: Optional[int]) -> EditResult:
    if vehicle_id is not None and not cart.is_delivery:
        return rejected(cart, AdvisoryReason.VEHICLE_REQUIRES_DELIVERY,
                        'A vehicle can only be assigned to delivery sales.')
    return accepted(cart.evolve(vehicle_id=int(vehicle_id) if vehicle_id is not None else None))


def set_use_advance(cart: Cart, use_advance: bool) -> EditResult:
    if use_advance and not policy_for(cart).allow_use_advance:
        return rejected(cart.evolve(use_advance=False), AdvisoryReason.GUEST_ADVANCE,
                        'Guest sales cannot use a customer advance.')
    return accepted(cart.evolve(use_advance=bool(use_advance)))


# =====================================================
# PAYMENT PLAN
# =====================================================

def select_payment_account(cart: Cart, account_id: Optional[int], method=None) -> EditResult:
    """Choose the account (and method) for a single payment."""
    try:
        payment_method = normalize_payment_method(method)
    except ValueError as e:
        return rejected(cart, AdvisoryReason.INVALID_PAYMENT_METHOD, str(e))
    plan = cart.payment.evolve(
        account_id=int(account_id) if account_id is not None else None,
        method=payment_method,
    )
    return accepted(cart.evolve(payment=plan))


def set_tendered_amount(cart: Cart, amount) -> EditResult:
    """Amount handed over for a single payment (None = pay the computed amount)."""
    return accepted(cart.evolve(payment=cart.payment.evolve(amount=parse_optional_amount(amount))))


def enable_split_payment(cart: Cart) -> EditResult:
    policy = policy_for(cart)
    if not policy.allow_split_payment:
        if policy.is_guest:
            return rejected(cart, AdvisoryReason.GUEST_SPLIT_PAYMENT,
                            'Split payments are not available for guest sales.')
        return rejected(cart, AdvisoryReason.SPLIT_REQUIRES_WALK_IN,
                        'Split payments are only available for walk-in sales.')
    return accepted(cart.evolve(payment=cart.payment.evolve(mode=PaymentMode.SPLIT)))


def disable_split_payment(cart: Cart) -> EditResult:
    return accepted(cart.evolve(payment=cart.payment.evolve(mode=PaymentMode.SINGLE, splits=())))


def add_split_entry(cart: Cart, method, account_id: int, amount) -> EditResult:
    """Append a tender to the split plan (enables split mode if needed)."""
    enabled = enable_split_payment(cart) if not cart.payment.is_split else accepted(cart)
    if enabled.rejected:
        return enabled
    cart = enabled.value

    try:
        payment_method = normalize_payment_method(method)
    except ValueError as e:
        return rejected(cart, AdvisoryReason.INVALID_PAYMENT_METHOD, str(e))

    value = parse_amount(amount)
    if value <= ZERO:
        return rejected(cart, AdvisoryReason.INVALID_SPLIT_AMOUNT,
                        'Split payment amounts must be greater than 0.')

    entry = SplitPaymentEntry(method=payment_method, account_id=int(account_id), amount=value)
    return accepted(cart.evolve(payment=cart.payment.evolve(splits=cart.payment.splits + (entry,))))


def remove_split_entry(cart: Cart, index: int) -> EditResult:
    splits = cart.payment.splits
    if index < 0 or index >= len(splits):
        return rejected(cart, AdvisoryReason.SPLIT_ENTRY_NOT_FOUND,
                        f'Split payment #{index + 1} does not exist.')
    remaining = splits[:index] + splits[index + 1:]
    return accepted(cart.evolve(payment=cart.payment.evolve(splits=remaining)))
