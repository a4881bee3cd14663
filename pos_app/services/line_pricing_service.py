"""
Line pricing service - named edits on a single cart line.

Every edit takes the current line plus one new value and returns an
EditResult with the new line. Discount amount is the source of truth:
percentage is always re-derived from it, and a percentage edit is converted
to an amount before it is stored. That amount keeps full precision so the
percentage reads back as entered; it is rounded to cents only for display
and totals.
"""
from decimal import Decimal
from typing import Optional

from pos_app.models import CartLine, AdvisoryReason
from pos_app.models.advisory import Advisory, EditResult, accepted, rejected
from pos_app.services.mode_policy import ModePolicy
from pos_app.utils.formatters import money, quantity as fmt_quantity
from pos_app.utils.number_format import CENT, ZERO, HUNDRED, round2, parse_amount

MAX_DISCOUNT_PERCENTAGE = Decimal('99.99')


def max_discount_for(unit_price: Decimal) -> Decimal:
    """Largest discount that keeps the discounted price strictly positive."""
    if unit_price <= CENT:
        return ZERO
    return unit_price - CENT


def _discount_clamped(line: CartLine, amount: Decimal) -> Advisory:
    return Advisory(
        AdvisoryReason.DISCOUNT_EXCEEDS_PRICE,
        f'Discount must be less than the unit price of {money(line.unit_price)}; '
        f'clamped to {money(amount)}.'
    )


def _guest_floor(line: CartLine) -> str:
    return (f'Guest sales cannot go below the original price of '
            f'{money(line.original_price)} for "{line.stock.name}".')


def set_unit_price(line: CartLine, new_price, is_guest: bool = False) -> EditResult:
    """
    Change the selling price of a line.

    The discount amount is kept; if it no longer fits under the new price it
    is clamped to the largest legal value. Pricing below cost is allowed here
    and only reported at checkout.
    """
    policy = ModePolicy.for_cart(is_guest)
    # A zero price is a valid free line; only a discount must leave a cent
    price = max(ZERO, round2(parse_amount(new_price)))

    if not policy.allow_price_below_original and price < line.original_price:
        return rejected(line, AdvisoryReason.GUEST_PRICE_FLOOR, _guest_floor(line))

    discount = line.discount_amount
    advisory = None
    if discount > ZERO and price - discount < CENT:
        discount = max_discount_for(price)
        advisory = _discount_clamped(line.evolve(unit_price=price), discount)

    updated = line.evolve(unit_price=price, discount_amount=discount)
    if not policy.allow_discount_below_original and updated.discounted_price < line.original_price:
        return rejected(line, AdvisoryReason.GUEST_PRICE_FLOOR, _guest_floor(line))

    return accepted(updated, advisory)


def set_discount_amount(line: CartLine, new_amount, is_guest: bool = False) -> EditResult:
    """Set the absolute discount per unit; the percentage follows."""
    amount = max(ZERO, round2(parse_amount(new_amount)))
    return _apply_discount(line, amount, None, is_guest)


def set_discount_percentage(line: CartLine, new_percentage, is_guest: bool = False) -> EditResult:
    """Set the discount as a percentage of the unit price (stored as an amount)."""
    pct = min(HUNDRED, max(ZERO, round2(parse_amount(new_percentage))))
    advisory = None
    if pct >= HUNDRED:
        pct = MAX_DISCOUNT_PERCENTAGE
        advisory = Advisory(
            AdvisoryReason.DISCOUNT_EXCEEDS_PRICE,
            f'Discount cannot be 100% of the price; clamped to {MAX_DISCOUNT_PERCENTAGE}%.'
        )
    amount = line.unit_price * pct / HUNDRED
    return _apply_discount(line, amount, advisory, is_guest)


def _apply_discount(line: CartLine, amount: Decimal, advisory: Optional[Advisory], is_guest: bool) -> EditResult:
    # discounted price stays at or above one cent
    if amount > ZERO and line.unit_price - amount < CENT:
        amount = max_discount_for(line.unit_price)
        advisory = _discount_clamped(line, amount)

    updated = line.evolve(discount_amount=amount)

    policy = ModePolicy.for_cart(is_guest)
    if not policy.allow_discount_below_original and updated.discounted_price < line.original_price:
        # The floor wins over the requested discount
        return EditResult(
            value=line.evolve(discount_amount=ZERO),
            advisory=Advisory(AdvisoryReason.GUEST_PRICE_FLOOR, _guest_floor(line)),
            applied=False,
        )

    return accepted(updated, advisory)


def set_quantity(line: CartLine, delta: int) -> EditResult:
    """
    Increment or decrement the quantity, never below 1.

    The ceiling is the absolute quantity on hand of the stock snapshot, not
    on-hand minus what the rest of the cart holds.
    """
    requested = max(1, line.quantity + int(delta))
    ceiling = line.stock.quantity_on_hand

    if requested > ceiling:
        clamped = max(1, ceiling)
        return accepted(
            line.evolve(quantity=clamped),
            Advisory(
                AdvisoryReason.QUANTITY_EXCEEDS_STOCK,
                f'Only {fmt_quantity(ceiling, line.stock.unit)} of "{line.stock.name}" in stock.'
            )
        )

    return accepted(line.evolve(quantity=requested))


def set_delivery_charge(line: CartLine, amount) -> EditResult:
    """Set the per-line delivery charge. Any manual subtotal is now stale and is dropped."""
    charge = max(ZERO, round2(parse_amount(amount)))
    return accepted(line.evolve(delivery_charge=charge, manual_subtotal=None))


def set_manual_subtotal(line: CartLine, amount, is_guest: bool = False) -> EditResult:
    """Override the line's contribution to the cart total (None clears the override)."""
    policy = ModePolicy.for_cart(is_guest)
    if not policy.allow_manual_subtotal:
        return rejected(
            line, AdvisoryReason.GUEST_MANUAL_OVERRIDE,
            'Manual subtotals are not allowed for guest sales.'
        )

    if amount is None:
        return accepted(line.evolve(manual_subtotal=None))

    return accepted(line.evolve(manual_subtotal=max(ZERO, parse_amount(amount))))
