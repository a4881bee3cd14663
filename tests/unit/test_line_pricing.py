"""
Unit tests for line pricing edits.
"""

import pytest
from decimal import Decimal, ROUND_HALF_UP
from itertools import product

from pos_app.models import AdvisoryReason, CartLine, StockSnapshot
from pos_app.utils.number_format import CENT
from pos_app.services.line_pricing_service import (
    max_discount_for, set_unit_price, set_discount_amount, set_discount_percentage,
    set_quantity, set_delivery_charge, set_manual_subtotal
)


def _line(price='1200.00', on_hand=10, original=None):
    stock = StockSnapshot(
        stock_id=1, item_id=1001, name='Engine Oil 5L', quantity_on_hand=on_hand,
        selling_price=Decimal(price),
    )
    line = CartLine.for_stock(stock)
    if original is not None:
        line = line.evolve(original_price=Decimal(original))
    return line


class TestDiscountAmount:
    """Tests for absolute discounts."""

    def test_discount_amount_derives_percentage(self):
        """A 150 discount on 1200 is 12.5% and leaves 1050."""
        result = set_discount_amount(_line(), '150')

        assert result.applied is True
        assert result.advisory is None
        assert result.value.discounted_price == Decimal('1050.00')
        assert result.value.discount_percentage == Decimal('12.50')

    def test_discount_equal_to_price_is_clamped(self):
        """A discount of the full price is clamped one cent below it."""
        result = set_discount_amount(_line(), '1200')

        assert result.advisory.reason == AdvisoryReason.DISCOUNT_EXCEEDS_PRICE
        assert result.value.discount_amount == Decimal('1199.99')
        assert result.value.discounted_price == Decimal('0.01')
        assert result.value.has_valid_discount()

    def test_negative_discount_becomes_zero(self):
        result = set_discount_amount(_line(), '-20')

        assert result.value.discount_amount == Decimal('0')
        assert result.value.discount_percentage == Decimal('0.00')

    def test_invalid_amount_raises(self):
        with pytest.raises(ValueError):
            set_discount_amount(_line(), 'abc')


class TestDiscountPercentage:
    """Tests for percentage discounts."""

    def test_percentage_is_stored_as_amount(self):
        result = set_discount_percentage(_line(), '12.5')

        assert result.value.discount_amount == Decimal('150.00')
        assert result.value.discount_percentage == Decimal('12.50')

    @pytest.mark.parametrize('price,pct,amount', [
        ('999.99', '7.5', '74.99925'),
        ('1200.00', '33.33', '399.96'),
        ('45.50', '10', '4.55'),
    ])
    def test_percentage_round_trip(self, price, pct, amount):
        """Percentage reads back as entered and the amount is round2(price x pct / 100)."""
        result = set_discount_percentage(_line(price), pct)

        assert result.value.discount_amount == Decimal(amount)
        assert result.value.discount_percentage == Decimal(pct).quantize(Decimal('0.01'))

    @pytest.mark.parametrize('price,pct', list(product(
        ['1.00', '3.33', '7.00', '19.99', '45.50', '999.99', '1234.57'],
        ['0.01', '1', '7.77', '10.01', '12.345', '33.33', '66.67', '98.76', '99'],
    )))
    def test_percentage_reads_back_as_entered(self, price, pct):
        """Percentage reads back as round2(pct); the amount rounds to round2(price x pct / 100)."""
        line = set_discount_percentage(_line(price), pct).value
        expected = Decimal(price) * Decimal(pct).quantize(CENT, ROUND_HALF_UP) / 100

        assert line.discount_percentage == Decimal(pct).quantize(CENT, ROUND_HALF_UP)
        assert line.discount_amount.quantize(CENT, ROUND_HALF_UP) == expected.quantize(CENT, ROUND_HALF_UP)
        assert line.discounted_price >= CENT

    @pytest.mark.parametrize('price,pct', list(product(
        ['0.01', '0.02', '0.99', '7.00'], ['0.5', '50', '99.5', '99.99', '100'],
    )))
    def test_discounted_price_keeps_a_cent(self, price, pct):
        line = set_discount_percentage(_line(price), pct).value

        assert line.has_valid_discount()
        assert line.discounted_price >= CENT

    def test_ten_point_zero_one_percent_of_seven(self):
        line = set_discount_percentage(_line('7.00'), '10.01').value

        assert line.discount_percentage == Decimal('10.01')
        assert line.discount_amount == Decimal('0.7007')
        assert line.discounted_price == Decimal('6.2993')

    def test_full_percentage_is_clamped(self):
        result = set_discount_percentage(_line(), '100')

        assert result.advisory.reason == AdvisoryReason.DISCOUNT_EXCEEDS_PRICE
        assert result.value.discount_amount < result.value.unit_price
        assert result.value.discounted_price > Decimal('0')

    def test_percentage_above_hundred_is_clamped(self):
        result = set_discount_percentage(_line(), '150')

        assert result.value.has_valid_discount()
        assert result.advisory is not None


class TestUnitPrice:
    """Tests for unit price changes."""

    def test_unit_price_keeps_discount(self):
        line = set_discount_amount(_line(), '100').value
        result = set_unit_price(line, '1500')

        assert result.value.unit_price == Decimal('1500.00')
        assert result.value.discount_amount == Decimal('100.00')
        assert result.value.discounted_price == Decimal('1400.00')

    def test_unit_price_is_idempotent(self):
        line = set_discount_amount(_line(), '100').value
        once = set_unit_price(line, '1100').value
        twice = set_unit_price(once, '1100').value

        assert once == twice

    def test_lower_price_clamps_existing_discount(self):
        line = set_discount_amount(_line(), '800').value
        result = set_unit_price(line, '500')

        assert result.advisory.reason == AdvisoryReason.DISCOUNT_EXCEEDS_PRICE
        assert result.value.discount_amount == Decimal('499.99')
        assert result.value.has_valid_discount()

    def test_discount_on_zero_price_is_dropped(self):
        line = set_discount_amount(_line(), '100').value
        result = set_unit_price(line, '0')

        assert result.value.discount_amount == Decimal('0')
        assert result.value.discounted_price == Decimal('0')

    def test_zero_price_without_discount_is_valid(self):
        result = set_unit_price(_line(), '0')

        assert result.value.unit_price == Decimal('0.00')
        assert result.value.discount_percentage == Decimal('0.00')
        assert result.value.has_valid_discount()

    def test_max_discount_for_tiny_price(self):
        assert max_discount_for(Decimal('0.01')) == Decimal('0')
        assert max_discount_for(Decimal('10.00')) == Decimal('9.99')


class TestGuestFloor:
    """Tests for the guest price floor."""

    def test_guest_cannot_lower_price(self):
        """Guest line at 500 refuses a 400 price and keeps 500."""
        line = _line('500.00')
        result = set_unit_price(line, '400', is_guest=True)

        assert result.rejected
        assert result.advisory.reason == AdvisoryReason.GUEST_PRICE_FLOOR
        assert result.value.unit_price == Decimal('500.00')

    def test_guest_can_raise_price(self):
        result = set_unit_price(_line('500.00'), '550', is_guest=True)

        assert result.applied
        assert result.value.unit_price == Decimal('550.00')

    def test_guest_discount_within_markup_is_allowed(self):
        line = set_unit_price(_line('500.00'), '550', is_guest=True).value
        result = set_discount_amount(line, '50', is_guest=True)

        assert result.applied
        assert result.value.discounted_price == Decimal('500.00')

    def test_guest_discount_below_original_resets_discount(self):
        result = set_discount_amount(_line('500.00'), '10', is_guest=True)

        assert result.rejected
        assert result.advisory.reason == AdvisoryReason.GUEST_PRICE_FLOOR
        assert result.value.discount_amount == Decimal('0')
        assert result.value.discounted_price == Decimal('500.00')

    def test_guest_percentage_below_original_resets_discount(self):
        result = set_discount_percentage(_line('500.00'), '5', is_guest=True)

        assert result.rejected
        assert result.advisory.reason == AdvisoryReason.GUEST_PRICE_FLOOR
        assert result.value.discount_amount == Decimal('0')
        assert result.value.discounted_price == Decimal('500.00')

    def test_guest_percentage_within_markup_is_allowed(self):
        line = set_unit_price(_line('500.00'), '600', is_guest=True).value
        result = set_discount_percentage(line, '10', is_guest=True)

        assert result.applied
        assert result.value.discounted_price == Decimal('540.00')

    def test_guest_edit_sequence_never_goes_below_original(self):
        """Raise the price, discount it, then try to lower it again."""
        edits = [
            (set_unit_price, '600'),
            (set_discount_percentage, '10'),
            (set_unit_price, '550'),
            (set_discount_percentage, '20'),
            (set_discount_amount, '150'),
            (set_unit_price, '400'),
            (set_discount_amount, '100'),
            (set_unit_price, '520'),
            (set_discount_percentage, '99.99'),
        ]
        line = _line('500.00')
        for edit, value in edits:
            line = edit(line, value, is_guest=True).value
            assert line.discounted_price >= line.original_price

        assert line.unit_price == Decimal('600.00')
        assert line.discount_amount == Decimal('0')

    def test_guest_manual_subtotal_rejected(self):
        result = set_manual_subtotal(_line(), '900', is_guest=True)

        assert result.rejected
        assert result.advisory.reason == AdvisoryReason.GUEST_MANUAL_OVERRIDE
        assert result.value.manual_subtotal is None


class TestQuantity:
    """Tests for quantity steps."""

    def test_increment(self):
        assert set_quantity(_line(), 1).value.quantity == 2

    def test_never_below_one(self):
        assert set_quantity(_line(), -5).value.quantity == 1

    def test_ceiling_is_on_hand(self):
        line = _line(on_hand=3).evolve(quantity=3)
        result = set_quantity(line, 1)

        assert result.value.quantity == 3
        assert result.advisory.reason == AdvisoryReason.QUANTITY_EXCEEDS_STOCK


class TestOverrides:
    """Tests for delivery charges and manual subtotals."""

    def test_delivery_charge_clears_manual_subtotal(self):
        line = set_manual_subtotal(_line(), '1000').value
        result = set_delivery_charge(line, '50')

        assert result.value.delivery_charge == Decimal('50.00')
        assert result.value.manual_subtotal is None

    def test_manual_subtotal_can_be_cleared(self):
        line = set_manual_subtotal(_line(), '1000').value
        assert set_manual_subtotal(line, None).value.manual_subtotal is None

    def test_negative_manual_subtotal_is_zero(self):
        assert set_manual_subtotal(_line(), '-10').value.manual_subtotal == Decimal('0')
