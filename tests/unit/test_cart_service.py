"""
Unit tests for cart-level mutations.
"""

import pytest
from dataclasses import replace
from decimal import Decimal

from pos_app.models import AdvisoryReason, Cart, PaymentMethod, PaymentMode, SaleType
from pos_app.services import cart_service


def _with(cart, *edits):
    """Apply (fn, args...) edits in order and return the final cart."""
    for fn, *args in edits:
        cart = fn(cart, *args).value
    return cart


class TestLines:
    """Tests for adding, editing and removing lines."""

    def test_add_new_line(self, oil):
        result = cart_service.add_stock_item(Cart(), oil)

        assert result.applied
        assert len(result.value.lines) == 1
        assert result.value.lines[0].quantity == 1
        assert result.value.lines[0].unit_price == Decimal('1200.00')

    def test_add_existing_line_increments(self, oil):
        cart = _with(Cart(), (cart_service.add_stock_item, oil), (cart_service.add_stock_item, oil))

        assert len(cart.lines) == 1
        assert cart.lines[0].quantity == 2

    def test_add_beyond_available_is_rejected(self, brake_pads):
        cart = Cart()
        for _ in range(3):
            cart = cart_service.add_stock_item(cart, brake_pads).value
        result = cart_service.add_stock_item(cart, brake_pads)

        assert result.rejected
        assert result.advisory.reason == AdvisoryReason.QUANTITY_EXCEEDS_STOCK
        assert result.value.lines[0].quantity == 3

    def test_add_out_of_stock(self, oil):
        empty = replace(oil, quantity_on_hand=0)
        result = cart_service.add_stock_item(Cart(), empty)

        assert result.advisory.reason == AdvisoryReason.OUT_OF_STOCK
        assert result.value.is_empty

    def test_update_line_dispatches(self, customer_cart):
        result = cart_service.update_line(customer_cart, 1, 'discount_amount', '150')

        assert result.value.lines[0].discounted_price == Decimal('1050.00')

    def test_update_unknown_line(self, customer_cart):
        result = cart_service.update_line(customer_cart, 99, 'quantity', 1)

        assert result.advisory.reason == AdvisoryReason.LINE_NOT_FOUND

    def test_update_unknown_operation(self, customer_cart):
        with pytest.raises(ValueError):
            cart_service.update_line(customer_cart, 1, 'colour', 'red')

    def test_remove_line(self, customer_cart):
        assert cart_service.remove_line(customer_cart, 1).value.is_empty


class TestSaleMode:
    """Tests for guest mode, sale type, customer and vehicle."""

    def test_enable_guest_resets_cart(self, customer_cart):
        cart = _with(
            customer_cart,
            (cart_service.set_sale_type, SaleType.DELIVERY),
            (cart_service.set_vehicle, 5),
            (cart_service.set_use_advance, True),
            (cart_service.update_line, 1, 'unit_price', '1000'),
        )
        cart = cart_service.set_guest_mode(cart, True).value

        assert cart.is_guest
        assert cart.sale_type == SaleType.WALK_IN
        assert cart.vehicle_id is None
        assert cart.customer_id is None
        assert cart.use_advance is False
        assert cart.lines[0].unit_price == Decimal('1200.00')
        assert cart.payment.account_id == 3

    def test_guest_cannot_switch_to_delivery(self, customer_cart):
        guest = cart_service.set_guest_mode(customer_cart, True).value
        result = cart_service.set_sale_type(guest, SaleType.DELIVERY)

        assert result.rejected
        assert result.advisory.reason == AdvisoryReason.GUEST_DELIVERY
        assert result.value.sale_type == SaleType.WALK_IN

    def test_guest_cannot_use_advance(self, customer_cart):
        guest = cart_service.set_guest_mode(customer_cart, True).value
        result = cart_service.set_use_advance(guest, True)

        assert result.rejected
        assert result.value.use_advance is False

    def test_selecting_customer_leaves_guest_mode(self, customer_cart):
        guest = cart_service.set_guest_mode(customer_cart, True).value
        cart = cart_service.set_customer(guest, 9).value

        assert cart.is_guest is False
        assert cart.customer_id == 9

    def test_vehicle_requires_delivery(self, customer_cart):
        result = cart_service.set_vehicle(customer_cart, 5)

        assert result.advisory.reason == AdvisoryReason.VEHICLE_REQUIRES_DELIVERY

    def test_walk_in_clears_vehicle(self, customer_cart):
        cart = _with(
            customer_cart,
            (cart_service.set_sale_type, SaleType.DELIVERY),
            (cart_service.set_vehicle, 5),
            (cart_service.set_sale_type, SaleType.WALK_IN),
        )
        assert cart.vehicle_id is None

    def test_delivery_drops_split_payment(self, customer_cart):
        cart = _with(
            customer_cart,
            (cart_service.add_split_entry, 'cash', 3, '500'),
            (cart_service.set_sale_type, SaleType.DELIVERY),
        )
        assert cart.payment.mode == PaymentMode.SINGLE
        assert cart.payment.splits == ()


class TestPaymentPlan:
    """Tests for payment plan edits."""

    def test_select_account(self, customer_cart):
        cart = cart_service.select_payment_account(customer_cart, 8, 'bank').value

        assert cart.payment.account_id == 8
        assert cart.payment.method == PaymentMethod.BANK_TRANSFER

    def test_invalid_method(self, customer_cart):
        result = cart_service.select_payment_account(customer_cart, 8, 'shells')

        assert result.advisory.reason == AdvisoryReason.INVALID_PAYMENT_METHOD

    def test_tendered_amount(self, customer_cart):
        cart = cart_service.set_tendered_amount(customer_cart, '750.50').value
        assert cart.payment.amount == Decimal('750.50')

        cart = cart_service.set_tendered_amount(cart, '').value
        assert cart.payment.amount is None

    def test_add_split_entries(self, customer_cart):
        cart = _with(
            customer_cart,
            (cart_service.add_split_entry, 'cash', 3, '500'),
            (cart_service.add_split_entry, 'bank', 4, '300'),
        )
        assert cart.payment.is_split
        assert cart.payment.total_split == Decimal('800')

    def test_split_amount_must_be_positive(self, customer_cart):
        result = cart_service.add_split_entry(customer_cart, 'cash', 3, '0')

        assert result.advisory.reason == AdvisoryReason.INVALID_SPLIT_AMOUNT

    def test_guest_split_rejected(self, customer_cart):
        guest = cart_service.set_guest_mode(customer_cart, True).value
        result = cart_service.enable_split_payment(guest)

        assert result.advisory.reason == AdvisoryReason.GUEST_SPLIT_PAYMENT

    def test_delivery_split_rejected(self, customer_cart):
        delivery = cart_service.set_sale_type(customer_cart, SaleType.DELIVERY).value
        result = cart_service.enable_split_payment(delivery)

        assert result.advisory.reason == AdvisoryReason.SPLIT_REQUIRES_WALK_IN

    def test_remove_split_entry(self, customer_cart):
        cart = _with(
            customer_cart,
            (cart_service.add_split_entry, 'cash', 3, '500'),
            (cart_service.add_split_entry, 'card', 4, '300'),
            (cart_service.remove_split_entry, 0),
        )
        assert len(cart.payment.splits) == 1
        assert cart.payment.splits[0].method == PaymentMethod.CARD

    def test_remove_missing_split_entry(self, customer_cart):
        result = cart_service.remove_split_entry(customer_cart, 2)

        assert result.advisory.reason == AdvisoryReason.SPLIT_ENTRY_NOT_FOUND

    def test_disable_split(self, customer_cart):
        cart = _with(
            customer_cart,
            (cart_service.add_split_entry, 'cash', 3, '500'),
            (cart_service.disable_split_payment,),
        )
        assert cart.payment.mode == PaymentMode.SINGLE
        assert cart.payment.splits == ()


class TestSerialization:
    """Tests for the session representation of the cart."""

    def test_to_dict_from_dict(self, customer_cart):
        cart = _with(
            customer_cart,
            (cart_service.update_line, 1, 'discount_amount', '150'),
            (cart_service.add_split_entry, 'cash', 3, '500'),
        )
        restored = Cart.from_dict(cart.to_dict())

        assert restored == cart
        assert restored.to_dict()['lines'][0]['discount_percentage'] == '12.50'

    def test_clear_cart(self):
        cart = cart_service.clear_cart()

        assert cart.is_empty
        assert cart.sale_type == SaleType.WALK_IN
        assert not cart.is_guest
        assert cart.payment.mode == PaymentMode.SINGLE
