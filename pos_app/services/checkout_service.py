"""
Checkout service - validates a cart and turns it into a processed sale.

    IDLE -> VALIDATING -> CREATING -> PROCESSING -> SETTLED
                 |            |            |
                 +----------> FAILED <-----+

The two remote calls are sequential: processing only starts once creation
returned a sale id. A processing failure leaves the created sale as a draft
on the server; it is reported, never voided or retried from here.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
import enum

from pos_app.exceptions import SalesApiError
from pos_app.models import Advisory, AdvisoryReason, Cart, SaleType
from pos_app.services.cart_service import clear_cart
from pos_app.services.cart_totals_service import CartTotals, cart_totals
from pos_app.services.payment_service import (
    PaymentReconciliation, build_process_payload, reconcile
)
from pos_app.utils.formatters import money
from pos_app.utils.number_format import ZERO, round2

logger = logging.getLogger(__name__)


class CheckoutState(str, enum.Enum):
    IDLE = 'idle'
    VALIDATING = 'validating'
    CREATING = 'creating'
    PROCESSING = 'processing'
    SETTLED = 'settled'
    FAILED = 'failed'


class FailureReason(str, enum.Enum):
    """Why a checkout stopped. Remote reasons come from the HTTP status."""
    EMPTY_CART = 'empty_cart'
    DISCOUNT_EXCEEDS_PRICE = 'discount_exceeds_price'
    GUEST_PRICE_FLOOR = 'guest_price_floor_violation'
    GUEST_MANUAL_OVERRIDE = 'guest_manual_override_not_allowed'
    GUEST_DELIVERY = 'guest_delivery_not_allowed'
    GUEST_ADVANCE = 'guest_advance_not_allowed'
    PAYMENT_ACCOUNT_REQUIRED = 'payment_account_required'
    SPLIT_PAYMENT_REQUIRED = 'split_payment_required'
    SPLIT_NOT_ALLOWED = 'split_payment_not_allowed'
    GUEST_EXCESS_PAYMENT = 'guest_excess_payment_not_allowed'
    GUEST_DUE = 'guest_due_not_allowed'
    CUSTOMER_REQUIRED = 'customer_required'
    # Remote failures
    VALIDATION = 'validation'
    NOT_FOUND = 'not_found'
    FORBIDDEN = 'forbidden'
    UNAUTHORIZED = 'unauthorized'
    NETWORK = 'network'

    @property
    def is_remote(self) -> bool:
        return self in REMOTE_REASONS


REMOTE_REASONS = frozenset({
    FailureReason.VALIDATION, FailureReason.NOT_FOUND, FailureReason.FORBIDDEN,
    FailureReason.UNAUTHORIZED, FailureReason.NETWORK,
})


@dataclass(frozen=True)
class CheckoutValidation:
    """Result of the validating step; nothing is sent remotely unless ok."""

    totals: CartTotals
    advisories: Tuple[Advisory, ...] = ()
    reconciliation: Optional[PaymentReconciliation] = None
    customer_id: Optional[int] = None
    reason: Optional[FailureReason] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    def to_dict(self) -> dict:
        return {
            'ok': self.ok,
            'reason': self.reason.value if self.reason else None,
            'message': self.message,
            'advisories': [a.to_dict() for a in self.advisories],
            'totals': self.totals.to_dict(),
            'payment': self.reconciliation.to_dict() if self.reconciliation else None,
        }


@dataclass(frozen=True)
class CheckoutResult:
    """
    Outcome of a checkout attempt.

    `cart` is the cart to keep: cleared when SETTLED, unchanged otherwise.
    `sale_id` is set whenever the sale was created, including when
    processing failed afterwards (the draft the operator must clean up).
    """

    state: CheckoutState
    cart: Cart
    validation: Optional[CheckoutValidation] = None
    reason: Optional[FailureReason] = None
    message: Optional[str] = None
    sale_id: Optional[int] = None
    sale_number: Optional[str] = None
    transitions: Tuple[CheckoutState, ...] = field(default_factory=tuple)

    @property
    def settled(self) -> bool:
        return self.state == CheckoutState.SETTLED

    def to_dict(self) -> dict:
        return {
            'state': self.state.value,
            'reason': self.reason.value if self.reason else None,
            'message': self.message,
            'sale_id': self.sale_id,
            'sale_number': self.sale_number,
            'transitions': [s.value for s in self.transitions],
            'validation': self.validation.to_dict() if self.validation else None,
        }


# =====================================================
# VALIDATION
# =====================================================

def validate_checkout(cart: Cart, guest_customer_id: Optional[int] = None) -> CheckoutValidation:
    """
    Run the blocking checks in order and collect non-blocking advisories.

    1. discount below price on every line
    2. below-cost advisories (never blocking)
    3. guest rules
    4. payment plan
    5. customer
    """
    totals = cart_totals(cart)

    def fail(reason: FailureReason, message: str, advisories=(), reconciliation=None):
        return CheckoutValidation(totals=totals, advisories=tuple(advisories),
                                  reconciliation=reconciliation, reason=reason, message=message)

    if cart.is_empty:
        return fail(FailureReason.EMPTY_CART, 'Add at least one item to the cart.')

    # 1. pricing edits clamp discounts, restored sessions may not
    for line in cart.lines:
        if not line.has_valid_discount():
            return fail(
                FailureReason.DISCOUNT_EXCEEDS_PRICE,
                f'Discount on "{line.stock.name}" must be less than its unit price.'
            )

    # 2.
    advisories: List[Advisory] = []
    for line in cart.lines:
        if line.is_below_cost:
            advisories.append(Advisory(
                AdvisoryReason.BELOW_COST_PRICE,
                f'"{line.stock.name}" is sold at {money(line.discounted_price)}, '
                f'below its purchase price of {money(line.stock.last_purchase_price)}.'
            ))

    # 3.
    if cart.is_guest:
        if cart.sale_type == SaleType.DELIVERY:
            return fail(FailureReason.GUEST_DELIVERY,
                        'Guest sales must be walk-in sales.', advisories)
        if cart.use_advance:
            return fail(FailureReason.GUEST_ADVANCE,
                        'Guest sales cannot use a customer advance.', advisories)
        for line in cart.lines:
            if line.manual_subtotal is not None:
                return fail(FailureReason.GUEST_MANUAL_OVERRIDE,
                            f'Remove the manual subtotal on "{line.stock.name}"; '
                            f'guest sales cannot adjust subtotals.', advisories)
            if line.discounted_price < line.original_price:
                return fail(FailureReason.GUEST_PRICE_FLOOR,
                            f'"{line.stock.name}" cannot be sold below {money(line.original_price)} '
                            f'in a guest sale.', advisories)

    # 4. exact payment for guests, account or splits for walk-in customers
    reconciliation = reconcile(cart, totals)
    if not reconciliation.ok:
        return fail(FailureReason(reconciliation.rejection.value), reconciliation.message,
                    advisories, reconciliation)

    # 5.
    if cart.is_guest:
        customer_id = guest_customer_id
    else:
        if cart.customer_id is None:
            return fail(FailureReason.CUSTOMER_REQUIRED,
                        'Select a customer or switch to a guest sale.', advisories, reconciliation)
        customer_id = cart.customer_id

    return CheckoutValidation(
        totals=totals,
        advisories=tuple(advisories),
        reconciliation=reconciliation,
        customer_id=customer_id,
    )


def build_sale_payload(cart: Cart, totals: CartTotals, customer_id: Optional[int],
                       notes: Optional[str] = None) -> Dict[str, Any]:
    """Body of the create-sale call (cart snapshot)."""
    items = []
    for line in cart.lines:
        item: Dict[str, Any] = {
            'item_id': line.stock.item_id,
            'item_stock_id': line.stock_id,
            'quantity': line.quantity,
            'unit_price': str(round2(line.unit_price)),
            'delivery_charge': str(round2(line.delivery_charge)) if cart.is_delivery else '0.00',
        }
        if line.discount_amount > ZERO:
            item['discount_percentage'] = str(line.discount_percentage)
        items.append(item)

    payload: Dict[str, Any] = {
        'sale_type': cart.sale_type.value,
        'customer_id': customer_id,
        'is_guest': cart.is_guest,
        'items': items,
    }
    if cart.is_delivery and cart.vehicle_id is not None:
        payload['vehicle_id'] = cart.vehicle_id
    if totals.additional_discount > ZERO:
        payload['overall_discount'] = str(round2(totals.additional_discount))
    if notes:
        payload['notes'] = notes
    return payload


# =====================================================
# REMOTE ERRORS
# =====================================================

def classify_remote_error(error: SalesApiError, is_guest: bool = False) -> Tuple[FailureReason, str]:
    """Map a Sales API failure to a reason and a single user-facing message."""
    status = error.status

    if status in (400, 422):
        messages = error.field_messages()
        first = messages[0] if messages else error.message
        if len(messages) > 1:
            logger.warning(f"[CHECKOUT] Additional validation errors: {messages[1:]}")
        if is_guest:
            return FailureReason.VALIDATION, f'Guest sale could not be saved: {first}'
        return FailureReason.VALIDATION, first
    if status == 404:
        return FailureReason.NOT_FOUND, 'The sales service endpoint was not found. Check the API configuration.'
    if status == 403:
        return FailureReason.FORBIDDEN, 'You do not have permission to record sales.'
    if status == 401:
        return FailureReason.UNAUTHORIZED, 'Your session has expired. Please sign in again.'
    return FailureReason.NETWORK, f'The sale could not be completed: {error.message}'


# =====================================================
# ORCHESTRATOR
# =====================================================

class CheckoutOrchestrator:
    """
    Sequences validation, sale creation, sale processing and cart reset.

    Args:
        client: object exposing create_sale(payload) and process_sale(sale_id, payload)
        on_settled: called once after a sale is settled (stock refresh)
        guest_customer_id: customer id sent for guest sales
    """

    def __init__(self, client, on_settled: Optional[Callable[[], None]] = None,
                 guest_customer_id: Optional[int] = None):
        self.client = client
        self.on_settled = on_settled
        self.guest_customer_id = guest_customer_id
        self.state = CheckoutState.IDLE
        self._transitions: List[CheckoutState] = []

    def _enter(self, state: CheckoutState) -> None:
        logger.info(f"[CHECKOUT] {self.state.value} -> {state.value}")
        self.state = state
        self._transitions.append(state)

    def _failed(self, cart: Cart, reason: FailureReason, message: str,
                validation: Optional[CheckoutValidation] = None,
                sale_id: Optional[int] = None, sale_number: Optional[str] = None) -> CheckoutResult:
        self._enter(CheckoutState.FAILED)
        return CheckoutResult(
            state=CheckoutState.FAILED,
            cart=cart,
            validation=validation,
            reason=reason,
            message=message,
            sale_id=sale_id,
            sale_number=sale_number,
            transitions=tuple(self._transitions),
        )

    def checkout(self, cart: Cart, notes: Optional[str] = None) -> CheckoutResult:
        self.state = CheckoutState.IDLE
        self._transitions = [CheckoutState.IDLE]

        self._enter(CheckoutState.VALIDATING)
        validation = validate_checkout(cart, self.guest_customer_id)
        if not validation.ok:
            logger.info(f"[CHECKOUT] Validation failed: {validation.reason.value}")
            return self._failed(cart, validation.reason, validation.message, validation)

        self._enter(CheckoutState.CREATING)
        try:
            sale = self.client.create_sale(
                build_sale_payload(cart, validation.totals, validation.customer_id, notes)
            )
        except SalesApiError as e:
            reason, message = classify_remote_error(e, cart.is_guest)
            logger.error(f"[CHECKOUT] Create sale failed ({reason.value}): {e.message}")
            return self._failed(cart, reason, message, validation)

        sale_id = sale.get('id')
        sale_number = sale.get('sale_number')

        self._enter(CheckoutState.PROCESSING)
        try:
            self.client.process_sale(sale_id, build_process_payload(cart, validation.reconciliation))
        except SalesApiError as e:
            reason, message = classify_remote_error(e, cart.is_guest)
            label = sale_number or f'#{sale_id}'
            logger.error(f"[CHECKOUT] Process sale {label} failed ({reason.value}): {e.message}; "
                         f"draft sale left on the server")
            message = (f'{message} Sale {label} was saved as a draft and must be '
                       f'completed or voided manually.')
            return self._failed(cart, reason, message, validation, sale_id, sale_number)

        self._enter(CheckoutState.SETTLED)
        if self.on_settled is not None:
            try:
                self.on_settled()
            except Exception as e:
                # Sale already settled; only the stock grid goes stale
                logger.warning(f"[CHECKOUT] Stock refresh after sale {sale_id} failed: {e}")

        due = validation.reconciliation.due
        logger.info(f"[CHECKOUT] Sale {sale_number or sale_id} settled "
                    f"(total={round2(validation.totals.total)}, due={round2(due)})")
        return CheckoutResult(
            state=CheckoutState.SETTLED,
            cart=clear_cart(),
            validation=validation,
            message=f'Sale {sale_number or sale_id} completed.',
            sale_id=sale_id,
            sale_number=sale_number,
            transitions=tuple(self._transitions),
        )
