"""Payment reconciliation service - checks a payment plan against the cart total."""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, List, Dict, Any
import enum

from pos_app.models import Cart, PaymentPlan
from pos_app.services.cart_totals_service import CartTotals
from pos_app.services.mode_policy import policy_for
from pos_app.utils.formatters import money
from pos_app.utils.number_format import CENT, ZERO, round2


class PaymentRejection(str, enum.Enum):
    """Reasons a payment plan cannot be checked out."""
    PAYMENT_ACCOUNT_REQUIRED = 'payment_account_required'
    SPLIT_PAYMENT_REQUIRED = 'split_payment_required'
    SPLIT_NOT_ALLOWED = 'split_payment_not_allowed'
    GUEST_EXCESS_PAYMENT = 'guest_excess_payment_not_allowed'
    GUEST_DUE = 'guest_due_not_allowed'


@dataclass(frozen=True)
class PaymentReconciliation:
    """
    Outcome of reconciling a payment plan.

    On success `rejection` is None and due/excess describe the balance:
    due is recorded as a receivable, excess as a customer advance.
    """

    amount_paid: Decimal = ZERO
    total: Decimal = ZERO
    due: Decimal = ZERO
    excess: Decimal = ZERO
    rejection: Optional[PaymentRejection] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.rejection is None

    def to_dict(self) -> dict:
        return {
            'ok': self.ok,
            'amount_paid': str(round2(self.amount_paid)),
            'total': str(round2(self.total)),
            'due': str(round2(self.due)),
            'excess': str(round2(self.excess)),
            'rejection': self.rejection.value if self.rejection else None,
            'message': self.message,
        }


def _settle(amount_paid: Decimal, total: Decimal) -> PaymentReconciliation:
    return PaymentReconciliation(
        amount_paid=amount_paid,
        total=total,
        due=max(ZERO, total - amount_paid),
        excess=max(ZERO, amount_paid - total),
    )


def _reject(reason: PaymentRejection, message: str, total: Decimal) -> PaymentReconciliation:
    return PaymentReconciliation(total=total, rejection=reason, message=message)


def reconcile_single(plan: PaymentPlan, totals: CartTotals, is_guest: bool) -> PaymentReconciliation:
    """
    Single payment from one account.

    Guests pay the total exactly (within one cent). For registered customers
    the amount paid defaults to the billed sale total plus any advance taken
    through manual subtotals (together exactly the cart total), or to the
    tendered amount when one was entered.
    """
    total = totals.total
    if plan.account_id is None:
        return _reject(
            PaymentRejection.PAYMENT_ACCOUNT_REQUIRED,
            'Select a payment account to continue.',
            total,
        )

    if is_guest:
        tendered = plan.amount if plan.amount is not None else total
        if tendered - total >= CENT:
            return _reject(
                PaymentRejection.GUEST_EXCESS_PAYMENT,
                f'Guest sales cannot be overpaid: received {money(tendered)} for a total of {money(total)}.',
                total,
            )
        if total - tendered >= CENT:
            return _reject(
                PaymentRejection.GUEST_DUE,
                f'Guest sales must be paid in full: received {money(tendered)} for a total of {money(total)}.',
                total,
            )
        return _settle(total, total)

    if plan.amount is not None:
        return _settle(plan.amount, total)
    return _settle(total, total)


def reconcile_split(plan: PaymentPlan, totals: CartTotals) -> PaymentReconciliation:
    """Split payment: the sum of entries is paid; shortfall is due, surplus an advance."""
    total = totals.total
    if not plan.splits:
        return _reject(
            PaymentRejection.SPLIT_PAYMENT_REQUIRED,
            'Add at least one split payment to continue.',
            total,
        )
    return _settle(plan.total_split, total)


def reconcile(cart: Cart, totals: CartTotals) -> PaymentReconciliation:
    """Reconcile the cart's payment plan according to its mode policy."""
    policy = policy_for(cart)
    if cart.payment.is_split:
        if not policy.allow_split_payment:
            return _reject(
                PaymentRejection.SPLIT_NOT_ALLOWED,
                'Split payments are only available for registered walk-in sales.',
                totals.total,
            )
        return reconcile_split(cart.payment, totals)
    if cart.is_delivery and cart.payment.account_id is None:
        # Delivery sales may be collected later; the whole total stays due
        return _settle(ZERO, totals.total)
    return reconcile_single(cart.payment, totals, policy.is_guest)


def build_process_payload(cart: Cart, reconciliation: PaymentReconciliation) -> Dict[str, Any]:
    """Body of the process-sale call for a reconciled cart."""
    payload: Dict[str, Any] = {
        'amount_paid': str(round2(reconciliation.amount_paid)),
        'use_advance': bool(cart.use_advance and not cart.is_guest),
        'is_guest': cart.is_guest,
    }
    plan = cart.payment
    if plan.is_split:
        payments: List[Dict[str, Any]] = [
            {
                'method': entry.method.value,
                'account_id': entry.account_id,
                'amount': str(round2(entry.amount)),
            }
            for entry in plan.splits
        ]
        payload['payments'] = payments
    elif plan.account_id is not None:
        payload['payment_method'] = plan.method.value
        payload['payment_account_id'] = plan.account_id
    return payload
