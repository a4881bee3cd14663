"""Models package - exports the POS value types."""
from pos_app.models.stock import StockSnapshot, StockStatus
from pos_app.models.advisory import Advisory, AdvisoryReason, EditResult
from pos_app.models.cart_line import CartLine
from pos_app.models.payment import (
    PaymentMethod, PaymentMode, PaymentPlan, SplitPaymentEntry, normalize_payment_method
)
from pos_app.models.cart import Cart, SaleType, normalize_sale_type

__all__ = [
    'StockSnapshot', 'StockStatus',
    'Advisory', 'AdvisoryReason', 'EditResult',
    'CartLine',
    'PaymentMethod', 'PaymentMode', 'PaymentPlan', 'SplitPaymentEntry', 'normalize_payment_method',
    'Cart', 'SaleType', 'normalize_sale_type',
]
