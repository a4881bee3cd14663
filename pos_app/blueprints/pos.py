"""POS blueprint - JSON endpoints for the cart, its payment plan and checkout."""
from flask import Blueprint, request, session, jsonify, current_app

from pos_app.blueprints.metrics import record_checkout
from pos_app.exceptions import BusinessLogicError, NotFoundError
from pos_app.models import Cart, normalize_sale_type
from pos_app.models.advisory import EditResult
from pos_app.services import cart_service
from pos_app.services import stock_service
from pos_app.services.cart_totals_service import cart_totals
from pos_app.services.checkout_service import CheckoutOrchestrator, CheckoutState, validate_checkout
from pos_app.services.mode_policy import policy_for
from pos_app.services.purchase_match_service import describe_items, match_purchase_order
from pos_app.services.sales_api_client import get_sales_api

pos_bp = Blueprint('pos', __name__, url_prefix='/pos')

CART_SESSION_KEY = 'pos_cart'


# =====================================================
# SESSION CART
# =====================================================

def get_cart() -> Cart:
    """Get the cart of the current session."""
    return Cart.from_dict(session.get(CART_SESSION_KEY))


def save_cart(cart: Cart) -> None:
    """Store the cart in the session (Decimals as strings)."""
    session[CART_SESSION_KEY] = cart.to_dict()
    session.modified = True


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _require(payload: dict, key: str):
    if payload.get(key) is None:
        raise BusinessLogicError(f'"{key}" is required')
    return payload[key]


def _cart_state(cart: Cart) -> dict:
    return {
        'cart': cart.to_dict(),
        'totals': cart_totals(cart).to_dict(),
        'policy': policy_for(cart).to_dict(),
    }


def _apply(edit, *args) -> tuple:
    """
    Run a cart edit against the session cart and store the result.

    Malformed values (non-numeric amounts, bad ids) become a 400.
    """
    try:
        result: EditResult = edit(get_cart(), *args)
    except (ValueError, TypeError) as e:
        raise BusinessLogicError(str(e))

    save_cart(result.value)
    if result.advisory is not None:
        current_app.logger.info(f"[POS] {edit.__name__}: {result.advisory.reason.value}")

    body = _cart_state(result.value)
    body['applied'] = result.applied
    body['advisory'] = result.advisory.to_dict() if result.advisory else None
    return jsonify(body), 200


def _flag(value) -> bool:
    if isinstance(value, str):
        return value.lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def _load_stock():
    return stock_service.list_stock(
        get_sales_api(),
        cache=current_app.extensions.get('cache'),
        ttl=current_app.config.get('CACHE_STOCK_TTL'),
    )


# =====================================================
# STOCK
# =====================================================

@pos_bp.route('/stock', methods=['GET'])
def stock_list():
    """Stock grid, optionally filtered by ?q= (name, serial, brand, category)."""
    query = request.args.get('q', '')[:100]
    items = stock_service.filter_stock(_load_stock(), query)
    return jsonify({
        'items': [dict(stock.to_dict(), stock_status=stock.stock_status.value) for stock in items],
        'count': len(items),
    })


# =====================================================
# CART & LINES
# =====================================================

@pos_bp.route('/cart', methods=['GET'])
def cart_view():
    return jsonify(_cart_state(get_cart()))


@pos_bp.route('/cart', methods=['DELETE'])
def cart_clear():
    cart = cart_service.clear_cart()
    save_cart(cart)
    return jsonify(_cart_state(cart))


@pos_bp.route('/cart/lines', methods=['POST'])
def line_add():
    """Add one unit of a stock record to the cart."""
    try:
        stock_id = int(_require(_payload(), 'stock_id'))
    except (ValueError, TypeError):
        raise BusinessLogicError('"stock_id" must be an integer')

    stock = stock_service.find_stock(_load_stock(), stock_id)
    if stock is None:
        raise NotFoundError(f'Stock #{stock_id} not found')
    return _apply(cart_service.add_stock_item, stock)


@pos_bp.route('/cart/lines/<int:stock_id>', methods=['PATCH'])
def line_update(stock_id):
    """
    Edit one field of a line.

    Body: {"operation": "<one of LINE_OPERATIONS>", "value": ...}
    For "quantity" the value is a delta (+1 / -1).
    """
    payload = _payload()
    operation = _require(payload, 'operation')
    if operation not in cart_service.LINE_OPERATIONS:
        raise BusinessLogicError(f'Unknown line operation: {operation}')
    if operation != 'manual_subtotal':
        _require(payload, 'value')
    return _apply(cart_service.update_line, stock_id, operation, payload.get('value'))


@pos_bp.route('/cart/lines/<int:stock_id>', methods=['DELETE'])
def line_remove(stock_id):
    return _apply(cart_service.remove_line, stock_id)


# =====================================================
# SALE MODE
# =====================================================

@pos_bp.route('/cart/guest', methods=['PUT'])
def cart_guest():
    return _apply(cart_service.set_guest_mode, _flag(_payload().get('is_guest')))


@pos_bp.route('/cart/sale-type', methods=['PUT'])
def cart_sale_type():
    try:
        sale_type = normalize_sale_type(_require(_payload(), 'sale_type'))
    except ValueError as e:
        raise BusinessLogicError(str(e))
    return _apply(cart_service.set_sale_type, sale_type)


@pos_bp.route('/cart/customer', methods=['PUT'])
def cart_customer():
    return _apply(cart_service.set_customer, _payload().get('customer_id'))


@pos_bp.route('/cart/vehicle', methods=['PUT'])
def cart_vehicle():
    return _apply(cart_service.set_vehicle, _payload().get('vehicle_id'))


@pos_bp.route('/cart/advance', methods=['PUT'])
def cart_advance():
    return _apply(cart_service.set_use_advance, _flag(_payload().get('use_advance')))


# =====================================================
# PAYMENT PLAN
# =====================================================

@pos_bp.route('/cart/payment/account', methods=['PUT'])
def payment_account():
    payload = _payload()
    return _apply(cart_service.select_payment_account, payload.get('account_id'), payload.get('method'))


@pos_bp.route('/cart/payment/tendered', methods=['PUT'])
def payment_tendered():
    return _apply(cart_service.set_tendered_amount, _payload().get('amount'))


@pos_bp.route('/cart/payment/split', methods=['POST'])
def split_enable():
    return _apply(cart_service.enable_split_payment)


@pos_bp.route('/cart/payment/split', methods=['DELETE'])
def split_disable():
    return _apply(cart_service.disable_split_payment)


@pos_bp.route('/cart/payment/split/entries', methods=['POST'])
def split_add():
    payload = _payload()
    return _apply(
        cart_service.add_split_entry,
        payload.get('method'),
        _require(payload, 'account_id'),
        _require(payload, 'amount'),
    )


@pos_bp.route('/cart/payment/split/entries/<int:index>', methods=['DELETE'])
def split_remove(index):
    return _apply(cart_service.remove_split_entry, index)


# =====================================================
# CHECKOUT
# =====================================================

@pos_bp.route('/cart/validate', methods=['POST'])
def cart_validate():
    """Dry run of checkout validation; nothing is sent to the Sales API."""
    validation = validate_checkout(get_cart(), current_app.config.get('GUEST_CUSTOMER_ID'))
    return jsonify(validation.to_dict()), 200 if validation.ok else 422


@pos_bp.route('/checkout', methods=['POST'])
def checkout():
    """
    Create and process the sale for the session cart.

    200 when settled (the cart is cleared), 422 when validation failed
    (nothing was sent), 502 when the Sales API refused or was unreachable.
    """
    cache = current_app.extensions.get('cache')
    orchestrator = CheckoutOrchestrator(
        get_sales_api(),
        on_settled=lambda: stock_service.refresh_stock(cache),
        guest_customer_id=current_app.config.get('GUEST_CUSTOMER_ID'),
    )
    notes = (_payload().get('notes') or '').strip() or None
    result = orchestrator.checkout(get_cart(), notes=notes)
    record_checkout(result)
    save_cart(result.cart)

    if result.state == CheckoutState.SETTLED:
        current_app.logger.info(f"[POS] Checkout settled: sale {result.sale_id}")
        status = 200
    elif result.reason is not None and result.reason.is_remote:
        current_app.logger.error(f"[POS] Checkout failed remotely: {result.reason.value}")
        status = 502
    else:
        status = 422

    body = result.to_dict()
    body.update(_cart_state(result.cart))
    return jsonify(body), status


# =====================================================
# PURCHASE INVOICES
# =====================================================

@pos_bp.route('/purchase-match', methods=['POST'])
def purchase_match():
    """
    Best matching purchase order for a supplier invoice.

    Body: {"invoice_date": "...", "invoice_total": "...", "orders": [...]}
    """
    payload = _payload()
    try:
        order = match_purchase_order(
            _require(payload, 'invoice_date'),
            _require(payload, 'invoice_total'),
            payload.get('orders') or [],
        )
    except (ValueError, TypeError) as e:
        raise BusinessLogicError(str(e))

    return jsonify({
        'order_id': order.get('id') if order else None,
        'items_purchased': describe_items(order),
    })
