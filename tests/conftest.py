import pytest
from decimal import Decimal

from pos_app import create_app
from pos_app.models import StockSnapshot, CartLine, Cart


class FakeSalesApi:
    """In-memory stand-in for SalesApiClient used by the Flask tests."""

    def __init__(self, stock=None):
        self.stock = list(stock or [])
        self.created = []
        self.processed = []
        self.create_error = None
        self.process_error = None
        self.next_id = 101

    def list_stock(self, search='', per_page=1000):
        return list(self.stock)

    def create_sale(self, payload):
        if self.create_error is not None:
            raise self.create_error
        self.created.append(payload)
        sale = {'id': self.next_id, 'sale_number': f'SL-{self.next_id}'}
        self.next_id += 1
        return sale

    def process_sale(self, sale_id, payload):
        if self.process_error is not None:
            raise self.process_error
        self.processed.append((sale_id, payload))
        return {'id': sale_id, 'status': 'completed'}


def stock_entry(stock_id, name, price, on_hand=10, cost=None, **item):
    """Stock listing entry shaped like the Sales API response."""
    return {
        'id': stock_id,
        'item_id': stock_id + 1000,
        'quantity_on_hand': on_hand,
        'reorder_level': 2,
        'item': dict({
            'id': stock_id + 1000,
            'name': name,
            'selling_price': str(price),
            'last_purchase_price': None if cost is None else str(cost),
            'primary_unit': 'units',
        }, **item),
    }


@pytest.fixture
def stock_entries():
    return [
        stock_entry(1, 'Engine Oil 5L', '1200.00', on_hand=10, cost='900.00', brand='Shell', category={'name': 'Lubricants'}),
        stock_entry(2, 'Brake Pad Set', '500.00', on_hand=3, cost='350.00', serial_number='BP-2231'),
        stock_entry(3, 'Air Filter', '1000.00', on_hand=0, cost='700.00'),
    ]


@pytest.fixture
def sales_api(stock_entries):
    return FakeSalesApi(stock_entries)


@pytest.fixture
def app(sales_api):
    """Create application instance for testing."""
    app = create_app('config.TestConfig')
    app.extensions['sales_api'] = sales_api
    return app


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def oil():
    return StockSnapshot(
        stock_id=1, item_id=1001, name='Engine Oil 5L', quantity_on_hand=10,
        selling_price=Decimal('1200.00'), reorder_level=2,
        last_purchase_price=Decimal('900.00'),
    )


@pytest.fixture
def brake_pads():
    return StockSnapshot(
        stock_id=2, item_id=1002, name='Brake Pad Set', quantity_on_hand=3,
        selling_price=Decimal('500.00'), reorder_level=2,
        last_purchase_price=Decimal('350.00'),
    )


@pytest.fixture
def oil_line(oil):
    return CartLine.for_stock(oil)


@pytest.fixture
def customer_cart(oil):
    """Registered walk-in customer with one line and a cash account selected."""
    cart = Cart(lines=(CartLine.for_stock(oil),), customer_id=7)
    return cart.evolve(payment=cart.payment.evolve(account_id=3))
