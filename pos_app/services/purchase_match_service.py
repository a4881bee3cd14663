"""Purchase-order matching - which purchase order a supplier invoice most likely bills."""
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, Optional, Union

from pos_app.utils.number_format import parse_amount

logger = logging.getLogger(__name__)

MATCH_WINDOW_DAYS = 30
AMOUNT_WEIGHT = Decimal('1000')

DateLike = Union[date, datetime, str]


def _to_datetime(value: DateLike) -> datetime:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return datetime.fromisoformat(str(value).replace('Z', '+00:00')).replace(tzinfo=None)


def score_order(invoice_date: DateLike, invoice_total, order: Dict[str, Any]) -> Optional[Decimal]:
    """
    Score a purchase order against an invoice, or None when it cannot match.

    Orders placed 0 to 30 days before the invoice qualify; more recent orders
    and closer totals score higher.
    """
    elapsed = _to_datetime(invoice_date) - _to_datetime(order['order_date'])
    days = Decimal(str(elapsed.total_seconds())) / Decimal(86400)
    if days < 0 or days > MATCH_WINDOW_DAYS:
        return None

    amount_diff = abs(parse_amount(order.get('total') or 0) - parse_amount(invoice_total))
    score = (MATCH_WINDOW_DAYS - days) - amount_diff / AMOUNT_WEIGHT
    return score if score >= 0 else None


def match_purchase_order(invoice_date: DateLike, invoice_total,
                         orders: Iterable[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Best scoring purchase order for an invoice (first one wins a tie).

    Raises:
        ValueError: if the invoice date or total cannot be parsed.
    """
    invoice_date = _to_datetime(invoice_date)
    invoice_total = parse_amount(invoice_total)

    best = None
    best_score = None
    for order in orders:
        try:
            score = score_order(invoice_date, invoice_total, order)
        except (KeyError, ValueError) as e:
            logger.warning(f"[PURCHASE] Skipping order {order.get('id')}: {e}")
            continue
        if score is None:
            continue
        if best_score is None or score > best_score:
            best, best_score = order, score
    return best


def describe_items(order: Optional[Dict[str, Any]]) -> str:
    """'<qty> <unit> of <name>' for every ordered item, comma separated."""
    if not order:
        return ''
    parts = []
    for line in order.get('items') or []:
        item = line.get('item') or {}
        qty = int(parse_amount(line.get('quantity_ordered') or 0))
        unit = item.get('primary_unit') or 'units'
        name = item.get('name') or f"Item #{line.get('item_id')}"
        parts.append(f'{qty} {unit} of {name}')
    return ', '.join(parts)
