"""Stock service - cached stock listing for the POS item grid."""
import logging
from typing import List, Optional

from pos_app.models import StockSnapshot
from pos_app.services.cache_service import CacheService
from pos_app.services.sales_api_client import SalesApiClient

logger = logging.getLogger(__name__)

CACHE_MODULE = 'stock'


def _listing_key(per_page: int) -> str:
    """Query signature of the remote listing call."""
    return f"listing:per_page={per_page}:sort=item_name:asc"


def list_stock(client: SalesApiClient, cache: Optional[CacheService] = None,
               ttl: Optional[int] = None, per_page: int = 1000) -> List[StockSnapshot]:
    """
    Full stock listing as snapshots.

    The raw listing is memoized per query signature; a failed fetch is not
    cached so the next call retries.
    """
    def loader():
        return client.list_stock(per_page=per_page)

    if cache is not None:
        raw = cache.memoize(CACHE_MODULE, _listing_key(per_page), loader, ttl)
    else:
        raw = loader()
    return [StockSnapshot.from_api(entry) for entry in raw]


def filter_stock(items: List[StockSnapshot], query: str = '') -> List[StockSnapshot]:
    """Case-insensitive search over name, serial number, brand and category."""
    if not query:
        return list(items)
    needle = query.strip().lower()
    if not needle:
        return list(items)

    def matches(stock: StockSnapshot) -> bool:
        haystack = (stock.name, stock.serial_number, stock.brand, stock.category)
        return any(value and needle in value.lower() for value in haystack)

    return [stock for stock in items if matches(stock)]


def find_stock(items: List[StockSnapshot], stock_id: int) -> Optional[StockSnapshot]:
    for stock in items:
        if stock.stock_id == stock_id:
            return stock
    return None


def refresh_stock(cache: Optional[CacheService]) -> None:
    """Drop the cached listing so the next read reflects the settled sale."""
    if cache is None:
        return
    deleted = cache.invalidate_module(CACHE_MODULE)
    logger.info(f"[STOCK] Listing refreshed ({deleted} cached entries dropped)")
