"""Sales API client - remote stock listing, sale creation and sale processing."""
import logging
from typing import Dict, Any, Optional, List

import requests
from flask import Flask, current_app

from pos_app.exceptions import SalesApiError

logger = logging.getLogger(__name__)


class SalesApiClient:
    """Client for the back-office Sales API used by the POS screen."""

    def __init__(self, base_url: str, token: Optional[str] = None, timeout: int = 10,
                 session: Optional[requests.Session] = None):
        """
        Initialize the Sales API client.

        Args:
            base_url: API root, e.g. https://erp.example.com/api
            token: Optional bearer token
            timeout: Connect/read timeout in seconds for every call
            session: Optional requests.Session (connection pooling, tests)
        """
        if not base_url:
            raise ValueError("SALES_API_BASE_URL is required")

        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.http = session or requests.Session()
        self.headers = {
            'Accept': 'application/json',
            'Content-Type': 'application/json',
        }
        if token:
            self.headers['Authorization'] = f'Bearer {token}'

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None,
                 params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = self._url(path)
        try:
            response = self.http.request(
                method, url, json=payload, params=params,
                headers=self.headers, timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.error(f"[SALES-API] {method} {path} failed: {e}")
            raise SalesApiError(f'Could not reach the sales server: {e}') from e

        data = self._decode(response)

        if not response.ok:
            message = f'API request failed with status {response.status_code}'
            errors = {}
            if isinstance(data, dict):
                message = data.get('message') or data.get('error') or message
                errors = data.get('errors') or {}
            logger.error(f"[SALES-API] {method} {path} -> {response.status_code}: {message}")
            raise SalesApiError(message, status=response.status_code, errors=errors, data=data)

        return data if isinstance(data, dict) else {'data': data}

    @staticmethod
    def _decode(response: requests.Response):
        text = response.text
        if not text:
            return None
        try:
            return response.json()
        except ValueError:
            return text

    def list_stock(self, search: str = '', per_page: int = 1000) -> List[Dict[str, Any]]:
        """
        Fetch stocked items sorted by item name.

        Entries without an item reference are dropped.
        """
        params = {'per_page': per_page, 'sort_by': 'item_name', 'sort_order': 'asc'}
        if search:
            params['search'] = search

        data = self._request('GET', '/stock', params=params)
        items = [entry for entry in data.get('data') or [] if entry.get('item')]
        logger.info(f"[SALES-API] Stock listing: {len(items)} items")
        return items

    def create_sale(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Create a draft sale.

        Returns:
            Dict with at least `id` and `sale_number`
        """
        logger.info(f"[SALES-API] Creating {payload.get('sale_type')} sale "
                    f"({len(payload.get('items') or [])} items, guest={payload.get('is_guest')})")
        data = self._request('POST', '/sales', payload)
        sale = data.get('sale') if isinstance(data.get('sale'), dict) else data
        if sale.get('id') is None:
            raise SalesApiError('The sales server did not return a sale identifier.', data=data)
        logger.info(f"[SALES-API] Sale created: {sale.get('id')} ({sale.get('sale_number')})")
        return sale

    def process_sale(self, sale_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Process (pay and complete) a previously created sale."""
        logger.info(f"[SALES-API] Processing sale {sale_id}: amount_paid={payload.get('amount_paid')}")
        data = self._request('POST', f'/sales/{sale_id}/process', payload)
        logger.info(f"[SALES-API] Sale processed: {sale_id}")
        return data


def init_sales_api(app: Flask) -> None:
    """Create the Sales API client for the app."""
    if not hasattr(app, 'extensions'):
        app.extensions = {}
    app.extensions['sales_api'] = SalesApiClient(
        base_url=app.config.get('SALES_API_BASE_URL'),
        token=app.config.get('SALES_API_TOKEN'),
        timeout=app.config.get('SALES_API_TIMEOUT', 10),
    )


def get_sales_api() -> SalesApiClient:
    """Get the Sales API client of the current app."""
    client = current_app.extensions.get('sales_api')
    if client is None:
        raise RuntimeError("Sales API not initialized.")
    return client
