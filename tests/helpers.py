"""Test doubles for the order store."""

import threading
from datetime import datetime, timezone
from unittest.mock import MagicMock

from hasiri.shared.base_service import DatabaseError
from hasiri.orders.reader import SELECT_ORDER_SQL, SELECT_ORDER_ITEMS_SQL
from hasiri.orders.status_updater import UPDATE_ORDER_STATUS_SQL


ORDER_ID = "0b6f3c1e-5d8a-4f5e-9a61-2f3b8c7d9e10"
EARLIER = datetime(2025, 3, 1, 9, 30, tzinfo=timezone.utc)


class FakeStore:
    """In-memory stand-in for the store behind both credential tiers.

    Dispatches on the SQL constants the order components use. Failures are
    injected per operation: 'select', 'update', 'health' or a procedure name.
    """

    def __init__(self):
        self.orders = {}
        self.items = {}
        self.failures = {}
        self.calls = []
        self.writes = []
        self._lock = threading.Lock()

    def add_order(self, order_id, status='pending', items=None):
        self.orders[order_id] = {
            'id': order_id,
            'user_id': 'user-1',
            'status': status,
            'payment_method': 'upi',
            'total': 1250.0,
            'created_at': EARLIER,
            'updated_at': EARLIER,
        }
        self.items[order_id] = items or []

    def fail(self, operation, message='permission denied for table orders', code='42501'):
        self.failures[operation] = DatabaseError(message, code)

    def execute_query(self, query, params=None, fetch=None, claims=None, operation='query'):
        with self._lock:
            self.calls.append(('query', query, params))

            if query == UPDATE_ORDER_STATUS_SQL:
                self._raise_if_failing('update')
                status, updated_at, order_id = params
                return self._write(order_id, status, updated_at)

            if query == SELECT_ORDER_SQL:
                self._raise_if_failing('select')
                order = self.orders.get(params[0])
                return dict(order) if order else None

            if query == SELECT_ORDER_ITEMS_SQL:
                return [dict(item) for item in self.items.get(params[0], [])]

            if query == "SELECT 1":
                self._raise_if_failing('health')
                return {'?column?': 1}

            raise AssertionError(f"unexpected query: {query}")

    def call_procedure(self, name, params=None, claims=None):
        with self._lock:
            self.calls.append(('procedure', name, params))
            self._raise_if_failing(name)

            order_id = params.get('p_order_id', params.get('order_id'))
            status = params.get('p_status', params.get('new_status'))
            rows = self._write(order_id, status, datetime.now(timezone.utc))
            return rows[0] if rows else None

    def _write(self, order_id, status, updated_at):
        order = self.orders.get(order_id)
        if order is None:
            return []
        order.update(status=status, updated_at=updated_at)
        self.writes.append(status)
        return [dict(order)]

    def _raise_if_failing(self, operation):
        if operation in self.failures:
            raise self.failures[operation]


def make_logger():
    logger = MagicMock()
    logger.bind.return_value = logger
    return logger
