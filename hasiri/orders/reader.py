"""
Hasiri Store - Order Reader

Read-through access to orders and their line items on the user credential tier
"""

from collections import defaultdict
from typing import Dict, List, Any, Optional, Tuple

import structlog

from hasiri.shared.base_service import DatabaseManager, DatabaseError, user_claims


SELECT_ORDER_SQL = "SELECT * FROM orders WHERE id = %s"
SELECT_ORDER_ITEMS_SQL = "SELECT * FROM order_items WHERE order_id = %s ORDER BY created_at, id"
SELECT_ITEMS_FOR_ORDERS_SQL = "SELECT * FROM order_items WHERE order_id::text = ANY(%s) ORDER BY created_at, id"

# SQLSTATE class 22: the store rejected the identifier value itself
DATA_EXCEPTION_CLASS = '22'


class OrderReader:
    """Fetches orders with nested line items"""

    def __init__(self, db: DatabaseManager, logger: structlog.BoundLogger):
        self.db = db
        self.logger = logger.bind(component="OrderReader")

    def get_order(self, order_id: str, user_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Get a single order with its line items.

        Returns None when no order matches or the store rejects the identifier.
        Other store failures propagate as DatabaseError.
        """
        claims = user_claims(user_id)
        self.logger.debug("Fetching order", order_id=order_id, user_id=user_id)

        try:
            order = self.db.execute_query(SELECT_ORDER_SQL, (order_id,), fetch='one', claims=claims)
        except DatabaseError as e:
            if e.code and e.code.startswith(DATA_EXCEPTION_CLASS):
                self.logger.info("Order lookup rejected by store", order_id=order_id, error=e.message, code=e.code)
                return None
            raise

        if not order:
            self.logger.info("Order not found", order_id=order_id)
            return None

        order['order_items'] = self.db.execute_query(
            SELECT_ORDER_ITEMS_SQL,
            (order_id,),
            fetch='all',
            claims=claims
        )

        self.logger.debug("Order fetched", order_id=order_id, items_count=len(order['order_items']))
        return order

    def list_orders(self, user_id: Optional[str] = None, status: Optional[str] = None,
                    page: int = 1, limit: int = 10, include_all: bool = False) -> Tuple[List[Dict], int]:
        """List orders newest first with line items, returns (orders, total)"""
        claims = user_claims(user_id)
        where = " WHERE 1=1"
        params = []

        if not include_all:
            where += " AND user_id = %s"
            params.append(user_id)

        if status:
            where += " AND status = %s"
            params.append(status)

        count_row = self.db.execute_query(
            "SELECT count(*) AS total FROM orders" + where,
            tuple(params),
            fetch='one',
            claims=claims
        )
        total = count_row['total'] if count_row else 0

        offset = (page - 1) * limit
        orders = self.db.execute_query(
            "SELECT * FROM orders" + where + " ORDER BY created_at DESC LIMIT %s OFFSET %s",
            tuple(params + [limit, offset]),
            fetch='all',
            claims=claims
        )

        items_by_order = defaultdict(list)
        if orders:
            items = self.db.execute_query(
                SELECT_ITEMS_FOR_ORDERS_SQL,
                ([str(order['id']) for order in orders],),
                fetch='all',
                claims=claims
            )
            for item in items:
                items_by_order[str(item['order_id'])].append(item)

        for order in orders:
            order['order_items'] = items_by_order.get(str(order['id']), [])

        self.logger.debug(
            "Orders listed",
            count=len(orders),
            total=total,
            user_id=user_id,
            status=status,
            include_all=include_all
        )
        return orders, total
