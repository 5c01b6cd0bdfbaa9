"""
Hasiri Store - Order Service
Back-office API

Serves order reads and status updates for the storefront admin
"""

import os
import math
from typing import Dict, Optional, Tuple

from flask import request
from flask_cors import CORS

from hasiri.shared.base_service import (
    BaseService,
    Config,
    DatabaseManager,
    NotFoundError,
    ValidationError,
    error_response,
    format_order_status_message,
    success_response,
)
from hasiri.orders.reader import OrderReader
from hasiri.orders.status_updater import OrderStatusUpdater, UpdateResult


DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


class OrderService(BaseService):
    """Order Service for reading orders and updating their status"""

    def __init__(self, config: Optional[Config] = None, db: Optional[DatabaseManager] = None,
                 service_db: Optional[DatabaseManager] = None):
        super().__init__('order-service', config=config, db=db, service_db=service_db)

        # Enable CORS for the admin UI
        CORS(self.app, origins=self.config.CORS_ORIGINS)

        self.api_logger = self.logger.bind(component="OrdersAPI")
        self.reader = OrderReader(self.db, self.logger)
        self.updater = OrderStatusUpdater(
            self.service_db,
            self.logger,
            metrics=self.metrics,
            procedure_name=self.config.ORDER_STATUS_PROCEDURE,
            raw_procedure_name=self.config.ORDER_RAW_PROCEDURE,
            raw_fallback_enabled=self.config.ORDER_RAW_FALLBACK_ENABLED,
            log_payloads=self.config.LOG_PAYLOADS
        )

        # Setup routes
        self.setup_routes()

        self.logger.info(
            "Order Service initialized",
            raw_fallback_enabled=self.config.ORDER_RAW_FALLBACK_ENABLED,
            log_payloads=self.config.LOG_PAYLOADS
        )

    def setup_routes(self):
        """Setup API routes for order service"""

        @self.app.route('/api/orders', methods=['GET'])
        def list_orders():
            """List orders with pagination and filtering"""
            user_id = request.headers.get('X-User-Id')
            include_all = request.args.get('admin') == 'true'
            status = request.args.get('status')

            try:
                page, limit = parse_pagination(request.args)

                if not include_all and not user_id:
                    self.api_logger.warning("User ID not found in request")
                    return error_response("User ID not found in request", 401)

                orders, total = self.reader.list_orders(
                    user_id=user_id,
                    status=status,
                    page=page,
                    limit=limit,
                    include_all=include_all
                )

                self.api_logger.info(
                    "Orders listed",
                    count=len(orders),
                    total=total,
                    user_id=user_id,
                    status=status,
                    include_all=include_all
                )

                return success_response(orders, "Orders retrieved successfully", meta={
                    'page': page,
                    'limit': limit,
                    'total': total,
                    'totalPages': math.ceil(total / limit) if total else 0
                })

            except ValidationError as e:
                self.api_logger.warning("Order listing validation failed", error=str(e))
                return error_response(str(e), 400)

            except Exception as e:
                self.api_logger.error("Failed to list orders", error=str(e))
                return error_response(f"Failed to retrieve orders: {e}", 500)

        @self.app.route('/api/orders/<order_id>', methods=['GET'])
        def get_order(order_id: str):
            """Get order by ID with its line items"""
            self.api_logger.debug("GET request for order", order_id=order_id)

            try:
                order = self.reader.get_order(order_id, user_id=request.headers.get('X-User-Id'))

                if not order:
                    raise NotFoundError("Order not found")

                self.metrics.record_business_event('order_retrieved', 'success')
                self.api_logger.debug("Order retrieved", order_id=order_id)

                return success_response(order, "Order retrieved successfully")

            except NotFoundError as e:
                self.metrics.record_business_event('order_retrieved', 'not_found')
                self.api_logger.info("Order not found", order_id=order_id)
                return error_response(str(e), 404)

            except Exception as e:
                self.api_logger.error("Failed to retrieve order", order_id=order_id, error=str(e))
                self.metrics.record_business_event('order_retrieved', 'failed')

                return error_response(f"Failed to retrieve order: {e}", 500)

        @self.app.route('/api/orders/<order_id>', methods=['PUT'])
        def update_order(order_id: str):
            """Update order status"""
            self.api_logger.debug("PUT request received", order_id=order_id)

            try:
                data = request.get_json(force=True, silent=True)
                if not isinstance(data, dict):
                    raise ValidationError("Invalid request body")

                new_status = data.get('status')
                if not isinstance(new_status, str) or not new_status.strip():
                    raise ValidationError("Status is required")

                self.api_logger.debug("Updating order status", order_id=order_id, status=new_status)
                result = self.updater.update_status(order_id, new_status)
                return self.update_response(result)

            except ValidationError as e:
                self.api_logger.warning("Order status update validation failed", order_id=order_id, error=str(e))
                return error_response(str(e), 400)

            except NotFoundError as e:
                self.metrics.record_business_event('order_status_updated', 'not_found')
                self.api_logger.info("Order not found for status update", order_id=order_id)
                return error_response(str(e), 404)

            except Exception as e:
                self.api_logger.error("Failed to update order", order_id=order_id, error=str(e))
                self.metrics.record_business_event('order_status_updated', 'failed')

                return error_response(f"Failed to update order: {e}", 500)

    def update_response(self, result: UpdateResult):
        """Map an update result to its HTTP response, raising NotFoundError when no order matched"""
        if not result.success:
            self.metrics.record_business_event('order_status_updated', 'failed')
            return error_response(
                f"Failed to update order: {result.error}",
                502,
                data={
                    'id': result.order_id,
                    'status': result.status,
                    'updated': False,
                    'attempts': [attempt.to_dict() for attempt in result.attempts]
                }
            )

        if not result.found:
            raise NotFoundError("Order not found")

        self.metrics.record_business_event('order_status_updated', 'success')
        self.api_logger.info(
            format_order_status_message(result.order_id, result.status, result.strategy.value),
            order_id=result.order_id,
            status=result.status,
            strategy=result.strategy.value
        )

        return success_response({
            'id': result.order_id,
            'status': result.status,
            'updated': True,
            'strategy': result.strategy.value,
            'order': result.data
        }, "Order updated successfully")


def parse_pagination(args: Dict[str, str]) -> Tuple[int, int]:
    """Read page/limit query params"""
    try:
        page = int(args.get('page', '1'))
        limit = int(args.get('limit', str(DEFAULT_PAGE_SIZE)))
    except (TypeError, ValueError):
        raise ValidationError("page and limit must be integers")

    if page < 1 or limit < 1:
        raise ValidationError("page and limit must be positive")

    return page, min(limit, MAX_PAGE_SIZE)


# ========================================
# Application Entry Point
# ========================================

def main():
    try:
        service = OrderService()
        service.logger.info("📦 Starting Order Service")

        debug_mode = os.getenv('FLASK_DEBUG', 'false').lower() == 'true'
        service.run(debug=debug_mode)

    except KeyboardInterrupt:
        print("\n🛑 Order Service stopped by user")


if __name__ == '__main__':
    main()
