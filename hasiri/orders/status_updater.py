"""
Hasiri Store - Order Status Updater

Best-effort order status change over an ordered chain of update strategies
against the service credential tier:

    primary           UPDATE ... RETURNING * on the orders table
    stored_procedure  the admin status procedure, run when primary raised a store error
    raw               the direct update procedure, opt-in, run when the procedure raised too

Tiers run strictly in order and each one only after the previous tier failed.
A primary update matching no row is not a store error and ends the chain.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import structlog

from hasiri.shared.base_service import DatabaseManager, DatabaseError, ServiceMetrics, ValidationError


UPDATE_ORDER_STATUS_SQL = "UPDATE orders SET status = %s, updated_at = %s WHERE id = %s RETURNING *"


class UpdateStrategy(Enum):
    """Order status update strategies in attempt order"""
    PRIMARY = "primary"
    STORED_PROCEDURE = "stored_procedure"
    RAW = "raw"


@dataclass(frozen=True)
class UpdateAttempt:
    strategy: UpdateStrategy
    succeeded: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'strategy': self.strategy.value, 'succeeded': self.succeeded, 'error': self.error}


@dataclass(frozen=True)
class UpdateResult:
    """Outcome of one status change request"""
    success: bool
    order_id: str
    status: str
    data: Any = None
    found: bool = True
    error: Optional[str] = None
    strategy: Optional[UpdateStrategy] = None
    attempts: Tuple[UpdateAttempt, ...] = ()

    @property
    def used_fallback(self) -> bool:
        return self.success and self.strategy is not UpdateStrategy.PRIMARY


class OrderStatusUpdater:
    """Runs the status update fallback chain and returns a typed result"""

    def __init__(self, db: DatabaseManager, logger: structlog.BoundLogger,
                 metrics: Optional[ServiceMetrics] = None,
                 procedure_name: str = 'admin_update_order_status',
                 raw_procedure_name: str = 'direct_update_order',
                 raw_fallback_enabled: bool = False,
                 log_payloads: bool = False,
                 clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.logger = logger.bind(component="OrderStatusUpdater")
        self.metrics = metrics
        self.procedure_name = procedure_name
        self.raw_procedure_name = raw_procedure_name
        self.raw_fallback_enabled = raw_fallback_enabled
        self.log_payloads = log_payloads
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def update_status(self, order_id: str, status: str) -> UpdateResult:
        """Change an order's status, falling back tier by tier on store errors"""
        if not isinstance(order_id, str) or not order_id.strip():
            raise ValidationError("Order ID is required")
        if not isinstance(status, str) or not status.strip():
            raise ValidationError("Status is required")

        updated_at = self._clock()
        attempts: List[UpdateAttempt] = []
        last_error = None

        for strategy in self._strategies():
            self.logger.debug(
                "Attempting order status update",
                order_id=order_id,
                status=status,
                strategy=strategy.value,
                updated_at=updated_at.isoformat() if strategy is UpdateStrategy.PRIMARY else None
            )

            try:
                data, found = self._attempt(strategy, order_id, status, updated_at)
            except DatabaseError as e:
                last_error = f"{strategy.value} update failed: {e.message}"
                attempts.append(UpdateAttempt(strategy, False, e.message))
                self._record(strategy, 'failed')
                self.logger.warning(
                    "Order status update attempt failed",
                    order_id=order_id,
                    status=status,
                    strategy=strategy.value,
                    error=e.message,
                    code=e.code
                )
                continue

            attempts.append(UpdateAttempt(strategy, True))
            self._record(strategy, 'success' if found else 'not_found')
            self.logger.debug(
                "Order status update attempt succeeded",
                order_id=order_id,
                status=status,
                strategy=strategy.value,
                found=found,
                **self._payload(data)
            )
            result = UpdateResult(
                success=True,
                order_id=order_id,
                status=status,
                data=data,
                found=found,
                strategy=strategy,
                attempts=tuple(attempts)
            )
            if result.used_fallback:
                self.logger.info(
                    "Order status updated via fallback",
                    order_id=order_id,
                    status=status,
                    strategy=strategy.value,
                    failed_attempts=len(attempts) - 1
                )
            return result

        self.logger.error(
            "All order status update attempts failed",
            order_id=order_id,
            status=status,
            error=last_error,
            attempts=[attempt.strategy.value for attempt in attempts]
        )
        return UpdateResult(
            success=False,
            order_id=order_id,
            status=status,
            error=last_error,
            attempts=tuple(attempts)
        )

    def _strategies(self) -> List[UpdateStrategy]:
        strategies = [UpdateStrategy.PRIMARY, UpdateStrategy.STORED_PROCEDURE]
        if self.raw_fallback_enabled:
            strategies.append(UpdateStrategy.RAW)
        return strategies

    def _attempt(self, strategy: UpdateStrategy, order_id: str, status: str,
                 updated_at: datetime) -> Tuple[Any, bool]:
        if strategy is UpdateStrategy.PRIMARY:
            rows = self.db.execute_query(
                UPDATE_ORDER_STATUS_SQL,
                (status, updated_at, order_id),
                fetch='all'
            )
            if not rows:
                return None, False
            return rows[0], True

        if strategy is UpdateStrategy.STORED_PROCEDURE:
            data = self.db.call_procedure(
                self.procedure_name,
                {'p_order_id': order_id, 'p_status': status}
            )
            return data, True

        data = self.db.call_procedure(
            self.raw_procedure_name,
            {'order_id': order_id, 'new_status': status}
        )
        return data, True

    def _payload(self, data: Any) -> Dict[str, Any]:
        if self.log_payloads:
            return {'response': data}
        if isinstance(data, list):
            return {'rows': len(data)}
        return {'rows': 0 if data is None else 1}

    def _record(self, strategy: UpdateStrategy, outcome: str):
        if self.metrics is not None:
            self.metrics.record_status_update_attempt(strategy.value, outcome)
