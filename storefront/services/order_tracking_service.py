from datetime import datetime
from typing import Dict, List, Optional, Union

import structlog
from sqlalchemy.orm import Session

from storefront.core.exceptions import InsufficientStock, OrderNotFound
from storefront.db.session import transaction
from storefront.models.order import Order, OrderStatus
from storefront.models.order_status_history import OrderStatusHistory
from storefront.schemas.order_tracking import (
    OrderStatusHistoryResponse,
    OrderStatusUpdate,
    OrderTrackingResponse,
)
from storefront.services import inventory_service, notification_service
from storefront.services.order_service import find_order

logger = structlog.get_logger()


class OrderTrackingService:

    @staticmethod
    def order_quantities(order: Order) -> Dict[int, int]:
        requested: Dict[int, int] = {}
        for item in order.items:
            if item.variant_id is not None:
                requested[item.variant_id] = requested.get(item.variant_id, 0) + item.quantity
        return requested

    @staticmethod
    def _reserve_stock(db: Session, order: Order) -> None:
        """
        Take stock again for an order that released it on cancellation.

        Same two phases as placing an order: a read that reports every
        short variant, then guarded decrements. A decrement that affects no
        rows raises and the caller's transaction rolls the rest back.
        """
        requested = OrderTrackingService.order_quantities(order)
        shortfalls = inventory_service.check_availability(db, requested)
        if shortfalls:
            raise InsufficientStock([dict(entry, race_lost=False) for entry in shortfalls])

        for variant_id, quantity in requested.items():
            if inventory_service.conditional_decrement(db, variant_id, quantity):
                continue
            available = inventory_service.read_stock(db, variant_id) or 0
            logger.warning(
                "inventory_race_lost",
                order_number=order.order_number,
                variant_id=variant_id,
                requested=quantity,
                available=available,
            )
            raise InsufficientStock(
                [
                    {
                        "variant_id": variant_id,
                        "product_name": None,
                        "requested": quantity,
                        "available": available,
                        "shortfall": max(quantity - available, 0),
                        "race_lost": True,
                    }
                ]
            )

        order.stock_deducted = True
        logger.info("order_stock_reserved", order_id=order.id, order_number=order.order_number)

    @staticmethod
    def apply_status(
        db: Session,
        order: Order,
        new_status: OrderStatus,
        changed_by: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> str:
        """
        Move an order to `new_status` inside the caller's transaction.

        Any status may follow any other. Reaching shipped or delivered
        stamps the matching timestamp. Cancelling an order that still
        holds stock returns it to the ledger; moving a released order to
        any live status takes the stock back, raising InsufficientStock
        when it is no longer there.

        Returns:
            str: the previous status value
        """
        old_status = order.status.value

        if new_status == OrderStatus.CANCELLED:
            if order.stock_deducted:
                for variant_id, quantity in OrderTrackingService.order_quantities(order).items():
                    inventory_service.restock(db, variant_id, quantity)
                order.stock_deducted = False
                logger.info("order_stock_released", order_id=order.id, order_number=order.order_number)
        elif not order.stock_deducted:
            OrderTrackingService._reserve_stock(db, order)

        now = datetime.utcnow()
        order.status = new_status
        if new_status == OrderStatus.SHIPPED:
            order.shipped_at = now
        elif new_status == OrderStatus.DELIVERED:
            order.delivered_at = now

        db.add(
            OrderStatusHistory(
                order_id=order.id,
                old_status=old_status,
                new_status=new_status.value,
                changed_by=changed_by,
                notes=notes,
            )
        )
        return old_status

    @staticmethod
    def update_order_status(
        db: Session,
        identifier: Union[int, str],
        status_update: OrderStatusUpdate,
        changed_by: Optional[int] = None,
    ) -> Order:
        """Update order status with history tracking. Admin only."""
        with transaction(db):
            order = find_order(db, identifier)
            if not order:
                raise OrderNotFound()

            old_status = OrderTrackingService.apply_status(
                db, order, status_update.status, changed_by, status_update.notes
            )
            if status_update.tracking_number:
                order.tracking_number = status_update.tracking_number
            if status_update.carrier_name:
                order.carrier_name = status_update.carrier_name
            if status_update.estimated_delivery_date:
                order.estimated_delivery_date = status_update.estimated_delivery_date

        db.refresh(order)
        logger.info(
            "order_status_updated",
            order_id=order.id,
            old_status=old_status,
            new_status=order.status.value,
            changed_by=changed_by,
        )
        if old_status != order.status.value:
            notification_service.dispatch_status_changed(order, old_status)
        return order

    @staticmethod
    def get_order_tracking(db: Session, identifier: Union[int, str]) -> OrderTrackingResponse:
        order = find_order(db, identifier)
        if not order:
            raise OrderNotFound()
        return OrderTrackingService._tracking_response(order)

    @staticmethod
    def find_orders_by_phone(db: Session, phone: str) -> List[Order]:
        return (
            db.query(Order)
            .filter(Order.customer_phone == phone.strip())
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )

    @staticmethod
    def _tracking_response(order: Order) -> OrderTrackingResponse:
        return OrderTrackingResponse(
            order_id=order.id,
            order_number=order.order_number,
            current_status=order.status,
            tracking_number=order.tracking_number,
            carrier_name=order.carrier_name,
            estimated_delivery_date=order.estimated_delivery_date,
            shipped_at=order.shipped_at,
            delivered_at=order.delivered_at,
            status_history=[
                OrderStatusHistoryResponse.model_validate(entry) for entry in order.status_history
            ],
        )
