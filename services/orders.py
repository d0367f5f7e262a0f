import logging
import uuid
from datetime import datetime
from typing import Optional

from db import get_cursor
from models import Delivery, DeliveryStatus, Order, OrderStatus
from services.deliveries import TRANSITIONS, DeliveryService
from services.errors import BadRequest, Conflict, NotFound
from services.notifications import Notifier

logger = logging.getLogger(__name__)

# Order status implied by a delivery entering a status
DELIVERY_TO_ORDER_STATUS = {
    DeliveryStatus.IN_PROGRESS: OrderStatus.OUT_FOR_DELIVERY,
    DeliveryStatus.DELIVERED: OrderStatus.DELIVERED,
    DeliveryStatus.CANCELLED: OrderStatus.CANCELLED,
}

# Orders in these states are never moved by delivery events
FINAL_ORDER_STATUSES = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}

STATUS_MESSAGES = {
    OrderStatus.PENDING: "Your order has been placed.",
    OrderStatus.CONFIRMED: "The restaurant confirmed your order.",
    OrderStatus.PREPARING: "Your order is being prepared.",
    OrderStatus.OUT_FOR_DELIVERY: "Your order is on its way!",
    OrderStatus.DELIVERED: "Your order has been delivered. Enjoy!",
    OrderStatus.CANCELLED: "Your order has been cancelled.",
}


def parse_order_status(value: str) -> OrderStatus:
    try:
        return OrderStatus((value or "").upper())
    except ValueError:
        raise BadRequest(f"Invalid order status: {value}")


class OrderService:
    def __init__(self, deliveries: DeliveryService, notifier: Notifier):
        self.deliveries = deliveries
        self.notifier = notifier

    def _row_to_order(self, row) -> Optional[Order]:
        return Order(**dict(row)) if row else None

    def get(self, order_id: str) -> Order:
        with get_cursor() as cursor:
            cursor.execute("SELECT * FROM orders WHERE order_id = ?", (order_id,))
            order = self._row_to_order(cursor.fetchone())
        if not order:
            raise NotFound("Order not found")
        return order

    def find(self, customer_id: Optional[str] = None, limit: int = 20, offset: int = 0) -> list[Order]:
        query = "SELECT * FROM orders"
        params = []
        if customer_id:
            query += " WHERE customer_id = ?"
            params.append(customer_id)
        query += " ORDER BY created_at DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with get_cursor() as cursor:
            cursor.execute(query, params)
            return [self._row_to_order(row) for row in cursor.fetchall()]

    def _set_status(self, order_id: str, status: OrderStatus) -> Order:
        with get_cursor() as cursor:
            cursor.execute(
                "UPDATE orders SET status = ?, updated_at = ? WHERE order_id = ?",
                (status.value, datetime.now().isoformat(), order_id),
            )
            if cursor.rowcount == 0:
                raise NotFound("Order not found")
        return self.get(order_id)

    async def _notify_customer(self, order: Order):
        message = f"Order #{order.order_id[:8]}: {STATUS_MESSAGES[order.status]}"
        await self.notifier.notify(
            subject=f"Order update: {order.status.value.replace('_', ' ').title()}",
            message=message,
            user_id=order.customer_id,
            email=order.customer_email,
            phone=order.customer_phone,
            payload={
                "type": "order_status",
                "orderId": order.order_id,
                "status": order.status.value,
                "message": message,
            },
        )

    async def add_order(
        self,
        customer_id: str,
        restaurant_id: str,
        total: float,
        delivery_fee: float = 0.0,
        customer_email: Optional[str] = None,
        customer_phone: Optional[str] = None,
    ) -> tuple[Order, Delivery]:
        if not customer_id or not restaurant_id:
            raise BadRequest("customerId and restaurantId are required")
        if total < 0 or delivery_fee < 0:
            raise BadRequest("Order amounts cannot be negative")

        now = datetime.now()
        order = Order(
            order_id=str(uuid.uuid4()),
            customer_id=customer_id,
            restaurant_id=restaurant_id,
            customer_email=customer_email,
            customer_phone=customer_phone,
            status=OrderStatus.PENDING,
            total=total,
            delivery_fee=delivery_fee,
            created_at=now,
            updated_at=now,
        )
        with get_cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO orders
                (order_id, customer_id, restaurant_id, customer_email, customer_phone,
                 status, total, delivery_fee, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (order.order_id, customer_id, restaurant_id, customer_email, customer_phone,
                 order.status.value, total, delivery_fee, now.isoformat(), now.isoformat()),
            )

        delivery = self.deliveries.create(order.order_id)
        logger.info(f"Order {order.order_id} placed with delivery {delivery.delivery_id}")
        await self._notify_customer(order)
        return order, delivery

    async def update_status(self, order_id: str, status: str) -> Order:
        order = self._set_status(order_id, parse_order_status(status))
        logger.info(f"Order {order_id} status set to {order.status.value}")
        if order.status == OrderStatus.CANCELLED:
            await self._cancel_delivery(order_id)
        await self._notify_customer(order)
        return order

    async def _cancel_delivery(self, order_id: str):
        delivery = self.deliveries.get_for_order(order_id)
        if delivery is None or not TRANSITIONS[delivery.status]:
            return
        try:
            delivery = self.deliveries.cancel(delivery.delivery_id)
        except Conflict as exc:
            # Finished or cancelled between our read and the write
            logger.warning(f"Delivery for cancelled order {order_id} left as is: {exc.message}")
            return
        if delivery.driver_id:
            await self.notifier.push(delivery.driver_id, self._delivery_event(delivery))

    def _delivery_event(self, delivery: Delivery) -> dict:
        return {
            "type": "delivery_status",
            "deliveryId": delivery.delivery_id,
            "orderId": delivery.order_id,
            "status": delivery.status.value,
            "driverId": delivery.driver_id,
        }

    async def delivery_updated(self, delivery: Delivery) -> Optional[Order]:
        """Mirror a delivery transition onto its order and tell both parties."""
        event = self._delivery_event(delivery)
        if delivery.driver_id:
            await self.notifier.push(delivery.driver_id, event)

        try:
            order = self.get(delivery.order_id)
        except NotFound:
            # Deliveries can be created for orders owned elsewhere
            return None
        await self.notifier.push(order.customer_id, event)

        status = DELIVERY_TO_ORDER_STATUS.get(delivery.status)
        if status is None or status == order.status:
            return order
        if order.status in FINAL_ORDER_STATUSES:
            logger.warning(
                f"Order {order.order_id} is already {order.status.value}; "
                f"not mirroring delivery {delivery.status.value}"
            )
            return order
        order = self._set_status(order.order_id, status)
        await self._notify_customer(order)
        return order
