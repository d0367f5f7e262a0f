"""
Delivery Service

Tracks one delivery per order through an explicit state machine:

    PENDING -> ACCEPTED -> IN_PROGRESS -> DELIVERED
        \\          \\            \\
         +----------+------------+--> CANCELLED

Every write is a compare-and-set on the status it was read with, so two
drivers racing to accept the same delivery cannot both win.
"""
import logging
import sqlite3
import uuid
from datetime import datetime
from typing import Optional

from db import get_cursor
from models import Delivery, DeliveryStatus
from services.errors import BadRequest, Conflict, NotFound

logger = logging.getLogger(__name__)


TRANSITIONS: dict[DeliveryStatus, set[DeliveryStatus]] = {
    DeliveryStatus.PENDING: {DeliveryStatus.ACCEPTED, DeliveryStatus.CANCELLED},
    DeliveryStatus.ACCEPTED: {DeliveryStatus.IN_PROGRESS, DeliveryStatus.CANCELLED},
    DeliveryStatus.IN_PROGRESS: {DeliveryStatus.DELIVERED, DeliveryStatus.CANCELLED},
    DeliveryStatus.DELIVERED: set(),
    DeliveryStatus.CANCELLED: set(),
}

# Column stamped when a delivery enters the status
TIMESTAMP_COLUMNS = {
    DeliveryStatus.ACCEPTED: "accepted_at",
    DeliveryStatus.IN_PROGRESS: "picked_up_at",
    DeliveryStatus.DELIVERED: "delivered_at",
    DeliveryStatus.CANCELLED: "cancelled_at",
}


class IllegalTransitionError(Conflict):
    def __init__(self, current: DeliveryStatus, requested: DeliveryStatus):
        super().__init__(f"Cannot move delivery from {current.value} to {requested.value}")
        self.current = current
        self.requested = requested


class DeliveryConflictError(Conflict):
    pass


def can_transition(current: DeliveryStatus, requested: DeliveryStatus) -> bool:
    return requested in TRANSITIONS[current]


def parse_status(value: str) -> DeliveryStatus:
    try:
        return DeliveryStatus((value or "").upper())
    except ValueError:
        raise BadRequest(f"Invalid delivery status: {value}")


class DeliveryService:
    def _row_to_delivery(self, row) -> Optional[Delivery]:
        return Delivery(**dict(row)) if row else None

    def create(self, order_id: str) -> Delivery:
        if not order_id:
            raise BadRequest("Order ID is required")
        now = datetime.now()
        delivery = Delivery(
            delivery_id=str(uuid.uuid4()),
            order_id=order_id,
            status=DeliveryStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        try:
            with get_cursor() as cursor:
                cursor.execute(
                    """
                    INSERT INTO deliveries (delivery_id, order_id, status, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (delivery.delivery_id, order_id, delivery.status.value,
                     now.isoformat(), now.isoformat()),
                )
        except sqlite3.IntegrityError:
            raise Conflict(f"Order {order_id} already has a delivery")
        logger.info(f"Delivery {delivery.delivery_id} created for order {order_id}")
        return delivery

    def get(self, delivery_id: str) -> Delivery:
        with get_cursor() as cursor:
            cursor.execute("SELECT * FROM deliveries WHERE delivery_id = ?", (delivery_id,))
            delivery = self._row_to_delivery(cursor.fetchone())
        if not delivery:
            raise NotFound("Delivery not found")
        return delivery

    def get_for_order(self, order_id: str) -> Optional[Delivery]:
        with get_cursor() as cursor:
            cursor.execute("SELECT * FROM deliveries WHERE order_id = ?", (order_id,))
            return self._row_to_delivery(cursor.fetchone())

    def find(
        self,
        status: Optional[DeliveryStatus] = None,
        driver_id: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Delivery]:
        query = "SELECT * FROM deliveries WHERE 1=1"
        params = []

        if status:
            query += " AND status = ?"
            params.append(status.value)
        if driver_id:
            query += " AND driver_id = ?"
            params.append(driver_id)

        query += " ORDER BY created_at DESC LIMIT ? OFFSET ?"
        params.extend([limit, offset])

        with get_cursor() as cursor:
            cursor.execute(query, params)
            return [self._row_to_delivery(row) for row in cursor.fetchall()]

    def list_for_driver(self, driver_id: str) -> list[Delivery]:
        return self.find(driver_id=driver_id, limit=500)

    def transition(
        self,
        delivery_id: str,
        requested: DeliveryStatus,
        driver_id: Optional[str] = None,
    ) -> Delivery:
        current = self.get(delivery_id)

        if requested == DeliveryStatus.ACCEPTED:
            if not driver_id:
                raise BadRequest("Driver ID is required to accept a delivery")
            if current.status == DeliveryStatus.ACCEPTED:
                if current.driver_id == driver_id:
                    return current
                raise DeliveryConflictError("Delivery already accepted by another driver")
        elif driver_id and current.driver_id and driver_id != current.driver_id:
            raise DeliveryConflictError("Delivery is assigned to another driver")

        if not can_transition(current.status, requested):
            raise IllegalTransitionError(current.status, requested)

        now = datetime.now().isoformat()
        assignments = ["status = ?", f"{TIMESTAMP_COLUMNS[requested]} = ?", "updated_at = ?"]
        params = [requested.value, now, now]
        if requested == DeliveryStatus.ACCEPTED:
            assignments.append("driver_id = ?")
            params.append(driver_id)

        with get_cursor() as cursor:
            cursor.execute(
                f"UPDATE deliveries SET {', '.join(assignments)} "
                "WHERE delivery_id = ? AND status = ?",
                (*params, delivery_id, current.status.value),
            )
            updated = cursor.rowcount

        if updated == 0:
            # Someone else moved the delivery after we read it
            latest = self.get(delivery_id)
            logger.warning(
                f"Delivery {delivery_id} changed concurrently "
                f"({current.status.value} -> {latest.status.value})"
            )
            raise DeliveryConflictError(
                f"Delivery was updated concurrently and is now {latest.status.value}"
            )

        logger.info(f"Delivery {delivery_id}: {current.status.value} -> {requested.value}")
        return self.get(delivery_id)

    def accept(self, delivery_id: str, driver_id: str) -> Delivery:
        return self.transition(delivery_id, DeliveryStatus.ACCEPTED, driver_id)

    def cancel(self, delivery_id: str) -> Delivery:
        return self.transition(delivery_id, DeliveryStatus.CANCELLED)
