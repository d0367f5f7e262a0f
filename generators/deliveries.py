import uuid
import random
from datetime import timedelta
from dataclasses import dataclass

from .base import BaseGenerator
from models import Order, Delivery, DeliveryStatus, OrderStatus, UserType
from services.deliveries import TIMESTAMP_COLUMNS, can_transition
from services.orders import DELIVERY_TO_ORDER_STATUS
from db import get_cursor

ACCOUNT_IDS = "SELECT user_id FROM users WHERE user_type = ?"


@dataclass
class OrderWithDelivery:
    order: Order
    delivery: Delivery


class DeliveryGenerator(BaseGenerator):
    """Generates orders for existing customers, each with a delivery walked along a legal path."""

    # Where the delivery ends up; paths are replayed through the state machine
    OUTCOMES = [
        ([DeliveryStatus.ACCEPTED, DeliveryStatus.IN_PROGRESS, DeliveryStatus.DELIVERED], 0.70),
        ([DeliveryStatus.ACCEPTED, DeliveryStatus.IN_PROGRESS], 0.06),
        ([DeliveryStatus.ACCEPTED], 0.05),
        ([], 0.05),
        ([DeliveryStatus.CANCELLED], 0.06),
        ([DeliveryStatus.ACCEPTED, DeliveryStatus.CANCELLED], 0.05),
        ([DeliveryStatus.ACCEPTED, DeliveryStatus.IN_PROGRESS, DeliveryStatus.CANCELLED], 0.03),
    ]

    HOUR_WEIGHTS = [
        0.01, 0.01, 0.01, 0.01, 0.01, 0.01,
        0.02, 0.03, 0.04, 0.04, 0.05, 0.08,
        0.10, 0.08, 0.05, 0.04, 0.05, 0.08,
        0.10, 0.09, 0.06, 0.04, 0.02, 0.02,
    ]

    # Minutes spent before entering each status
    STEP_MINUTES = {
        DeliveryStatus.ACCEPTED: (1, 12),
        DeliveryStatus.IN_PROGRESS: (10, 35),
        DeliveryStatus.DELIVERED: (8, 40),
        DeliveryStatus.CANCELLED: (2, 20),
    }

    BASE_DELIVERY_FEE = 2.49

    def __init__(self, seed: int | None = 42):
        super().__init__(seed)
        self._customers = []
        self._restaurant_ids = []
        self._driver_ids = []

    def _load_dependencies(self):
        """Load existing accounts from database."""
        with get_cursor() as cursor:
            cursor.execute(
                "SELECT user_id, email FROM users WHERE user_type = ?",
                (UserType.CUSTOMER.value,)
            )
            self._customers = [(row[0], row[1]) for row in cursor.fetchall()]
        self._restaurant_ids = self.fetch_column(ACCOUNT_IDS, (UserType.RESTAURANT.value,))
        self._driver_ids = self.fetch_column(ACCOUNT_IDS, (UserType.DRIVER.value,))

        if not self._customers:
            raise ValueError("No customers found. Generate users first.")
        if not self._restaurant_ids:
            raise ValueError("No restaurants found. Generate users first.")
        if not self._driver_ids:
            raise ValueError("No drivers found. Generate users first.")

    def _walk(self, delivery: Delivery, path: list[DeliveryStatus]) -> Delivery:
        """Replay a path onto a fresh delivery, stamping each status in order."""
        stamp = delivery.created_at
        for status in path:
            if not can_transition(delivery.status, status):
                raise ValueError(f"Illegal generated path {delivery.status.value} -> {status.value}")
            low, high = self.STEP_MINUTES[status]
            stamp = stamp + timedelta(minutes=random.randint(low, high))
            delivery.status = status
            setattr(delivery, TIMESTAMP_COLUMNS[status], stamp)
            if status == DeliveryStatus.ACCEPTED:
                delivery.driver_id = random.choice(self._driver_ids)
        delivery.updated_at = stamp
        return delivery

    def generate_one(self) -> OrderWithDelivery:
        if not self._customers:
            self._load_dependencies()

        customer_id, customer_email = random.choice(self._customers)
        created_at = self.past_datetime(365, self.HOUR_WEIGHTS)
        order_id = str(uuid.uuid4())

        delivery = Delivery(
            delivery_id=str(uuid.uuid4()),
            order_id=order_id,
            status=DeliveryStatus.PENDING,
            created_at=created_at,
            updated_at=created_at,
        )
        delivery = self._walk(delivery, self.weighted_choice(self.OUTCOMES))

        order_status = DELIVERY_TO_ORDER_STATUS.get(delivery.status)
        if order_status is None:
            order_status = OrderStatus.CONFIRMED if delivery.status == DeliveryStatus.ACCEPTED else OrderStatus.PENDING

        order = Order(
            order_id=order_id,
            customer_id=customer_id,
            restaurant_id=random.choice(self._restaurant_ids),
            customer_email=customer_email,
            customer_phone=self.fake.phone_number() if random.random() < 0.6 else None,
            status=order_status,
            total=round(random.uniform(8, 80), 2),
            delivery_fee=round(self.BASE_DELIVERY_FEE + random.uniform(0, 3), 2),
            created_at=created_at,
            updated_at=delivery.updated_at,
        )
        return OrderWithDelivery(order=order, delivery=delivery)

    def generate_batch(self, count: int) -> list[OrderWithDelivery]:
        self._load_dependencies()
        return [self.generate_one() for _ in range(count)]

    def save_to_db(self, records: list[OrderWithDelivery]):
        def ts(value):
            return value.isoformat() if value else None

        with get_cursor() as cursor:
            cursor.executemany(
                """
                INSERT INTO orders
                (order_id, customer_id, restaurant_id, customer_email, customer_phone,
                 status, total, delivery_fee, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (o.order_id, o.customer_id, o.restaurant_id, o.customer_email, o.customer_phone,
                     o.status.value, o.total, o.delivery_fee, ts(o.created_at), ts(o.updated_at))
                    for o in (r.order for r in records)
                ]
            )
            cursor.executemany(
                """
                INSERT INTO deliveries
                (delivery_id, order_id, status, driver_id, created_at, accepted_at,
                 picked_up_at, delivered_at, cancelled_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (d.delivery_id, d.order_id, d.status.value, d.driver_id, ts(d.created_at),
                     ts(d.accepted_at), ts(d.picked_up_at), ts(d.delivered_at),
                     ts(d.cancelled_at), ts(d.updated_at))
                    for d in (r.delivery for r in records)
                ]
            )
        print(f"Saved {len(records)} orders with deliveries")
