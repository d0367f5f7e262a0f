import logging
from datetime import datetime
from typing import Optional

from db import get_cursor
from models import ApplicationStatus, DeliveryStatus, DriverApplication, UserType
from services.deliveries import DeliveryService
from services.errors import BadRequest, Conflict, NotFound
from services.notifications import Notifier
from services.users import UserRepository

logger = logging.getLogger(__name__)


class DriverService:
    """Driver applications and delivery allocation."""

    def __init__(
        self,
        deliveries: DeliveryService,
        notifier: Notifier,
        users: UserRepository | None = None,
    ):
        self.deliveries = deliveries
        self.notifier = notifier
        self.users = users or UserRepository()

    def _row_to_application(self, row) -> Optional[DriverApplication]:
        return DriverApplication(**dict(row)) if row else None

    def get_application(self, user_id: str) -> Optional[DriverApplication]:
        with get_cursor() as cursor:
            cursor.execute("SELECT * FROM driver_applications WHERE user_id = ?", (user_id,))
            return self._row_to_application(cursor.fetchone())

    def apply(
        self,
        user_id: str,
        email: str,
        vehicle_type: str,
        vehicle_number: str,
        license_number: str,
        phone: Optional[str] = None,
    ) -> DriverApplication:
        if not all([user_id, email, vehicle_type, vehicle_number, license_number]):
            raise BadRequest("Missing required application fields")

        existing = self.get_application(user_id)
        if existing and existing.status != ApplicationStatus.REJECTED:
            raise BadRequest(f"Application already {existing.status.value.lower()}")

        application = DriverApplication(
            user_id=user_id,
            email=email,
            phone=phone,
            vehicle_type=vehicle_type,
            vehicle_number=vehicle_number,
            license_number=license_number,
            status=ApplicationStatus.PENDING,
            created_at=datetime.now(),
        )
        # A rejected applicant may re-apply; the new application replaces the old one
        with get_cursor() as cursor:
            cursor.execute(
                """
                INSERT OR REPLACE INTO driver_applications
                (user_id, email, phone, vehicle_type, vehicle_number, license_number,
                 status, created_at, reviewed_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, NULL)
                """,
                (user_id, email, phone, vehicle_type, vehicle_number, license_number,
                 application.status.value, application.created_at.isoformat()),
            )
        logger.info(f"Driver application received from {user_id}")
        return application

    async def update_application_status(self, user_id: str, status: str) -> DriverApplication:
        try:
            decision = ApplicationStatus((status or "").upper())
        except ValueError:
            raise BadRequest(f"Invalid application status: {status}")
        if decision == ApplicationStatus.PENDING:
            raise BadRequest("Application status must be APPROVED or REJECTED")

        if not self.get_application(user_id):
            raise NotFound("Application not found")

        with get_cursor() as cursor:
            cursor.execute(
                "UPDATE driver_applications SET status = ?, reviewed_at = ? WHERE user_id = ?",
                (decision.value, datetime.now().isoformat(), user_id),
            )
        application = self.get_application(user_id)

        if decision == ApplicationStatus.APPROVED and self.users.get(user_id):
            self.users.update(user_id, user_type=UserType.DRIVER)

        verdict = "approved" if decision == ApplicationStatus.APPROVED else "rejected"
        await self.notifier.send_email(
            application.email,
            f"Driver application {verdict}",
            f"Your application to become a delivery driver has been {verdict}.",
        )
        logger.info(f"Driver application for {user_id} {verdict}")
        return application

    async def allocate(self, delivery_id: str, driver_id: str) -> dict:
        """Offer a pending delivery to a driver; the driver still has to accept it."""
        if not delivery_id or not driver_id:
            raise BadRequest("deliveryId and driverId are required")

        delivery = self.deliveries.get(delivery_id)
        if delivery.status != DeliveryStatus.PENDING:
            raise Conflict(f"Delivery is already {delivery.status.value}")

        pushed = await self.notifier.push(driver_id, {
            "type": "delivery_request",
            "deliveryId": delivery.delivery_id,
            "orderId": delivery.order_id,
        })

        sms = False
        if not pushed:
            application = self.get_application(driver_id)
            if application and application.phone:
                sms = await self.notifier.send_sms(
                    application.phone,
                    f"New delivery request for order #{delivery.order_id[:8]}. Open the app to accept.",
                )

        logger.info(f"Delivery {delivery_id} offered to {driver_id} (push={pushed}, sms={sms})")
        return {"deliveryId": delivery_id, "driverId": driver_id, "pushed": pushed, "sms": sms}
