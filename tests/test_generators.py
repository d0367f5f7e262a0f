from werkzeug.security import check_password_hash

from db import get_table_counts, get_cursor
from generators import DEMO_PASSWORD, DeliveryGenerator, UserGenerator
from models import DeliveryStatus, UserType
from services.deliveries import TIMESTAMP_COLUMNS
from services.profiles import evaluate_profile


def seed(users=80, orders=40):
    user_gen = UserGenerator(seed=7)
    accounts = user_gen.generate_and_save(users)
    delivery_gen = DeliveryGenerator(seed=7)
    records = delivery_gen.generate_batch(orders)
    delivery_gen.save_to_db(records)
    return accounts, records


def test_accounts_are_consistent():
    accounts = UserGenerator(seed=1).generate_batch(50)

    for account in accounts:
        user = account.user
        assert user.is_profile_complete == evaluate_profile(user.user_type, account.profile).is_complete
        if user.user_type == UserType.PENDING:
            assert user.is_google_user and account.profile is None
        if user.password_hash:
            assert not user.is_google_user
    local = next(a.user for a in accounts if a.user.password_hash)
    assert check_password_hash(local.password_hash, DEMO_PASSWORD)


def test_generated_deliveries_follow_the_state_machine():
    _, records = seed()

    for record in records:
        delivery = record.delivery
        assert record.order.order_id == delivery.order_id
        stamps = [delivery.created_at] + [
            getattr(delivery, column) for column in TIMESTAMP_COLUMNS.values()
            if getattr(delivery, column) is not None
        ]
        assert stamps == sorted(stamps)
        if delivery.status in (DeliveryStatus.IN_PROGRESS, DeliveryStatus.DELIVERED):
            assert delivery.driver_id and delivery.accepted_at
        if delivery.status == DeliveryStatus.DELIVERED:
            assert delivery.cancelled_at is None


def test_seeded_rows_land_in_database():
    accounts, records = seed()

    counts = get_table_counts()
    assert counts["users"] == len(accounts)
    assert counts["orders"] == counts["deliveries"] == len(records)
    with get_cursor() as cursor:
        cursor.execute("SELECT COUNT(*) FROM profiles")
        assert cursor.fetchone()[0] == sum(1 for a in accounts if a.profile)
