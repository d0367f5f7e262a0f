import random
from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from faker import Faker

from db import get_cursor


class BaseGenerator(ABC):
    """Seeded Faker generator that builds records and bulk-inserts them."""

    def __init__(self, seed: int | None = 42):
        self.fake = Faker()
        if seed is not None:
            Faker.seed(seed)
            random.seed(seed)

    @staticmethod
    def weighted_choice(choices: list[tuple]):
        items, weights = zip(*choices)
        return random.choices(items, weights=weights)[0]

    @staticmethod
    def past_datetime(days_back_max: int, hour_weights: list[float] | None = None) -> datetime:
        """A moment in the last `days_back_max` days, optionally biased by hour of day."""
        moment = datetime.now() - timedelta(days=random.randint(1, days_back_max))
        hour = random.choices(range(24), weights=hour_weights)[0] if hour_weights else random.randint(0, 23)
        return moment.replace(hour=hour, minute=random.randint(0, 59), second=random.randint(0, 59), microsecond=0)

    @staticmethod
    def fetch_column(query: str, params: tuple = ()) -> list:
        with get_cursor() as cursor:
            cursor.execute(query, params)
            return [row[0] for row in cursor.fetchall()]

    def generate_and_save(self, count: int) -> list:
        records = self.generate_batch(count)
        self.save_to_db(records)
        return records

    @abstractmethod
    def generate_one(self):
        pass

    @abstractmethod
    def generate_batch(self, count: int) -> list:
        pass

    @abstractmethod
    def save_to_db(self, records: list):
        pass
