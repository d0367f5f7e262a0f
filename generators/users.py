import json
import uuid
import random
from dataclasses import dataclass

from werkzeug.security import generate_password_hash

from .base import BaseGenerator
from models import User, UserType, AuthProvider
from services.profiles import evaluate_profile
from db import get_cursor

DEMO_PASSWORD = "password123"


@dataclass
class DemoAccount:
    """A user row plus the profile document the profile service would own."""
    user: User
    profile: dict | None


class UserGenerator(BaseGenerator):
    USER_TYPES = [
        (UserType.CUSTOMER, 0.75),
        (UserType.RESTAURANT, 0.10),
        (UserType.DRIVER, 0.12),
        (UserType.PENDING, 0.03),
    ]

    VEHICLE_TYPE_IDS = ["bike", "scooter", "car", "van"]
    CUISINE_TYPE_IDS = ["sri-lankan", "indian", "chinese", "italian", "fast-food", "vegan"]
    RESTAURANT_TYPE_IDS = ["dine-in", "takeaway", "cloud-kitchen"]

    def __init__(self, seed: int | None = 42):
        super().__init__(seed)
        # Hashing is slow; every demo account shares one password
        self._password_hash = generate_password_hash(DEMO_PASSWORD)

    def _generate_profile(self, user_type: UserType, first_name: str, last_name: str) -> dict | None:
        # ~10% of accounts never finished onboarding
        if user_type == UserType.PENDING or random.random() < 0.10:
            return None

        profile = {
            "firstName": first_name,
            "lastName": last_name,
            "contactNumber": self.fake.phone_number(),
        }
        if user_type == UserType.RESTAURANT:
            profile.update({
                "restaurantName": f"{self.fake.last_name()}'s {random.choice(['Kitchen', 'Grill', 'Bistro', 'Diner'])}",
                "restaurantAddress": self.fake.street_address(),
                "restaurantLicenseNumber": f"LIC-{random.randint(100000, 999999)}",
                "cuisineTypeIds": random.sample(self.CUISINE_TYPE_IDS, k=random.randint(1, 3)),
                "restaurantTypeId": random.choice(self.RESTAURANT_TYPE_IDS),
            })
        elif user_type == UserType.DRIVER:
            profile.update({
                "vehicleNumber": f"{self.fake.random_uppercase_letter()}{self.fake.random_uppercase_letter()}-{random.randint(1000, 9999)}",
                "vehicleTypeId": random.choice(self.VEHICLE_TYPE_IDS),
            })
        return profile

    def generate_one(self) -> DemoAccount:
        user_type = self.weighted_choice(self.USER_TYPES)
        first_name = self.fake.first_name()
        last_name = self.fake.last_name()

        # Pending accounts only come from Google onboarding
        is_google = user_type == UserType.PENDING or random.random() < 0.30
        profile = self._generate_profile(user_type, first_name, last_name)

        created_at = self.past_datetime(730)

        user = User(
            user_id=str(uuid.uuid4()),
            email=self.fake.unique.email(),
            password_hash=None if is_google else self._password_hash,
            user_type=user_type,
            google_id=str(random.randint(10**20, 10**21 - 1)) if is_google else None,
            is_google_user=is_google,
            auth_provider=AuthProvider.GOOGLE if is_google else AuthProvider.LOCAL,
            first_name=first_name,
            last_name=last_name,
            profile_image=f"https://i.pravatar.cc/150?u={first_name}{last_name}" if is_google else None,
            is_profile_complete=evaluate_profile(user_type, profile).is_complete,
            created_at=created_at,
            updated_at=created_at,
        )
        return DemoAccount(user=user, profile=profile)

    def generate_batch(self, count: int) -> list[DemoAccount]:
        return [self.generate_one() for _ in range(count)]

    def save_to_db(self, records: list[DemoAccount]):
        with get_cursor() as cursor:
            cursor.executemany(
                """
                INSERT INTO users
                (user_id, email, password_hash, user_type, google_id, is_google_user,
                 auth_provider, first_name, last_name, profile_image,
                 is_profile_complete, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (u.user_id, u.email, u.password_hash, u.user_type.value, u.google_id,
                     u.is_google_user, u.auth_provider.value, u.first_name, u.last_name,
                     u.profile_image, u.is_profile_complete, u.created_at.isoformat(),
                     u.updated_at.isoformat())
                    for u in (r.user for r in records)
                ]
            )
            cursor.executemany(
                "INSERT INTO profiles (user_id, email, data, updated_at) VALUES (?, ?, ?, ?)",
                [
                    (r.user.user_id, r.user.email, json.dumps(r.profile), r.user.updated_at.isoformat())
                    for r in records if r.profile
                ]
            )
        print(f"Saved {len(records)} users")
