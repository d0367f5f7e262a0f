import sqlite3
import logging
from contextlib import contextmanager

import config

DATABASE_PATH = config.DATABASE_PATH

logger = logging.getLogger(__name__)

TABLES = [
    "users", "sessions", "profiles", "auth_events", "orders",
    "deliveries", "driver_applications", "notifications", "password_resets",
]


def get_connection() -> sqlite3.Connection:
    DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(DATABASE_PATH, timeout=10)
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_cursor():
    conn = get_connection()
    cursor = conn.cursor()
    try:
        yield cursor
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_database(reset: bool = False):
    if reset and DATABASE_PATH.exists():
        DATABASE_PATH.unlink()

    conn = get_connection()
    cursor = conn.cursor()

    # Accounts owned by the auth service
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS users (
            user_id TEXT PRIMARY KEY,
            email TEXT UNIQUE NOT NULL,
            password_hash TEXT,
            user_type TEXT NOT NULL,
            google_id TEXT UNIQUE,
            is_google_user BOOLEAN DEFAULT FALSE,
            auth_provider TEXT NOT NULL DEFAULT 'local',
            first_name TEXT,
            last_name TEXT,
            profile_image TEXT,
            is_profile_complete BOOLEAN DEFAULT FALSE,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL
        )
    """)

    # Sessions minted by the local session issuer
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS sessions (
            session_id TEXT PRIMARY KEY,
            token TEXT UNIQUE NOT NULL,
            user_id TEXT NOT NULL,
            ip_address TEXT,
            device TEXT,
            created_at TIMESTAMP NOT NULL,
            revoked_at TIMESTAMP
        )
    """)

    # Profile documents (stand-in for the user-profile service)
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
            user_id TEXT PRIMARY KEY,
            email TEXT NOT NULL,
            data TEXT NOT NULL,
            updated_at TIMESTAMP NOT NULL
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS auth_events (
            event_id TEXT PRIMARY KEY,
            user_id TEXT,
            event_type TEXT NOT NULL,
            status TEXT NOT NULL,
            ip_address TEXT,
            device TEXT,
            created_at TIMESTAMP NOT NULL
        )
    """)

    # One-time password reset codes, stored hashed
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS password_resets (
            reset_id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            otp_hash TEXT NOT NULL,
            attempts INTEGER NOT NULL DEFAULT 0,
            expires_at TIMESTAMP NOT NULL,
            verified_at TIMESTAMP,
            used_at TIMESTAMP,
            created_at TIMESTAMP NOT NULL
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS orders (
            order_id TEXT PRIMARY KEY,
            customer_id TEXT NOT NULL,
            restaurant_id TEXT NOT NULL,
            customer_email TEXT,
            customer_phone TEXT,
            status TEXT NOT NULL,
            total REAL NOT NULL,
            delivery_fee REAL NOT NULL DEFAULT 0,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL
        )
    """)

    # One delivery per order
    cursor.execute("""
        CREATE TABLE IF NOT EXISTS deliveries (
            delivery_id TEXT PRIMARY KEY,
            order_id TEXT UNIQUE NOT NULL,
            status TEXT NOT NULL,
            driver_id TEXT,
            created_at TIMESTAMP NOT NULL,
            accepted_at TIMESTAMP,
            picked_up_at TIMESTAMP,
            delivered_at TIMESTAMP,
            cancelled_at TIMESTAMP,
            updated_at TIMESTAMP NOT NULL
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS driver_applications (
            user_id TEXT PRIMARY KEY,
            email TEXT NOT NULL,
            phone TEXT,
            vehicle_type TEXT NOT NULL,
            vehicle_number TEXT NOT NULL,
            license_number TEXT NOT NULL,
            status TEXT NOT NULL,
            created_at TIMESTAMP NOT NULL,
            reviewed_at TIMESTAMP
        )
    """)

    cursor.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            notification_id TEXT PRIMARY KEY,
            channel TEXT NOT NULL,
            recipient TEXT NOT NULL,
            subject TEXT,
            message TEXT NOT NULL,
            status TEXT NOT NULL,
            error TEXT,
            created_at TIMESTAMP NOT NULL
        )
    """)

    # Create indexes for common queries
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions(user_id)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_profiles_email ON profiles(email)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_auth_events_user ON auth_events(user_id)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_password_resets_user ON password_resets(user_id)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_orders_customer ON orders(customer_id)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_deliveries_status ON deliveries(status)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_deliveries_driver ON deliveries(driver_id)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_applications_status ON driver_applications(status)")
    cursor.execute("CREATE INDEX IF NOT EXISTS idx_notifications_recipient ON notifications(recipient)")

    conn.commit()
    conn.close()
    logger.info(f"Database initialized at {DATABASE_PATH}")


def get_table_counts() -> dict:
    with get_cursor() as cursor:
        counts = {}
        for table in TABLES:
            try:
                cursor.execute(f"SELECT COUNT(*) FROM {table}")
                counts[table] = cursor.fetchone()[0]
            except sqlite3.OperationalError:
                counts[table] = 0
        return counts
