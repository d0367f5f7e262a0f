#!/usr/bin/env python3
"""
Food Delivery Data Generator

Seed the local database with demo accounts, orders and deliveries, and
inspect or export what is there.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

import db
from db import init_database, get_table_counts, TABLES
from generators import UserGenerator, DeliveryGenerator, DEMO_PASSWORD


def generate_data(num_orders: int, num_users: int | None = None, seed: int = 42):
    """Generate accounts and orders based on target order count"""

    # ~4 orders per account avg
    num_users = num_users or max(50, num_orders // 4)

    print(f"\n📊 Generating data for {num_orders} orders...")
    print(f"   - {num_users} accounts (customers, restaurants, drivers)\n")

    print("👥 Generating accounts...")
    user_gen = UserGenerator(seed)
    user_gen.generate_and_save(num_users)
    print(f"   Demo password for local accounts: {DEMO_PASSWORD}")

    print("🛵 Generating orders and deliveries...")
    delivery_gen = DeliveryGenerator(seed)
    try:
        records = delivery_gen.generate_batch(num_orders)
    except ValueError as exc:
        print(f"   ⚠️  Skipped: {exc}")
        return
    delivery_gen.save_to_db(records)

    print("\n✅ Data generation complete!")


def export_to_csv():
    """Export all tables to CSV files"""
    import pandas as pd

    export_dir = Path(__file__).parent / "exports"
    export_dir.mkdir(exist_ok=True)

    conn = db.get_connection()

    print("\n📁 Exporting to CSV...")
    for table in TABLES:
        df = pd.read_sql_query(f"SELECT * FROM {table}", conn)
        if table == "sessions":
            df = df.drop(columns=["token"])
        if table == "users":
            df = df.drop(columns=["password_hash"])
        if table == "password_resets":
            df = df.drop(columns=["otp_hash"])
        output_path = export_dir / f"{table}.csv"
        df.to_csv(output_path, index=False)
        print(f"   - {output_path} ({len(df)} rows)")

    conn.close()
    print("\n✅ Export complete!")


def show_stats():
    """Display current database statistics"""
    counts = get_table_counts()

    print("\n📈 Database Statistics:")
    print("-" * 36)
    for table, count in counts.items():
        print(f"   {table:20} {count:>8,} rows")
    print("-" * 36)
    print(f"   {'Total':20} {sum(counts.values()):>8,} rows")
    print(f"\n   Database: {db.DATABASE_PATH}")


def serve(host: str, port: int, reload: bool):
    import uvicorn
    uvicorn.run("api.main:app", host=host, port=port, reload=reload)


def main():
    parser = argparse.ArgumentParser(
        description="Generate demo data for the food delivery backend",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                      # Generate 500 orders (default)
  python main.py --orders 5000        # Generate 5000 orders
  python main.py --reset --orders 100 # Reset DB and generate fresh
  python main.py --export             # Export tables to CSV
  python main.py --stats              # Show database statistics
  python main.py --serve --port 8000  # Run the API
        """
    )

    parser.add_argument(
        "--orders", "-n",
        type=int,
        default=500,
        help="Number of orders to generate (default: 500)"
    )

    parser.add_argument(
        "--users", "-u",
        type=int,
        default=None,
        help="Number of accounts to generate (default: orders / 4, at least 50)"
    )

    parser.add_argument(
        "--reset", "-r",
        action="store_true",
        help="Reset database before generating"
    )

    parser.add_argument(
        "--seed", "-s",
        type=int,
        default=42,
        help="Random seed for reproducibility (default: 42)"
    )

    parser.add_argument(
        "--export", "-e",
        action="store_true",
        help="Export all tables to CSV files"
    )

    parser.add_argument(
        "--stats",
        action="store_true",
        help="Show database statistics"
    )

    parser.add_argument(
        "--serve",
        action="store_true",
        help="Run the API with uvicorn"
    )
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true")

    args = parser.parse_args()

    # Initialize database
    init_database(reset=args.reset)

    if args.serve:
        serve(args.host, args.port, args.reload)
        return

    if args.stats:
        show_stats()
        return

    if args.export:
        export_to_csv()
        return

    # Generate data
    generate_data(num_orders=args.orders, num_users=args.users, seed=args.seed)

    # Show final stats
    show_stats()


if __name__ == "__main__":
    main()
