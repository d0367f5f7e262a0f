"""Report on delivery status flow and timestamps in the local database."""
import pandas as pd

import db

conn = db.get_connection()

print("=" * 80)
print("DELIVERY STATUS FLOW & TIMESTAMP ANALYSIS")
print("=" * 80)

# 1. Status distribution
print("\n📊 STATUS DISTRIBUTION")
print("-" * 80)
status_query = """
SELECT
    status,
    COUNT(*) as count,
    ROUND(100.0 * COUNT(*) / (SELECT COUNT(*) FROM deliveries), 1) as pct,
    COUNT(CASE WHEN accepted_at IS NOT NULL THEN 1 END) as has_accepted,
    COUNT(CASE WHEN picked_up_at IS NOT NULL THEN 1 END) as has_picked_up,
    COUNT(CASE WHEN delivered_at IS NOT NULL THEN 1 END) as has_delivered,
    COUNT(CASE WHEN cancelled_at IS NOT NULL THEN 1 END) as has_cancelled
FROM deliveries
GROUP BY status
ORDER BY count DESC
"""
print(pd.read_sql(status_query, conn).to_string(index=False))

# 2. Gaps between stages
print("\n⏳ AVERAGE MINUTES BETWEEN STAGES (delivered)")
print("-" * 80)
gaps = pd.read_sql("""
    SELECT
        COUNT(*) as total,
        ROUND(AVG(julianday(accepted_at) - julianday(created_at)) * 24 * 60, 1) as create_to_accept,
        ROUND(AVG(julianday(picked_up_at) - julianday(accepted_at)) * 24 * 60, 1) as accept_to_pickup,
        ROUND(AVG(julianday(delivered_at) - julianday(picked_up_at)) * 24 * 60, 1) as pickup_to_delivered
    FROM deliveries
    WHERE status = 'DELIVERED'
""", conn)
print(gaps.to_string(index=False))

# 3. Rows that break the state machine
print("\n🔍 INCONSISTENT ROWS")
print("-" * 80)
broken = pd.read_sql("""
    SELECT
        SUM(CASE WHEN status != 'PENDING' AND status != 'CANCELLED' AND driver_id IS NULL THEN 1 ELSE 0 END) as active_without_driver,
        SUM(CASE WHEN delivered_at IS NOT NULL AND status != 'DELIVERED' THEN 1 ELSE 0 END) as delivered_stamp_wrong_status,
        SUM(CASE WHEN delivered_at IS NOT NULL AND cancelled_at IS NOT NULL THEN 1 ELSE 0 END) as delivered_and_cancelled,
        SUM(CASE WHEN picked_up_at < accepted_at THEN 1 ELSE 0 END) as picked_before_accepted
    FROM deliveries
""", conn)
print(broken.to_string(index=False))

# 4. Order and delivery agreement
print("\n🔗 ORDER STATUS vs DELIVERY STATUS")
print("-" * 80)
joined = pd.read_sql("""
    SELECT o.status as order_status, d.status as delivery_status, COUNT(*) as count
    FROM orders o
    JOIN deliveries d ON d.order_id = o.order_id
    GROUP BY o.status, d.status
    ORDER BY count DESC
""", conn)
print(joined.to_string(index=False))

# 5. Busiest drivers
print("\n🛵 TOP DRIVERS")
print("-" * 80)
drivers = pd.read_sql("""
    SELECT
        driver_id,
        COUNT(*) as deliveries,
        SUM(CASE WHEN status = 'DELIVERED' THEN 1 ELSE 0 END) as delivered,
        SUM(CASE WHEN status = 'CANCELLED' THEN 1 ELSE 0 END) as cancelled
    FROM deliveries
    WHERE driver_id IS NOT NULL
    GROUP BY driver_id
    ORDER BY deliveries DESC
    LIMIT 10
""", conn)
print(drivers.to_string(index=False))

conn.close()
