import sqlite3
import sys

DB = sys.argv[1] if len(sys.argv) > 1 else "courierhub.db"
TRACKING_ID = sys.argv[2] if len(sys.argv) > 2 else None

conn = sqlite3.connect(DB)
cur = conn.cursor()

print("=== Recent Manifests ===")
cur.execute(
    "SELECT m.id, m.from_branch_id, m.to_branch_id, m.status, m.dispatched_at, m.received_at, "
    "(SELECT COUNT(*) FROM manifest_shipments ms WHERE ms.manifest_id = m.id) "
    "FROM manifests m ORDER BY m.dispatched_at DESC LIMIT 20"
)
for r in cur.fetchall():
    print(
        {
            "id": r[0],
            "from": r[1],
            "to": r[2],
            "status": r[3],
            "dispatched_at": r[4],
            "received_at": r[5],
            "shipments": r[6],
        }
    )

print("\n=== Shipments per status ===")
cur.execute("SELECT status, COUNT(*) FROM shipments GROUP BY status ORDER BY status")
for r in cur.fetchall():
    print(r)

print("\n=== Shipments on more than one open manifest (should be empty) ===")
cur.execute(
    "SELECT ms.shipment_id, COUNT(*) FROM manifest_shipments ms "
    "JOIN manifests m ON m.id = ms.manifest_id WHERE m.status = 'InTransit' "
    "GROUP BY ms.shipment_id HAVING COUNT(*) > 1"
)
for r in cur.fetchall():
    print(r)

if TRACKING_ID:
    print(f"\n=== History for {TRACKING_ID} ===")
    cur.execute(
        "SELECT h.id, h.status, h.timestamp, h.notes FROM shipment_status_history h "
        "JOIN shipments s ON s.id = h.shipment_id WHERE s.tracking_id=? ORDER BY h.id",
        (TRACKING_ID,),
    )
    for r in cur.fetchall():
        print(r)

conn.close()
