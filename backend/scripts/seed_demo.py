#!/usr/bin/env python3
"""
Seed a small demo network: a super admin, a few branches with a manager,
a dispatcher and delivery staff each, and some shipments between them.

Usage:
    python scripts/seed_demo.py --reset
    python scripts/seed_demo.py --password demo-pass-123 --shipments 5
"""
import argparse
import os
import sys

# allow running from repo/scripts
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from courierhub.db import SessionLocal, init_db
from courierhub.errors import CourierHubError
from courierhub.models.user import Role
from courierhub.repositories.user_repo import UserRepository
from courierhub.services.authz import Actor
from courierhub.services.branch_service import BranchService
from courierhub.services.pricing_service import PricingService
from courierhub.services.shipment_service import ShipmentService
from courierhub.services.user_service import UserService

DEMO_BRANCHES = ["Downtown", "Harbor", "Airport"]
# branch -> pricing zone
DEMO_ZONES = {"Downtown": "City", "Harbor": "City", "Airport": "Outskirts"}
# (min kg, max kg, price in cents)
DEMO_TIERS = [(0, 1, 400), (1, 5, 750), (5, 20, 1400)]

SAMPLE_SENDER = {"name": "Demo Sender", "address": "12 Market Street", "phone": "+1 555 010 1000"}
SAMPLE_RECIPIENTS = [
    {"name": "Alice Park", "address": "4 Elm Avenue", "phone": "+1 555 010 2001"},
    {"name": "Bruno Silva", "address": "77 Quay Road", "phone": "+1 555 010 2002"},
    {"name": "Chen Wei", "address": "9 Terminal Drive", "phone": "+1 555 010 2003"},
]


def seed_pricing(db, root, created):
    pricing = PricingService(db)
    zones = {}
    for zone_name in sorted(set(DEMO_ZONES.values())):
        try:
            zones[zone_name] = pricing.create_zone(root, zone_name).id
        except CourierHubError as e:
            print(f"Skipping pricing: {e}")
            return
    for min_kg, max_kg, cents in DEMO_TIERS:
        pricing.create_tier(root, min_kg, max_kg, cents)
    pricing.set_surcharge(root, zones["City"], zones["Outskirts"], 300)
    pricing.set_surcharge(root, zones["Outskirts"], zones["City"], 300)

    branches = BranchService(db)
    for branch, _ in created:
        branches.update_branch(root, branch.id, zone_id=zones[DEMO_ZONES[branch.name]])


def seed(password: str, shipments_per_branch: int, reset: bool):
    init_db(reset=reset)
    db = SessionLocal()
    try:
        users = UserService(db)
        root_email = "root@courierhub.local"
        users.ensure_superadmin(root_email, password)
        root = Actor.for_user(UserRepository(db).get_by_email(root_email))

        branches = BranchService(db)
        created = []
        for name in DEMO_BRANCHES:
            slug = name.lower()
            try:
                branch, manager = branches.create_branch(
                    root, name, f"{name} Manager", f"manager@{slug}.courierhub.local", password
                )
            except CourierHubError as e:
                print(f"Skipping {name}: {e}")
                continue
            manager_actor = Actor.for_user(manager)
            users.create_user(manager_actor, f"{name} Dispatcher", f"dispatch@{slug}.courierhub.local", password, Role.ADMIN)
            users.create_user(manager_actor, f"{name} Courier", f"courier@{slug}.courierhub.local", password, Role.STAFF)
            created.append((branch, manager_actor))

        seed_pricing(db, root, created)

        svc = ShipmentService(db)
        made = 0
        for i, (branch, actor) in enumerate(created):
            for n in range(shipments_per_branch):
                dest, _ = created[(i + n) % len(created)]
                svc.create_shipment(
                    actor,
                    dest.id,
                    SAMPLE_SENDER,
                    SAMPLE_RECIPIENTS[n % len(SAMPLE_RECIPIENTS)],
                    {"weight": 1.0 + n, "type": "parcel"},
                )
                made += 1
        print(f"Seeded branches: {len(created)}, shipments: {made}")
        print(f"Log in as {root_email} / {password}")
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--password", default="courierhub-demo", help="password for every seeded account")
    parser.add_argument("--shipments", type=int, default=3, help="shipments created per branch")
    parser.add_argument("--reset", action="store_true", help="drop and recreate all tables first")
    args = parser.parse_args()
    seed(args.password, args.shipments, args.reset)
