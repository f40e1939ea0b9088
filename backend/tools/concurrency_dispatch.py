import os

import requests
import concurrent.futures
import argparse
import json

BASE = os.environ.get("COURIERHUB_BASE", "http://127.0.0.1:8000")

SAMPLE_PARTY = {"name": "Load Test", "address": "1 Benchmark Road", "phone": "+1 555 010 0000"}


def login(email, password):
    r = requests.post(f"{BASE}/api/auth/login", json={"email": email, "password": password}, timeout=10)
    r.raise_for_status()
    return {"Authorization": f"Bearer {r.json()['token']}"}


def create_shipments(headers, to_branch, count):
    ids = []
    for _ in range(count):
        payload = {
            "destination_branch_id": to_branch,
            "sender": SAMPLE_PARTY,
            "recipient": SAMPLE_PARTY,
            "package_info": {"weight": 1.5, "type": "parcel"},
        }
        r = requests.post(f"{BASE}/api/shipments", json=payload, headers=headers, timeout=10)
        r.raise_for_status()
        ids.append(r.json()["id"])
    return ids


def dispatch_task(i, headers, to_branch, shipment_ids):
    payload = {"to_branch_id": to_branch, "shipment_ids": shipment_ids, "vehicle_number": f"LOAD-{i}"}
    try:
        r = requests.post(f"{BASE}/api/manifests", json=payload, headers=headers, timeout=20)
        return (i, r.status_code, r.text)
    except requests.RequestException as e:
        return (i, "ERR", str(e))


def receive_task(i, headers, manifest_id):
    try:
        r = requests.post(f"{BASE}/api/manifests/{manifest_id}/receive", headers=headers, timeout=20)
        return (i, r.status_code, r.text)
    except requests.RequestException as e:
        return (i, "ERR", str(e))


def run_dispatch_concurrent(workers, headers, to_branch, shipment_ids):
    print(f"Running dispatch test: workers={workers}, shipments={shipment_ids}")
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        futures = [ex.submit(dispatch_task, i, headers, to_branch, shipment_ids) for i in range(workers)]
        results = [f.result() for f in futures]
    for r in results:
        print(r)
    manifests = [json.loads(r[2])["id"] for r in results if r[1] == 201]
    print("Manifests created:", manifests, "(expected exactly one)")
    return manifests


def run_receive_concurrent(workers, headers, manifest_id):
    print(f"Running receive test: workers={workers}, manifest={manifest_id}")
    with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as ex:
        futures = [ex.submit(receive_task, i, headers, manifest_id) for i in range(workers)]
        results = [f.result() for f in futures]
    for r in results:
        print(r)
    print("Successful receives:", sum(1 for r in results if r[1] == 200), "(expected exactly one)")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Fire concurrent dispatch/receive requests at a running server.")
    parser.add_argument("--origin-email", required=True)
    parser.add_argument("--origin-password", required=True)
    parser.add_argument("--dest-email", help="admin of the destination branch; enables the receive race")
    parser.add_argument("--dest-password")
    parser.add_argument("--to-branch", type=int, required=True)
    parser.add_argument("--shipments", type=int, default=3)
    parser.add_argument("--workers", type=int, default=8)
    args = parser.parse_args()

    origin = login(args.origin_email, args.origin_password)
    ids = create_shipments(origin, args.to_branch, args.shipments)
    manifests = run_dispatch_concurrent(args.workers, origin, args.to_branch, ids)

    if manifests and args.dest_email:
        dest = login(args.dest_email, args.dest_password)
        run_receive_concurrent(args.workers, dest, manifests[0])
