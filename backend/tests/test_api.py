from fastapi.testclient import TestClient

from conftest import PACKAGE, PARTY_A, PARTY_B, PASSWORD
from courierhub.db import SessionLocal
from courierhub.main import app
from courierhub.repositories.user_repo import UserRepository
from courierhub.services.auth_service import issue_token

client = TestClient(app)

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def auth(user_id):
    db = SessionLocal()
    try:
        token = issue_token(UserRepository(db).get(user_id))
    finally:
        db.close()
    return {"Authorization": f"Bearer {token}"}


def _create(headers, destination, **extra):
    payload = {
        "destination_branch_id": destination,
        "sender": PARTY_A,
        "recipient": PARTY_B,
        "package_info": PACKAGE,
    }
    payload.update(extra)
    res = client.post("/api/shipments", json=payload, headers=headers)
    assert res.status_code == 201, res.text
    return res.json()


def test_login_sets_cookie_and_me(world):
    c = TestClient(app)
    res = c.post("/api/auth/login", json={"email": "MGR@alpha.example.com", "password": PASSWORD})
    assert res.status_code == 200
    assert "token" in res.cookies
    res = c.get("/api/auth/me")
    assert res.status_code == 200
    body = res.json()
    assert body["capability"] == "BranchManager"
    assert body["user"]["branch_id"] == world.branch_a

    c.post("/api/auth/logout")
    c.cookies.clear()
    assert c.get("/api/auth/me").status_code == 401


def test_login_rejects_bad_password(world):
    res = client.post("/api/auth/login", json={"email": "mgr@alpha.example.com", "password": "wrong-password"})
    assert res.status_code == 401


def test_requests_without_valid_token_are_401(world):
    assert client.get("/api/shipments").status_code == 401
    res = client.get("/api/shipments", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401


def test_inter_branch_flow_over_http(world):
    a = auth(world.a_disp)
    b = auth(world.b_mgr)
    x = auth(world.staff_x)

    s = _create(a, world.branch_b)
    assert s["status"] == "AtOriginBranch"
    assert s["tracking_id"].startswith("TRK-")

    res = client.get("/api/manifests/available-shipments", params={"destination_branch_id": world.branch_b}, headers=a)
    assert [it["id"] for it in res.json()["items"]] == [s["id"]]

    res = client.post(
        "/api/manifests",
        json={"to_branch_id": world.branch_b, "shipment_ids": [s["id"]], "vehicle_number": "VAN-1"},
        headers=a,
    )
    assert res.status_code == 201, res.text
    manifest = res.json()
    assert manifest["status"] == "InTransit"
    assert manifest["shipment_ids"] == [s["id"]]

    res = client.post(f"/api/manifests/{manifest['id']}/receive", headers=a)
    assert res.status_code == 403

    res = client.post(f"/api/manifests/{manifest['id']}/receive", headers=b)
    assert res.status_code == 200
    assert res.json()["status"] == "Completed"

    res = client.post(f"/api/manifests/{manifest['id']}/receive", headers=b)
    assert res.status_code == 409

    res = client.post(f"/api/shipments/{s['id']}/assign", json={"staff_id": world.staff_x}, headers=b)
    assert res.status_code == 200
    assert res.json()["status"] == "Assigned"

    res = client.patch(f"/api/shipments/{s['id']}/status", json={"status": "OutForDelivery"}, headers=x)
    assert res.status_code == 200

    res = client.post(
        f"/api/shipments/{s['id']}/proof",
        data={"proof_type": "photo"},
        files={"file": ("door.png", PNG, "image/png")},
        headers=x,
    )
    assert res.status_code == 201, res.text
    proof = res.json()
    assert proof["type"] == "photo" and proof["url"].endswith(".png")
    stored = client.get(proof["url"])
    assert stored.status_code == 200
    assert stored.content == PNG

    res = client.patch(f"/api/shipments/{s['id']}/status", json={"status": "Delivered"}, headers=x)
    assert res.status_code == 400

    res = client.patch(f"/api/shipments/{s['id']}/status", json={"status": "Delivered", "proof": proof}, headers=x)
    assert res.status_code == 200
    body = res.json()
    assert body["status"] == "Delivered"
    assert [h["status"] for h in body["status_history"]] == [
        "AtOriginBranch",
        "InTransitToDestination",
        "AtDestinationBranch",
        "Assigned",
        "OutForDelivery",
        "Delivered",
    ]

    res = client.patch(
        f"/api/shipments/{s['id']}/status", json={"status": "Failed", "failure_reason": "late"}, headers=x
    )
    assert res.status_code == 409


def test_local_delivery_over_http(world):
    a = auth(world.a_disp)
    s = _create(a, world.branch_a, assigned_to=world.staff_y)
    assert s["status"] == "Assigned"
    assert len(s["status_history"]) == 2

    res = client.get("/api/shipments", params={"view": "local"}, headers=a)
    assert res.json()["total"] == 1

    res = client.get("/api/shipments", headers=auth(world.staff_y))
    assert [it["id"] for it in res.json()["items"]] == [s["id"]]
    assert client.get("/api/shipments", headers=auth(world.staff_x)).json()["total"] == 0


def test_delete_rules_over_http(world):
    a = auth(world.a_disp)
    s = _create(a, world.branch_a)
    assert client.delete(f"/api/shipments/{s['id']}", headers=auth(world.a_mgr)).status_code == 403
    assert client.delete(f"/api/shipments/{s['id']}", headers=a).status_code == 200
    assert client.get(f"/api/shipments/{s['id']}", headers=a).status_code == 404


def test_validation_errors_are_400(world):
    a = auth(world.a_disp)
    payload = {
        "destination_branch_id": world.branch_b,
        "sender": PARTY_A,
        "recipient": dict(PARTY_B, phone="12"),
        "package_info": PACKAGE,
    }
    res = client.post("/api/shipments", json=payload, headers=a)
    assert res.status_code == 400
    assert "phone" in res.json()["detail"]


def test_branch_and_user_admin_over_http(world):
    root = auth(world.root)
    res = client.post(
        "/api/branches",
        json={
            "name": "Charlie",
            "manager_name": "Cara",
            "manager_email": "cara@charlie.example.com",
            "manager_password": PASSWORD,
        },
        headers=root,
    )
    assert res.status_code == 201, res.text
    branch = res.json()
    assert branch["manager"]["email"] == "cara@charlie.example.com"

    assert client.get("/api/branches", headers=root).json()["total"] == 3
    assert client.get("/api/branches", headers=auth(world.a_mgr)).status_code == 403

    res = client.post(
        "/api/users",
        json={"name": "Dan", "email": "dan@alpha.example.com", "password": PASSWORD, "role": "staff"},
        headers=auth(world.a_disp),
    )
    assert res.status_code == 201
    users = client.get("/api/users", params={"role": "staff"}, headers=auth(world.a_mgr)).json()["items"]
    assert {u["email"] for u in users} == {"y@alpha.example.com", "dan@alpha.example.com"}

    res = client.delete(f"/api/branches/{branch['id']}", headers=root)
    assert res.status_code == 200
    assert res.json()["deleted"]["users"] == 1

    stats = client.get("/api/stats", headers=root).json()
    assert stats["total_staff"] == 6
