from __future__ import annotations

from pathlib import Path

from sqlalchemy.exc import SQLAlchemyError

from app.crud.equipment import equipment as crud_equipment
from app.database import Database


async def _create(client, **overrides) -> dict:
    body = {"name": "Drill", "location": "Shelf A", "quantity": 5, "available": 5, "unique": False}
    body.update(overrides)
    response = await client.post("/api/equipments", json=body)
    assert response.status_code == 200, response.text
    return response.json()["data"]


async def test_health_reports_connected_store(client) -> None:
    response = await client.get("/api/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == "connected"


async def test_equipment_create_list_update(client) -> None:
    created = await _create(client, assetId="UA-7")
    assert created["available"] == 5
    assert created["images"] == []

    listed = (await client.get("/api/equipments")).json()["data"]
    assert [e["id"] for e in listed] == [created["id"]]

    response = await client.put(
        "/api/equipments",
        json={"id": created["id"], "name": "Drill", "location": "Shelf B", "quantity": 6, "available": 4},
    )
    assert response.status_code == 200
    assert response.json()["data"]["location"] == "Shelf B"
    assert response.json()["data"]["available"] == 4


async def test_update_error_kinds_are_distinct(client) -> None:
    created = await _create(client)

    invalid = await client.put(
        "/api/equipments",
        json={"id": created["id"], "name": "Drill", "location": "A", "quantity": 5, "available": 6},
    )
    missing_field = await client.put(
        "/api/equipments",
        json={"id": created["id"], "name": "Drill", "quantity": 5, "available": 5},
    )
    not_found = await client.put(
        "/api/equipments",
        json={"id": "nope", "name": "Drill", "location": "A", "quantity": 5, "available": 5},
    )

    assert invalid.status_code == 400
    assert invalid.json()["error"]["code"] == "VALIDATION_ERROR"
    assert missing_field.status_code == 400
    assert missing_field.json()["error"]["code"] == "VALIDATION_ERROR"
    assert not_found.status_code == 404
    assert not_found.json() == {
        "success": False,
        "error": {"code": "NOT_FOUND", "message": "器材不存在", "details": {"equipmentId": "nope"}},
    }

    current = (await client.get("/api/equipments")).json()["data"][0]
    assert current["available"] == 5


async def test_unique_equipment_created_with_quantity_one(client) -> None:
    created = await _create(client, name="Camera", quantity=3, available=3, unique=True)

    assert created["quantity"] == 1
    assert created["available"] == 1


async def test_checkout_checkin_and_history(client) -> None:
    drill = await _create(client)
    user = (await client.post(
        "/api/users",
        json={"firstName": "Grace", "lastName": "Hopper", "position": "Admiral", "email": "g@example.com"},
    )).json()["data"]

    checkout = await client.post(
        "/api/checkout",
        json={
            "userId": user["id"],
            "project": "Harvard Mark I",
            "items": [{"equipmentId": drill["id"], "name": "Drill", "quantity": 2}],
        },
    )
    assert checkout.status_code == 200
    checkout_id = checkout.json()["data"]["checkoutId"]
    assert checkout.json()["data"]["status"] == "active"

    too_many = await client.post(
        "/api/checkout",
        json={
            "userId": user["id"],
            "project": "Harvard Mark I",
            "items": [{"equipmentId": drill["id"], "name": "Drill", "quantity": 4}],
        },
    )
    assert too_many.status_code == 400

    checkin = await client.post(
        "/api/checkin",
        json={
            "userId": user["id"],
            "project": "Harvard Mark I",
            "items": [{"equipmentId": drill["id"], "name": "Drill", "quantity": 2, "checkoutId": checkout_id}],
        },
    )
    assert checkin.status_code == 200
    checkin_id = checkin.json()["data"]["checkinId"]

    equipment = (await client.get("/api/equipments")).json()["data"][0]
    assert equipment["available"] == 5

    checkouts = (await client.get("/api/checkout")).json()["data"]
    checkins = (await client.get("/api/checkin")).json()["data"]
    assert [c["id"] for c in checkouts] == [checkout_id]
    assert checkins[0]["items"][0]["checkoutId"] == checkout_id

    history = (await client.get("/api/history")).json()["data"]
    rows = {row["activity"]: row for row in history}
    assert sorted(rows) == ["Check-In", "Check-Out"]
    assert history[0]["timestamp"] >= history[1]["timestamp"]
    assert rows["Check-In"]["id"] == f"checkin-{checkin_id}-{drill['id']}"
    assert rows["Check-Out"]["checkoutId"] == checkout_id
    assert all(row["by"] == "Grace Hopper" for row in history)


async def test_checkout_requires_items(client) -> None:
    response = await client.post("/api/checkout", json={"userId": "u", "project": "p", "items": []})

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


async def test_checkout_unknown_equipment_returns_404(client) -> None:
    response = await client.post(
        "/api/checkout",
        json={"userId": "u", "project": "p", "items": [{"equipmentId": "ghost", "name": "Ghost", "quantity": 1}]},
    )

    assert response.status_code == 404


async def test_bulk_delete_equipment(client) -> None:
    a = await _create(client, name="A")
    b = await _create(client, name="B")
    c = await _create(client, name="C")

    response = await client.request("DELETE", "/api/equipments", json={"items": [a["id"], b["id"]]})

    assert response.status_code == 200
    assert response.json()["data"]["deletedCount"] == 2
    remaining = (await client.get("/api/equipments")).json()["data"]
    assert [e["id"] for e in remaining] == [c["id"]]


async def test_users_crud(client) -> None:
    created = (await client.post(
        "/api/users",
        json={"id": "emp-1", "firstName": "Alan", "lastName": "Turing", "position": "Fellow", "email": "a@example.com"},
    )).json()["data"]
    assert created["id"] == "emp-1"

    duplicate = await client.post("/api/users", json={"id": "emp-1", "firstName": "X", "lastName": "Y"})
    assert duplicate.status_code == 400

    updated = await client.put(
        "/api/users",
        json={"id": "emp-1", "firstName": "Alan", "lastName": "Turing", "position": "Professor", "email": "a@example.com"},
    )
    assert updated.json()["data"]["position"] == "Professor"

    missing = await client.put(
        "/api/users",
        json={"id": "ghost", "firstName": "A", "lastName": "B", "position": "C", "email": "d@example.com"},
    )
    assert missing.status_code == 404

    incomplete = await client.put("/api/users", json={"id": "emp-1", "firstName": "Alan"})
    assert incomplete.status_code == 400

    deleted = await client.request("DELETE", "/api/users", json={"userIds": ["emp-1", "ghost"]})
    assert deleted.json()["data"]["deletedCount"] == 1
    assert (await client.get("/api/users")).json()["data"] == []

    empty = await client.request("DELETE", "/api/users", json={"userIds": []})
    assert empty.status_code == 400


async def test_image_upload_serve_and_delete(client, test_settings, image_bytes) -> None:
    drill = await _create(client)
    upload_root = Path(test_settings.UPLOAD_DIR)

    response = await client.post(
        "/api/equipments/images",
        data={"equipmentId": drill["id"]},
        files=[
            ("images", ("front.png", image_bytes("PNG"), "image/png")),
            ("images", ("back.jpg", image_bytes("JPEG"), "image/jpeg")),
        ],
    )
    assert response.status_code == 200, response.text
    images = response.json()["data"]
    assert [image["order"] for image in images] == [0, 1]
    assert (upload_root / images[0]["thumbnailPath"]).is_file()

    thumb = await client.get(f"/api/equipments/images/{images[0]['id']}", params={"type": "thumbnail"})
    assert thumb.status_code == 200
    assert thumb.headers["content-type"] == "image/jpeg"
    assert thumb.headers["cache-control"] == "public, max-age=31536000, immutable"
    assert images[0]["id"] in thumb.headers["etag"]
    assert thumb.content == (upload_root / images[0]["thumbnailPath"]).read_bytes()

    bad_type = await client.get(f"/api/equipments/images/{images[0]['id']}", params={"type": "huge"})
    assert bad_type.status_code == 400

    listed = (await client.get("/api/equipments")).json()["data"][0]
    assert [image["id"] for image in listed["images"]] == [image["id"] for image in images]

    deleted = await client.request(
        "DELETE",
        "/api/equipments/images",
        json={"equipmentId": drill["id"], "imageIds": [images[0]["id"]]},
    )
    assert deleted.json()["data"]["deletedCount"] == 1
    assert not (upload_root / images[0]["originalPath"]).exists()

    gone = await client.get(f"/api/equipments/images/{images[0]['id']}")
    assert gone.status_code == 404


async def test_image_upload_validation(client, image_bytes) -> None:
    drill = await _create(client)

    no_id = await client.post(
        "/api/equipments/images",
        files=[("images", ("a.png", image_bytes("PNG"), "image/png"))],
    )
    wrong_type = await client.post(
        "/api/equipments/images",
        data={"equipmentId": drill["id"]},
        files=[("images", ("a.gif", b"GIF89a", "image/gif"))],
    )
    unknown = await client.post(
        "/api/equipments/images",
        data={"equipmentId": "ghost"},
        files=[("images", ("a.png", image_bytes("PNG"), "image/png"))],
    )

    assert no_id.status_code == 400
    assert wrong_type.status_code == 400
    assert wrong_type.json()["error"]["details"]["errors"]
    assert unknown.status_code == 404


async def test_health_reports_unreachable_store(client, monkeypatch) -> None:
    async def unreachable(self) -> None:
        raise ConnectionError("store is down")

    monkeypatch.setattr(Database, "ping", unreachable)

    response = await client.get("/api/health")

    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "unhealthy"
    assert body["database"] == "disconnected"
    assert body["error"] == "store is down"


async def test_checkout_failing_midway_returns_partial_failure(client, monkeypatch) -> None:
    drill = await _create(client, name="Drill")
    saw = await _create(client, name="Saw", quantity=2, available=2)

    original = crud_equipment.adjust_available

    async def fails_on_saw(db, **kwargs):
        if kwargs["equipment_id"] == saw["id"]:
            raise SQLAlchemyError("connection reset")
        return await original(db, **kwargs)

    monkeypatch.setattr(crud_equipment, "adjust_available", fails_on_saw)

    response = await client.post(
        "/api/checkout",
        json={
            "userId": "u-1",
            "project": "Set build",
            "items": [
                {"equipmentId": drill["id"], "name": "Drill", "quantity": 2},
                {"equipmentId": saw["id"], "name": "Saw", "quantity": 1},
            ],
        },
    )

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "PARTIAL_FAILURE"
    assert body["error"]["details"]["applied"] == [drill["id"]]

    monkeypatch.undo()
    equipments = {e["name"]: e for e in (await client.get("/api/equipments")).json()["data"]}
    assert equipments["Drill"]["available"] == 3
    assert equipments["Saw"]["available"] == 2
    assert (await client.get("/api/checkout")).json()["data"] == []
