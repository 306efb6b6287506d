from datetime import datetime, timedelta, timezone

from bson import ObjectId

FUTURE = "2099-01-01T00:00:00Z"


def test_valid_coupon_is_returned(client):
    resp = client.post(
        "/coupons",
        json={"code": "SAVE10", "discount": 10, "expiration": FUTURE, "description": "Ten off"},
    )
    assert resp.status_code == 201

    resp = client.get("/coupons/SAVE10")
    assert resp.status_code == 200
    body = resp.json()
    assert body["code"] == "SAVE10"
    assert body["discount"] == 10
    assert body["description"] == "Ten off"
    assert body["_id"] == client.get("/coupons").json()[0]["_id"]


def test_expired_coupon_is_404(client, db):
    db["coupons"].insert_one({
        "code": "SAVE10",
        "discount": 10,
        "expiration": datetime.now(timezone.utc) - timedelta(days=1),
    })

    resp = client.get("/coupons/SAVE10")
    assert resp.status_code == 404
    assert resp.json() == {"message": "Invalid or expired coupon"}


def test_missing_coupon_is_404(client):
    resp = client.get("/coupons/NOPE")
    assert resp.status_code == 404
    assert resp.json() == {"message": "Invalid or expired coupon"}


def test_coupon_with_string_expiration(client, db):
    db["coupons"].insert_one({"code": "LEGACY", "discount": 5, "expiration": FUTURE})
    assert client.get("/coupons/LEGACY").status_code == 200


def test_update_coupon(client, db):
    coupon_id = client.post("/coupons", json={"code": "A", "discount": 5, "expiration": FUTURE}).json()["insertedId"]

    resp = client.put(f"/coupons/{coupon_id}", json={"discount": 15})
    assert resp.status_code == 200
    stored = db["coupons"].find_one({"_id": ObjectId(coupon_id)})
    assert stored["discount"] == 15
    assert stored["code"] == "A"


def test_update_coupon_errors(client):
    assert client.put(f"/coupons/{ObjectId()}", json={"discount": 1}).status_code == 404
    assert client.put("/coupons/bad-id", json={"discount": 1}).status_code == 400

    coupon_id = client.post("/coupons", json={"code": "A", "discount": 5, "expiration": FUTURE}).json()["insertedId"]
    assert client.put(f"/coupons/{coupon_id}", json={}).status_code == 400


def test_expire_coupon_through_update(client):
    coupon_id = client.post("/coupons", json={"code": "A", "discount": 5, "expiration": FUTURE}).json()["insertedId"]

    client.put(f"/coupons/{coupon_id}", json={"expiration": "2001-01-01T00:00:00+00:00"})
    assert client.get("/coupons/A").status_code == 404


def test_delete_coupon(client, db):
    coupon_id = client.post("/coupons", json={"code": "A", "discount": 5, "expiration": FUTURE}).json()["insertedId"]

    resp = client.delete(f"/coupons/{coupon_id}")
    assert resp.status_code == 200
    assert db["coupons"].count_documents({}) == 0

    assert client.delete(f"/coupons/{coupon_id}").status_code == 404


def test_list_coupons_empty(client):
    assert client.get("/coupons").json() == []


def test_update_cannot_null_required_fields(client, db):
    coupon_id = client.post("/coupons", json={"code": "A", "discount": 5, "expiration": FUTURE}).json()["insertedId"]

    resp = client.put(f"/coupons/{coupon_id}", json={"code": None, "discount": None, "expiration": None})
    assert resp.status_code == 400
    assert resp.json() == {"message": "Coupon fields cannot be null: code, discount, expiration"}

    stored = db["coupons"].find_one({"_id": ObjectId(coupon_id)})
    assert stored["code"] == "A"
    assert stored["discount"] == 5
    assert client.get("/coupons/A").status_code == 200


def test_update_can_clear_description(client, db):
    coupon_id = client.post(
        "/coupons", json={"code": "A", "discount": 5, "expiration": FUTURE, "description": "old"}
    ).json()["insertedId"]

    assert client.put(f"/coupons/{coupon_id}", json={"description": None}).status_code == 200
    assert db["coupons"].find_one({"_id": ObjectId(coupon_id)})["description"] is None


def test_duplicate_code_rejected(client, db):
    client.post("/coupons", json={"code": "SAVE10", "discount": 10, "expiration": FUTURE})

    resp = client.post("/coupons", json={"code": "SAVE10", "discount": 20, "expiration": FUTURE})
    assert resp.status_code == 400
    assert resp.json() == {"message": "Coupon code already exists."}
    assert db["coupons"].count_documents({"code": "SAVE10"}) == 1


def test_rename_to_taken_code_rejected(client):
    client.post("/coupons", json={"code": "A", "discount": 5, "expiration": FUTURE})
    b_id = client.post("/coupons", json={"code": "B", "discount": 5, "expiration": FUTURE}).json()["insertedId"]

    assert client.put(f"/coupons/{b_id}", json={"code": "A"}).status_code == 400
    assert client.put(f"/coupons/{b_id}", json={"code": "B", "discount": 7}).status_code == 200


def test_valid_coupon_wins_over_expired_duplicate(client, db):
    db["coupons"].insert_many([
        {"code": "SAVE10", "discount": 5, "expiration": datetime.now(timezone.utc) - timedelta(days=1)},
        {"code": "SAVE10", "discount": 10, "expiration": datetime.now(timezone.utc) + timedelta(days=1)},
    ])

    resp = client.get("/coupons/SAVE10")
    assert resp.status_code == 200
    assert resp.json()["discount"] == 10
