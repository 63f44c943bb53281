"""Order endpoints: purchase, fulfilment and history over HTTP."""
import pytest


def _post(client, path, user, json=None):
    return client.post(path, headers=user["headers"], json=json or {})


def test_purchase_creates_pending_order_with_price_snapshot(client, buyer, seller, book, order):
    assert order["status"] == "pending"
    assert order["price"] == 9.99
    assert order["sellerId"] == seller["id"]
    assert order["buyerId"] == buyer["id"]
    assert order["bookId"] == book["id"]
    assert order["shippedAt"] is None and order["deliveredAt"] is None


def test_full_flow_over_http(client, buyer, seller, order):
    oid = order["id"]

    r = _post(client, f"/api/transactions/{oid}/accept", seller)
    assert r.status_code == 200
    assert r.get_json()["status"] == "accepted"

    r = _post(client, f"/api/transactions/{oid}/ship", seller, {"trackingNumber": "TRACK123"})
    body = r.get_json()
    assert r.status_code == 200
    assert body["status"] == "shipped"
    assert body["trackingNumber"] == "TRACK123"
    assert body["shippedAt"] is not None

    r = _post(client, f"/api/transactions/{oid}/deliver", buyer)
    body = r.get_json()
    assert r.status_code == 200
    assert body["status"] == "delivered"
    assert body["deliveredAt"] is not None

    r = _post(client, f"/api/transactions/{oid}/ship", seller, {"trackingNumber": "TRACK999"})
    assert r.status_code == 409
    body = r.get_json()
    assert body["error"] == "invalid-transition"
    assert body["currentStatus"] == "delivered"
    assert "order is delivered" in body["message"]


def test_listing_price_change_does_not_touch_existing_order(client, buyer, seller, book, order):
    r = client.put(f"/api/books/{book['id']}", headers=seller["headers"], json={"price": 25})
    assert r.status_code == 200
    assert r.get_json()["price"] == 25.0

    r = client.get(f"/api/transactions/{order['id']}", headers=buyer["headers"])
    assert r.get_json()["price"] == 9.99


def test_purchase_requires_login(app, book):
    r = app.test_client().post("/api/transactions", json={"bookId": book["id"]})
    assert r.status_code == 401
    assert r.get_json()["error"] == "unauthenticated"


def test_sellers_cannot_purchase(client, other_seller, book):
    r = _post(client, "/api/transactions", other_seller, {"bookId": book["id"]})
    assert r.status_code == 403


@pytest.mark.parametrize("payload,code", [({}, 400), ({"bookId": "abc"}, 400), ({"bookId": 999}, 404)])
def test_purchase_bad_book_reference(client, buyer, payload, code):
    r = _post(client, "/api/transactions", buyer, payload)
    assert r.status_code == code


@pytest.mark.parametrize("book_ref", [True, 1.5, "1.5"])
def test_purchase_rejects_non_integer_book_ids(client, buyer, book, book_ref):
    # book 1 exists; none of these may resolve to it
    r = _post(client, "/api/transactions", buyer, {"bookId": book_ref})
    assert r.status_code == 400
    assert r.get_json()["error"] == "validation"
    assert client.get("/api/buyer/transactions", headers=buyer["headers"]).get_json() == []


def test_unpublished_book_cannot_be_bought(client, buyer, seller, book):
    client.put(f"/api/books/{book['id']}", headers=seller["headers"], json={"published": False})
    r = _post(client, "/api/transactions", buyer, {"bookId": book["id"]})
    assert r.status_code == 404
    assert r.get_json()["error"] == "not-found"


def test_non_seller_accept_is_unauthorized_not_status(client, buyer, other_seller, seller, order):
    _post(client, f"/api/transactions/{order['id']}/accept", seller)
    for actor in (buyer, other_seller):
        r = _post(client, f"/api/transactions/{order['id']}/accept", actor)
        assert r.status_code == 403
        body = r.get_json()
        assert body["error"] == "unauthorized"
        assert "currentStatus" not in body


def test_accept_twice(client, seller, order):
    assert _post(client, f"/api/transactions/{order['id']}/accept", seller).status_code == 200
    r = _post(client, f"/api/transactions/{order['id']}/accept", seller)
    assert r.status_code == 409
    assert r.get_json()["message"] == "cannot accept: order is accepted"


def test_ship_without_tracking_number(client, seller, buyer, order):
    _post(client, f"/api/transactions/{order['id']}/accept", seller)
    r = _post(client, f"/api/transactions/{order['id']}/ship", seller, {"trackingNumber": "  "})
    assert r.status_code == 400
    assert r.get_json()["error"] == "validation"

    r = client.get(f"/api/transactions/{order['id']}", headers=buyer["headers"])
    assert r.get_json()["status"] == "accepted"
    assert r.get_json()["trackingNumber"] is None


def test_stranger_cannot_deliver_or_view(client, seller, stranger, order):
    oid = order["id"]
    _post(client, f"/api/transactions/{oid}/accept", seller)
    _post(client, f"/api/transactions/{oid}/ship", seller, {"trackingNumber": "T1"})

    assert _post(client, f"/api/transactions/{oid}/deliver", stranger).status_code == 403
    assert client.get(f"/api/transactions/{oid}", headers=stranger["headers"]).status_code == 403

    r = _post(client, f"/api/transactions/{oid}/deliver", seller)
    assert r.status_code == 200
    assert r.get_json()["status"] == "delivered"


def test_unknown_order(client, seller):
    r = _post(client, "/api/transactions/4242/accept", seller)
    assert r.status_code == 404


def test_history_endpoints(client, buyer, seller, book):
    ids = [_post(client, "/api/transactions", buyer, {"bookId": book["id"]}).get_json()["id"]
           for _ in range(3)]
    _post(client, f"/api/transactions/{ids[0]}/accept", seller)

    r = client.get("/api/buyer/transactions", headers=buyer["headers"])
    assert [o["id"] for o in r.get_json()] == list(reversed(ids))

    r = client.get("/api/seller/transactions?status=accepted", headers=seller["headers"])
    assert [o["id"] for o in r.get_json()] == [ids[0]]

    r = client.get("/api/seller/transactions?status=lost", headers=seller["headers"])
    assert r.status_code == 400

    # buyers have no seller view
    assert client.get("/api/seller/transactions", headers=buyer["headers"]).status_code == 403


def test_seller_stats(client, buyer, seller, book):
    ids = [_post(client, "/api/transactions", buyer, {"bookId": book["id"]}).get_json()["id"]
           for _ in range(2)]
    oid = ids[0]
    _post(client, f"/api/transactions/{oid}/accept", seller)
    _post(client, f"/api/transactions/{oid}/ship", seller, {"trackingNumber": "T"})
    _post(client, f"/api/transactions/{oid}/deliver", buyer)

    r = client.get("/api/seller/stats", headers=seller["headers"])
    body = r.get_json()
    assert r.status_code == 200
    assert body["totalOrders"] == 2
    assert body["byStatus"]["delivered"] == 1
    assert body["byStatus"]["pending"] == 1
    assert body["byStatus"]["canceled"] == 0
    assert body["deliveredRevenue"] == 9.99
    assert body["grossSales"] == pytest.approx(19.98)
    assert len(body["monthly"]) == 1
