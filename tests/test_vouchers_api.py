from datetime import datetime, timedelta


def _order_payload(product_id: int, voucher_reference: str) -> dict:
    return {
        "voucher_reference": voucher_reference,
        "products": [{"product_id": product_id, "quantity": 1, "price": "2.50"}],
    }


def test_create_voucher_generates_reference(client, admin_headers):
    resp = client.post("/vouchers", json={"percentage": 10}, headers=admin_headers)

    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert len(body["voucher_reference"]) == 18
    assert body["percentage"] == 10
    assert body["amount"] is None
    assert body["multiple"] is True


def test_voucher_needs_exactly_one_discount(client, admin_headers):
    both = client.post("/vouchers", json={"amount": 5, "percentage": 10}, headers=admin_headers)
    neither = client.post("/vouchers", json={"voucher_reference": "EMPTY"}, headers=admin_headers)
    too_much = client.post("/vouchers", json={"percentage": 101}, headers=admin_headers)

    assert both.status_code == 422
    assert neither.status_code == 422
    assert too_much.status_code == 422


def test_lookup_by_reference_and_search(client, admin_headers, cashier_headers):
    client.post("/vouchers", json={"voucher_reference": "SPRING10", "percentage": 10}, headers=admin_headers)
    client.post("/vouchers", json={"voucher_reference": "WINTER5", "amount": 5}, headers=admin_headers)

    found = client.get("/vouchers/reference/SPRING10", headers=cashier_headers)
    missing = client.get("/vouchers/reference/NOPE", headers=cashier_headers)
    searched = client.get("/vouchers", params={"search": "wint"}, headers=cashier_headers).json()

    assert found.status_code == 200
    assert found.json()["percentage"] == 10
    assert missing.status_code == 404
    assert [v["voucher_reference"] for v in searched] == ["WINTER5"]


def test_duplicate_reference_is_a_conflict(client, admin_headers):
    client.post("/vouchers", json={"voucher_reference": "DUP", "amount": 3}, headers=admin_headers)

    resp = client.post("/vouchers", json={"voucher_reference": "DUP", "amount": 4}, headers=admin_headers)

    assert resp.status_code == 409


def test_update_switches_discount_kind(client, admin_headers):
    voucher = client.post("/vouchers", json={"voucher_reference": "SWAP", "amount": 3}, headers=admin_headers).json()

    resp = client.put(f"/vouchers/{voucher['id']}", json={"percentage": 15, "active": False}, headers=admin_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["amount"] is None
    assert body["percentage"] == 15
    assert body["active"] is False
    assert body["voucher_reference"] == "SWAP"


def test_cashier_cannot_manage_vouchers(client, cashier_headers):
    resp = client.post("/vouchers", json={"amount": 3}, headers=cashier_headers)

    assert resp.status_code == 403


def test_voucher_used_by_an_order_cannot_be_deleted(client, admin_headers, cashier_headers, make_product):
    voucher = client.post("/vouchers", json={"voucher_reference": "USED", "amount": 2}, headers=admin_headers).json()
    product = make_product()
    order = client.post("/orders", json=_order_payload(product.id, "USED"), headers=cashier_headers)
    assert order.status_code == 201, order.text
    assert order.json()["voucher_reference"] == "USED"

    resp = client.delete(f"/vouchers/{voucher['id']}", headers=admin_headers)
    assert resp.status_code == 409

    client.delete(f"/orders/{order.json()['id']}", headers=cashier_headers)
    assert client.delete(f"/vouchers/{voucher['id']}", headers=admin_headers).status_code == 200


def test_single_use_voucher_backs_one_order(client, admin_headers, cashier_headers, make_product):
    client.post("/vouchers", json={"voucher_reference": "ONCE", "amount": 2, "multiple": False}, headers=admin_headers)
    product = make_product()

    first = client.post("/orders", json=_order_payload(product.id, "ONCE"), headers=cashier_headers)
    second = client.post("/orders", json=_order_payload(product.id, "ONCE"), headers=cashier_headers)

    assert first.status_code == 201
    assert second.status_code == 400
    assert second.json()["error"] == "voucher_unavailable"


def test_inactive_expired_and_unknown_vouchers_are_refused(client, admin_headers, cashier_headers, make_product):
    yesterday = (datetime.utcnow() - timedelta(days=1)).replace(microsecond=0).isoformat()
    client.post("/vouchers", json={"voucher_reference": "OFF", "amount": 2, "active": False}, headers=admin_headers)
    client.post("/vouchers", json={"voucher_reference": "OLD", "amount": 2, "expired_at": yesterday}, headers=admin_headers)
    product = make_product()

    inactive = client.post("/orders", json=_order_payload(product.id, "OFF"), headers=cashier_headers)
    expired = client.post("/orders", json=_order_payload(product.id, "OLD"), headers=cashier_headers)
    unknown = client.post("/orders", json=_order_payload(product.id, "GHOST"), headers=cashier_headers)

    assert inactive.status_code == 400
    assert expired.status_code == 400
    assert expired.json()["detail"] == "Voucher OLD has expired"
    assert unknown.status_code == 404
    assert client.get("/orders", headers=cashier_headers).json() == []
