def _client_payload(**overrides) -> dict:
    payload = {
        "title": "Mme",
        "first_name": "Amina",
        "last_name": "Benali",
        "email": "Amina@Example.com",
        "company": "Cafe du Port",
        "addresses": [
            {"street": "1 rue du Port", "city": "Tunis", "state": "Tunis", "country": "TN", "is_primary": True},
        ],
        "phoneNumbers": [
            {"phone_number": "+21620000000", "phone_type": "mobile", "is_primary": True},
            {"phone_number": "+21671000000", "phone_type": "WORK"},
        ],
    }
    payload.update(overrides)
    return payload


def test_create_and_get_client_with_contacts(client, cashier_headers):
    resp = client.post("/clients", json=_client_payload(), headers=cashier_headers)

    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["email"] == "amina@example.com"
    assert body["title"] == "Mme"
    assert body["active"] is True
    assert [address["city"] for address in body["addresses"]] == ["Tunis"]
    assert [phone["phone_type"] for phone in body["phone_numbers"]] == ["MOBILE", "WORK"]
    assert body["order_ids"] == []

    fetched = client.get(f"/clients/{body['id']}", headers=cashier_headers).json()
    assert fetched == body


def test_duplicate_email_is_a_conflict(client, cashier_headers):
    assert client.post("/clients", json=_client_payload(), headers=cashier_headers).status_code == 201

    resp = client.post("/clients", json=_client_payload(first_name="Other"), headers=cashier_headers)

    assert resp.status_code == 409


def test_update_replaces_contact_lists(client, cashier_headers):
    created = client.post("/clients", json=_client_payload(), headers=cashier_headers).json()
    kept_phone = created["phone_numbers"][0]

    resp = client.put(
        f"/clients/{created['id']}",
        json={
            "company": "Cafe de la Gare",
            "addresses": [{"street": "9 avenue Habib", "city": "Sfax", "country": "TN"}],
            "phone_numbers": [{"id": kept_phone["id"], "phone_number": "+21620999999", "phone_type": "HOME"}],
        },
        headers=cashier_headers,
    )

    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert body["company"] == "Cafe de la Gare"
    assert body["first_name"] == "Amina"
    assert [address["city"] for address in body["addresses"]] == ["Sfax"]
    assert body["phone_numbers"] == [
        {"id": kept_phone["id"], "phone_number": "+21620999999", "phone_type": "HOME", "is_primary": False}
    ]


def test_update_with_foreign_contact_id_is_rejected(client, cashier_headers):
    first = client.post("/clients", json=_client_payload(), headers=cashier_headers).json()
    second = client.post("/clients", json=_client_payload(email="other@example.com"), headers=cashier_headers).json()

    resp = client.put(
        f"/clients/{second['id']}",
        json={"addresses": [{"id": first["addresses"][0]["id"], "street": "x", "city": "y", "country": "z"}]},
        headers=cashier_headers,
    )

    assert resp.status_code == 404
    again = client.get(f"/clients/{first['id']}", headers=cashier_headers).json()
    assert again["addresses"] == first["addresses"]


def test_list_clients_filters(client, cashier_headers):
    client.post("/clients", json=_client_payload(), headers=cashier_headers)
    client.post(
        "/clients",
        json=_client_payload(email="karim@example.com", first_name="Karim", company="Garage", active=False),
        headers=cashier_headers,
    )

    by_search = client.get("/clients", params={"search": "karim"}, headers=cashier_headers).json()
    by_active = client.get("/clients", params={"active": "true"}, headers=cashier_headers).json()
    by_company = client.get("/clients", params={"company": "port"}, headers=cashier_headers).json()

    assert [c["first_name"] for c in by_search] == ["Karim"]
    assert [c["first_name"] for c in by_active] == ["Amina"]
    assert [c["first_name"] for c in by_company] == ["Amina"]


def test_client_with_orders_cannot_be_deleted(client, cashier_headers, make_product):
    created = client.post("/clients", json=_client_payload(), headers=cashier_headers).json()
    product = make_product()
    order = client.post(
        "/orders",
        json={"client_id": created["id"], "products": [{"product_id": product.id, "quantity": 1, "price": "2.50"}]},
        headers=cashier_headers,
    ).json()

    resp = client.delete(f"/clients/{created['id']}", headers=cashier_headers)
    assert resp.status_code == 409
    assert client.get(f"/clients/{created['id']}", headers=cashier_headers).json()["order_ids"] == [order["id"]]

    client.delete(f"/orders/{order['id']}", headers=cashier_headers)
    assert client.delete(f"/clients/{created['id']}", headers=cashier_headers).status_code == 200
    assert client.get(f"/clients/{created['id']}", headers=cashier_headers).status_code == 404


def test_clients_require_authentication(client):
    assert client.get("/clients").status_code == 401
