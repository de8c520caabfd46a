def test_configuration_defaults_to_zero_tax(client, cashier_headers):
    resp = client.get("/configuration", headers=cashier_headers)

    assert resp.status_code == 200
    assert resp.json()["id"] == 1
    assert resp.json()["tax"] == 0


def test_admin_sets_tax(client, admin_headers, cashier_headers):
    resp = client.post("/configuration", json={"tax": 19}, headers=admin_headers)

    assert resp.status_code == 200
    assert resp.json()["tax"] == 19
    assert client.get("/configuration", headers=cashier_headers).json()["tax"] == 19

    again = client.post("/configuration", json={"tax": 7}, headers=admin_headers)
    assert again.json()["id"] == 1
    assert again.json()["tax"] == 7


def test_tax_must_be_a_percentage(client, admin_headers):
    assert client.post("/configuration", json={"tax": 101}, headers=admin_headers).status_code == 422
    assert client.post("/configuration", json={"tax": -1}, headers=admin_headers).status_code == 422


def test_cashier_cannot_set_tax(client, cashier_headers):
    assert client.post("/configuration", json={"tax": 5}, headers=cashier_headers).status_code == 403
