from backend.app import models


def test_create_and_read_port(client):
    response = client.post(
        "/ports",
        json={"port_number": 5, "port_capacity": 3, "description": "Core switch"},
    )

    assert response.status_code == 201, response.json()
    created = response.json()
    assert created["used_ports"] == 0
    assert created["available"] == 3

    detail = client.get("/ports/5")
    assert detail.status_code == 200
    assert detail.json()["description"] == "Core switch"


def test_duplicate_port_number_is_rejected(client, port_factory):
    port_factory(5)

    response = client.post("/ports", json={"port_number": 5, "port_capacity": 1})

    assert response.status_code == 409
    assert response.json()["detail"] == "Port number already exists."


def test_list_ports_can_hide_full_ports(client, port_factory):
    port_factory(5, capacity=2, used=2)
    port_factory(6, capacity=2, used=1)

    everything = client.get("/ports").json()
    assert [item["port_number"] for item in everything["items"]] == [5, 6]
    assert everything["items"][0]["available"] == 0

    available = client.get("/ports", params={"only_available": True}).json()
    assert available["total"] == 1
    assert available["items"][0]["port_number"] == 6


def test_capacity_cannot_drop_below_slots_in_use(client, db_session, port_factory):
    port_factory(5, capacity=3, used=2)

    response = client.put("/ports/5", json={"port_capacity": 1})

    assert response.status_code == 400
    db_session.expire_all()
    assert db_session.query(models.Port).filter_by(port_number=5).one().port_capacity == 3

    grown = client.put("/ports/5", json={"port_capacity": 4})
    assert grown.status_code == 200
    assert grown.json()["available"] == 2


def test_port_with_terminals_cannot_be_deleted(client, port_factory, terminal_payload):
    port_factory(5)
    terminal_id = client.post("/terminals", json=terminal_payload("1")).json()["terminal"]["id"]

    blocked = client.delete("/ports/5")
    assert blocked.status_code == 409
    assert blocked.json()["detail"] == "Port still has terminals attached."

    assert client.delete(f"/terminals/{terminal_id}").status_code == 200
    retired = client.delete("/ports/5")
    assert retired.status_code == 409
    assert retired.json()["detail"] == "Port is still referenced by retired terminals."
    assert client.get("/ports/5").status_code == 200


def test_unused_port_can_be_deleted(client, port_factory):
    port_factory(5)

    assert client.delete("/ports/5").status_code == 204
    assert client.get("/ports/5").status_code == 404


def test_port_changes_require_an_administrator(client, login, user_factory, port_factory):
    port_factory(5)
    user_factory("teller")
    headers = login("teller")

    assert client.get("/ports", headers=headers).status_code == 200
    response = client.post("/ports", json={"port_number": 6, "port_capacity": 1}, headers=headers)
    assert response.status_code == 403
    assert response.json()["detail"] == "Administrator role required."
    assert client.delete("/ports/5", headers=headers).status_code == 403
