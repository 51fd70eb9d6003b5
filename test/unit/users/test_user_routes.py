def test_admin_creates_employee_and_client(client, seeded_db, auth_headers):
    admin = auth_headers(seeded_db["admin"])

    employee = client.post("/api/users", json={
        "name": "Nueva Empleada", "email": "nueva@ticketdesk.com", "password": "Password123",
        "role": "employee", "department": "Support",
    }, headers=admin)
    assert employee.status_code == 201
    assert employee.get_json()["role"] == "employee"
    assert "companyCode" not in employee.get_json()

    new_client = client.post("/api/users", json={
        "name": "Initech", "email": "owner@initech.com", "password": "Password123",
        "role": "client", "companyCode": "INITECH",
    }, headers=admin)
    assert new_client.status_code == 201
    assert new_client.get_json()["companyCode"] == "INITECH"

    login = client.post("/api/auth/login", json={"email": "owner@initech.com", "password": "Password123"})
    assert login.status_code == 200


def test_client_creates_client_user(client, seeded_db, auth_headers):
    response = client.post("/api/users", json={
        "name": "Ayudante", "email": "ayudante@acme.com", "password": "Password123", "role": "client_user",
    }, headers=auth_headers(seeded_db["client"]))

    assert response.status_code == 201
    data = response.get_json()
    assert data["companyCode"] == "ACME"
    assert data["createdByClient"] == seeded_db["client"].id


def test_create_user_validation(client, seeded_db, auth_headers):
    response = client.post("/api/users", json={
        "name": "Débil", "email": "no-es-un-correo", "password": "corta", "role": "superuser",
    }, headers=auth_headers(seeded_db["admin"]))

    assert response.status_code == 400
    assert {"email", "password", "role"} <= set(response.get_json()["errors"])


def test_create_user_role_rules(client, seeded_db, auth_headers):
    payload = {"name": "Otro Admin", "email": "otro@ticketdesk.com", "password": "Password123", "role": "admin"}
    assert client.post("/api/users", json=payload, headers=auth_headers(seeded_db["admin"])).status_code == 403
    assert client.post("/api/users", json=payload, headers=auth_headers(seeded_db["e1"])).status_code == 403
    assert client.post("/api/users", json=payload, headers=auth_headers(seeded_db["client_user"])).status_code == 403


def test_admin_listings(client, seeded_db, auth_headers, give_workload):
    admin = auth_headers(seeded_db["admin"])
    give_workload(seeded_db["e1"], 2)

    employees = client.get("/api/users/employees", headers=admin).get_json()
    assert {e["id"] for e in employees} == {seeded_db["e1"].id, seeded_db["e2"].id, seeded_db["billing"].id}

    clients = client.get("/api/users/clients", headers=admin).get_json()
    assert {c["companyCode"] for c in clients} == {"ACME", "OTHER"}

    workload = {w["id"]: w for w in client.get("/api/users/employees/workload", headers=admin).get_json()}
    assert workload[seeded_db["e1"].id]["activeTickets"] == 2
    assert workload[seeded_db["e1"].id]["available"] is True

    assert client.get("/api/users/employees", headers=auth_headers(seeded_db["client"])).status_code == 403


def test_client_user_listing(client, seeded_db, auth_headers):
    response = client.get("/api/users/client-users", headers=auth_headers(seeded_db["client"]))
    assert response.status_code == 200
    assert [u["id"] for u in response.get_json()] == [seeded_db["client_user"].id]

    assert client.get("/api/users/client-users", headers=auth_headers(seeded_db["admin"])).status_code == 403


def test_deactivate_and_reactivate(client, seeded_db, auth_headers):
    owner = auth_headers(seeded_db["client"])
    user_id = seeded_db["client_user"].id

    response = client.patch(f"/api/users/{user_id}/deactivate", headers=owner)
    assert response.status_code == 200
    assert response.get_json()["isActive"] is False

    login = client.post("/api/auth/login", json={"email": "staff@acme.com", "password": "ThisIsA-Valid-Password123"})
    assert login.status_code == 401

    response = client.patch(f"/api/users/{user_id}/reactivate", headers=owner)
    assert response.get_json()["isActive"] is True


def test_deactivate_rules(client, seeded_db, auth_headers):
    admin = seeded_db["admin"]
    assert client.patch(f"/api/users/{admin.id}/deactivate", headers=auth_headers(admin)).status_code == 400
    assert client.patch(
        f"/api/users/{seeded_db['e1'].id}/deactivate", headers=auth_headers(seeded_db["client"])
    ).status_code == 403
    assert client.patch(
        f"/api/users/{seeded_db['client'].id}/deactivate", headers=auth_headers(seeded_db["e1"])
    ).status_code == 403
    assert client.patch(
        "/api/users/000000000000000000000000/deactivate", headers=auth_headers(admin)
    ).status_code == 404
