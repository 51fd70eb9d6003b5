import io


def test_health_check_is_public(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"


def test_unknown_route_returns_json(client):
    response = client.get("/api/no-existe")
    assert response.status_code == 404
    assert response.get_json()["error"] == "not_found"


def test_upload_and_download(client, seeded_db, auth_headers):
    headers = auth_headers(seeded_db["client"])
    response = client.post(
        "/api/upload",
        data={"file": (io.BytesIO(b"contenido del log"), "error log.txt")},
        content_type="multipart/form-data",
        headers=headers,
    )

    assert response.status_code == 201
    url = response.get_json()["url"]
    assert url.startswith("/uploads/")
    assert url.endswith("_error_log.txt")

    download = client.get(url, headers=headers)
    assert download.status_code == 200
    assert download.data == b"contenido del log"


def test_upload_requires_file_and_token(client, seeded_db, auth_headers):
    assert client.post("/api/upload").status_code == 401

    response = client.post("/api/upload", data={}, headers=auth_headers(seeded_db["e1"]))
    assert response.status_code == 400
    assert "file" in response.get_json()["errors"]


def test_uploaded_names_are_unguessable_and_need_a_token(client, seeded_db, auth_headers):
    headers = auth_headers(seeded_db["client"])
    urls = [
        client.post(
            "/api/upload",
            data={"file": (io.BytesIO(b"captura"), "captura.png")},
            content_type="multipart/form-data",
            headers=headers,
        ).get_json()["url"]
        for _ in range(2)
    ]

    assert urls[0] != urls[1]
    assert client.get(urls[0]).status_code == 401
