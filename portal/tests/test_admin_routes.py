import io


def test_admin_requires_token(client):
    assert client.get("/admin/products").status_code == 401
    response = client.get("/admin/products", headers={"X-Admin-Token": "wrong"})
    assert response.status_code == 403
    assert response.get_json()["error"] == "Admin privileges required"


def test_admin_lists_disabled_products(client, admin_headers):
    response = client.get("/admin/products", headers=admin_headers)
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["source_id"] == "main"
    assert [item["name"] for item in payload["products"]] == ["Planner", "Budget", "Empty"]


def test_create_product_visible_immediately(client, admin_headers):
    # warm the cache first
    assert len(client.get("/products").get_json()) == 2

    response = client.post(
        "/admin/products",
        json={"name": "Budget2", "containerId": "folder-budget", "category": "Finance"},
        headers=admin_headers,
    )
    assert response.status_code == 201
    assert response.get_json()["product"]["display_name"] == "Budget2"

    names = [item["name"] for item in client.get("/products").get_json()]
    assert "Budget2" in names


def test_create_duplicate_conflicts(client, admin_headers):
    response = client.post(
        "/admin/products",
        json={"name": "planner", "containerId": "folder-plan"},
        headers=admin_headers,
    )
    assert response.status_code == 409


def test_create_invalid_name(client, admin_headers):
    response = client.post(
        "/admin/products",
        json={"name": "bad name", "containerId": "folder-plan"},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert "name" in response.get_json()["error"]


def test_create_unreachable_container(client, admin_headers):
    response = client.post(
        "/admin/products",
        json={"name": "Ghost", "containerId": "no-folder"},
        headers=admin_headers,
    )
    assert response.status_code == 502
    assert "no-folder" not in response.get_json()["error"]


def test_update_toggle_delete(client, admin_headers):
    response = client.put("/admin/products/Budget", json={"description": "Yearly"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.get_json()["product"]["description"] == "Yearly"

    response = client.post("/admin/products/Budget/toggle", headers=admin_headers)
    assert response.get_json() == {"ok": True, "name": "Budget", "enabled": True}
    assert client.get("/t/Budget").status_code == 302

    response = client.delete("/admin/products/Budget", headers=admin_headers)
    assert response.status_code == 200
    assert client.get("/t/Budget").status_code == 404
    assert client.delete("/admin/products/Budget", headers=admin_headers).status_code == 404


def test_update_cannot_rename(client, admin_headers):
    response = client.put("/admin/products/Planner", json={"name": "Other"}, headers=admin_headers)
    assert response.status_code == 400


def test_bulk_endpoint_reports_each_item(client, admin_headers):
    response = client.post(
        "/admin/products/bulk",
        json={
            "operations": [
                {"action": "add", "data": {"name": "Extra", "containerId": "folder-empty"}},
                {"action": "delete", "name": "Missing"},
            ]
        },
        headers=admin_headers,
    )
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["succeeded"] == 1
    assert payload["failed"] == 1
    assert payload["results"][1]["ok"] is False


def test_csv_import(client, admin_headers):
    body = (
        "name,containerId,displayName,enabled,description,category,tags\n"
        "Invoice,folder-budget,Invoice form,TRUE,,Finance,\"billing, forms\"\n"
        "Planner,folder-plan,,TRUE,,,\n"
    )
    response = client.post(
        "/admin/products/import",
        data={"file": (io.BytesIO(body.encode("utf-8")), "catalog.csv")},
        headers=admin_headers,
        content_type="multipart/form-data",
    )
    assert response.status_code == 200
    payload = response.get_json()
    assert payload["succeeded"] == 1
    assert payload["failed"] == 1

    products = client.get("/admin/products", headers=admin_headers).get_json()["products"]
    invoice = next(item for item in products if item["name"] == "Invoice")
    assert invoice["tags"] == ["billing", "forms"]


def test_csv_import_requires_header(client, admin_headers):
    response = client.post(
        "/admin/products/import",
        data="foo,bar\n1,2\n",
        headers=admin_headers,
        content_type="text/csv",
    )
    assert response.status_code == 400


def test_source_switching(client, admin_headers, portal_env):
    response = client.get("/admin/source", headers=admin_headers)
    assert response.get_json()["tier"] == "default"
    assert response.get_json()["available"] == ["main"]

    response = client.put("/admin/source", json={"source_id": "nowhere"}, headers=admin_headers)
    assert response.status_code == 503

    response = client.put("/admin/source", json={"source_id": "fresh", "create": True}, headers=admin_headers)
    assert response.status_code == 200
    assert response.get_json() == {"source_id": "fresh", "tier": "override", "cached": False}
    assert client.get("/products").get_json() == []

    response = client.delete("/admin/source", headers=admin_headers)
    assert response.get_json()["tier"] == "default"
    assert len(client.get("/products").get_json()) == 2


def test_invalidate_cache_endpoint(client, admin_headers, portal_env):
    _, services = portal_env
    client.get("/products")
    assert services.resolver.describe().cached is True
    client.post("/admin/cache/invalidate", headers=admin_headers)
    assert services.resolver.describe().cached is False


def test_stats_endpoint(client, admin_headers):
    client.get("/t/Planner")
    response = client.get("/admin/stats", headers=admin_headers)
    assert response.get_json() == {"Planner@latest": 1}


def test_csv_import_rejects_non_utf8(client, admin_headers):
    body = "name,containerId\nCaf\xe9,folder-budget\n".encode("latin-1")
    response = client.post(
        "/admin/products/import",
        data={"file": (io.BytesIO(body), "catalog.csv")},
        headers=admin_headers,
        content_type="multipart/form-data",
    )
    assert response.status_code == 400
    assert "UTF-8" in response.get_json()["error"]

    products = client.get("/admin/products", headers=admin_headers).get_json()["products"]
    assert all(not item["name"].startswith("Caf") for item in products)
