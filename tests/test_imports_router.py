import asyncio
import csv
import io

import pytest
from fastapi.testclient import TestClient

from conftest import ORDER_HEADER, PRODUCT_HEADER, order_row, product_row
from main import app
from routers.imports import get_storage
from services.homepage_sections import seed_homepage_sections


def _csv_bytes(header, rows):
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(header)
    writer.writerows(rows)
    return buf.getvalue().encode("utf-8")


@pytest.fixture
def client(storage):
    app.dependency_overrides[get_storage] = lambda: storage
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _upload(client, kind, content, filename="data.csv", **params):
    return client.post(f"/api/import/{kind}", params=params, files={"file": (filename, content, "text/csv")})


def test_import_products_sync(client):
    content = _csv_bytes(PRODUCT_HEADER, [product_row(), product_row(name="Sunny Toy")])

    response = _upload(client, "products", content)

    assert response.status_code == 200
    body = response.json()
    assert body["imported"] == 2
    assert body["failed"] == 0
    assert body["message"] == "Imported 2 products successfully. Failed: 0"
    assert response.headers["X-Request-Id"]

    run = client.get(f"/api/import-runs/{body['run_id']}").json()
    assert run["status"] == "completed"
    assert run["importedRows"] == 2


def test_import_orders_reports_failures(client):
    good = order_row()
    content = _csv_bytes(ORDER_HEADER, [good, good[:3]])

    body = _upload(client, "orders", content).json()

    assert (body["imported"], body["failed"]) == (1, 1)
    assert body["errors"][0]["type"] == "MalformedRowError"


def test_dry_run_upload(client, storage):
    content = _csv_bytes(PRODUCT_HEADER, [product_row()])

    body = _upload(client, "products", content, dry_run="true").json()

    assert body["dry_run"] is True
    assert body["run_id"] is None
    assert client.get("/api/import-runs").json() == []


@pytest.mark.parametrize("kind,filename,content,detail", [
    ("customers", "a.csv", b"name\nx\n", "Invalid import kind"),
    ("orders", "a.txt", b"name\nx\n", "Only CSV files are allowed"),
    ("orders", "a.csv", b"", "Empty file"),
    ("orders", "a.csv", b"\n\n", "CSV has no header row"),
    ("orders", "a.csv", b"_id,email\no1,a@b.c\n", "missing required columns"),
])
def test_upload_rejections(client, kind, filename, content, detail):
    response = _upload(client, kind, content, filename=filename)

    assert response.status_code == 400
    assert detail in response.json()["error"]


def test_background_import_creates_run(client):
    content = _csv_bytes(PRODUCT_HEADER, [product_row()])

    response = _upload(client, "products", content, background="true")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "processing"
    run = client.get(f"/api/import-runs/{body['runId']}").json()
    assert run["kind"] == "products"


def test_unknown_run_is_404(client):
    response = client.get("/api/import-runs/does-not-exist")
    assert response.status_code == 404
    assert response.json() == {"error": "Import run not found"}


def test_homepage_sections_and_dedupe(client, storage):
    asyncio.run(seed_homepage_sections(storage))
    asyncio.run(storage.create_homepage_section({"section_name": "hero", "sort_order": 50}))

    sections = client.get("/api/homepage-sections").json()
    assert [s["sectionName"] for s in sections][:2] == ["hero", "featured_products"]
    assert len(sections) == 7

    preview = client.post("/api/homepage-sections/dedupe", params={"dry_run": "true"}).json()
    assert preview == {
        "dry_run": True, "duplicate_keys": 1, "to_delete": 1,
        "groups": [{"key": "hero", "kept": 1, "removed": [7]}],
    }

    client.post("/api/homepage-sections/dedupe")
    assert len(client.get("/api/homepage-sections").json()) == 6


def test_import_metrics_and_health(client):
    assert "counters" in client.get("/api/import-metrics").json()
    assert client.get("/").json()["ok"] is True
    assert client.get("/api/health").status_code == 200


def test_upload_keeps_catalog_unless_truncate_requested(client, storage):
    content = _csv_bytes(PRODUCT_HEADER, [product_row()])

    _upload(client, "products", content)
    _upload(client, "products", content)
    assert asyncio.run(storage.count_products()) == 2

    _upload(client, "products", content, truncate="true")
    assert asyncio.run(storage.count_products()) == 1
