from datetime import datetime
from decimal import Decimal

import pytest

from conftest import ORDER_HEADER, PRODUCT_HEADER, order_row, product_row, write_csv
from services.csv_reader import CsvReader
from services.errors import PersistenceError, SchemaError, SourceMissingError
from services.record_builder import OrderGraph, OrderItemRecord, OrderRecord


def _products_csv(tmp_path, rows=None):
    rows = rows if rows is not None else [
        product_row(name="Dragon Magic Condom", price="790", **{"metaTags[0]": "dragon", "metaTags[1]": "condom"}),
        product_row(name="Super Love Toy", price="550", category="Super Love Toy", stock="3",
                    **{"reviews[0]._id": "r1", "reviews[0].name": "Karim", "reviews[0].rating": "4"}),
    ]
    return write_csv(tmp_path / "products.csv", PRODUCT_HEADER, rows)


async def test_import_products(processor, storage, tmp_path):
    summary = await processor.import_products(_products_csv(tmp_path))

    assert (summary.total, summary.imported, summary.failed) == (2, 2, 0)
    assert summary.message() == "Imported 2 products successfully. Failed: 0"

    products = await storage.get_products()
    assert [p.name for p in products] == ["Dragon Magic Condom", "Super Love Toy"]
    first, second = products
    assert first.price == Decimal("790")
    assert sorted(t.tag for t in first.meta_tags) == ["condom", "dragon"]
    assert [(i.image_path, i.is_main) for i in first.images] == [("uploads/placeholder.jpg", True)]
    assert first.reviews == []
    assert second.stock == 3
    assert [(r.name, r.rating) for r in second.reviews] == [("Karim", 4)]

    run = await storage.get_import_run(summary.run_id)
    assert run.status == "completed"
    assert (run.total_rows, run.imported_rows, run.failed_rows) == (2, 2, 0)


async def test_products_import_replaces_previous_catalog(processor, storage, tmp_path):
    path = _products_csv(tmp_path)
    await processor.import_products(path)
    await processor.import_products(path)

    assert await storage.count_products() == 2


async def test_products_import_without_truncate_appends(processor, storage, tmp_path):
    path = _products_csv(tmp_path)
    await processor.import_products(path)
    await processor.import_products(path, truncate=False)

    assert await storage.count_products() == 4


async def test_product_row_with_empty_first_column_is_still_imported(processor, storage, tmp_path):
    path = _products_csv(tmp_path, [product_row(_id="", name="No Id Toy")])
    summary = await processor.import_products(path)

    assert summary.imported == 1
    assert summary.skipped == 0


async def test_import_orders_links_products(processor, storage, tmp_path):
    await processor.import_products(_products_csv(tmp_path))
    path = write_csv(tmp_path / "orders.csv", ORDER_HEADER, [
        order_row(status="shipped", **{
            "items[0].id": "x1", "items[0].name": "dragon magic", "items[0].quantity": "2", "items[0].price": "790",
            "items[1].id": "x2", "items[1].name": "Unknown Gadget", "items[1].quantity": "1", "items[1].price": "100",
            "courier.trackingId": "TRK-9", "courier.details.consignmentId": "C-77",
        }),
        order_row(_id="", name="Skipped"),
        order_row(_id="o3", name="Karim", total="550"),
    ])

    summary = await processor.import_orders(path)

    assert (summary.total, summary.imported, summary.failed, summary.skipped) == (3, 2, 0, 1)
    assert summary.resolution["products"]["hits"] == 1
    assert summary.resolution["products"]["misses"] == 1

    orders = await storage.get_orders_with_items()
    assert [o.name for o in orders] == ["Rahim", "Karim"]
    first = orders[0]
    assert first.status == "Shipped"
    product_ids = dict(await storage.get_product_refs())
    assert [(i.name, i.product_id is not None) for i in first.items] == [
        ("dragon magic", True), ("Unknown Gadget", False),
    ]
    assert product_ids[first.items[0].product_id] == "Dragon Magic Condom"
    assert first.tracking.tracking_id == "TRK-9"
    assert first.tracking.status == "Shipped"
    assert first.tracking.details["consignmentId"] == "C-77"
    assert orders[1].items == []
    assert orders[1].tracking is None


async def test_malformed_row_is_counted_and_run_continues(processor, storage, tmp_path, metrics):
    good = order_row()
    path = write_csv(tmp_path / "orders.csv", ORDER_HEADER, [good, good[:5], order_row(_id="o2", name="Karim")])

    summary = await processor.import_orders(path)

    assert (summary.total, summary.imported, summary.failed) == (3, 2, 1)
    assert summary.errors[0]["type"] == "MalformedRowError"
    assert summary.errors[0]["line"] == 3
    assert summary.message() == "Imported 2 orders successfully. Failed: 1"
    assert metrics.get_summary()["failure_reasons"] == {"orders:MalformedRowError": 1}

    run = await storage.get_import_run(summary.run_id)
    assert run.status == "completed"
    assert run.failed_rows == 1


async def test_missing_source_file(processor, tmp_path):
    with pytest.raises(SourceMissingError):
        await processor.import_orders(str(tmp_path / "missing.csv"))


async def test_schema_failure_marks_run_failed(processor, storage, tmp_path):
    path = write_csv(tmp_path / "orders.csv", ["_id", "email"], [["o1", "a@b.c"]])

    with pytest.raises(SchemaError):
        await processor.import_orders(path)

    runs = await storage.get_recent_import_runs()
    assert len(runs) == 1
    assert runs[0].status == "failed"
    assert "total" in runs[0].error_message
    assert await storage.get_orders_with_items() == []


async def test_dry_run_writes_nothing(processor, storage, tmp_path):
    summary = await processor.import_products(_products_csv(tmp_path), dry_run=True)

    assert summary.imported == 2
    assert summary.dry_run is True
    assert summary.run_id is None
    assert await storage.count_products() == 0
    assert await storage.get_recent_import_runs() == []


async def test_failed_row_leaves_no_partial_order(storage):
    when = datetime(2025, 1, 1)
    order = OrderRecord(
        name="Rahim", email=None, shipping_address="Dhaka", mobile="017", total=Decimal("10"),
        status="Pending", created_at=when, updated_at=when,
    )
    graph = OrderGraph(
        order=order,
        items=[OrderItemRecord(name="ok", quantity=1, price=Decimal("5")),
               OrderItemRecord(name="bad", quantity=0, price=Decimal("5"))],
        line_number=7,
    )

    with pytest.raises(PersistenceError) as exc:
        await storage.persist_order_graph(graph)

    assert exc.value.transient is False
    assert exc.value.line_number == 7
    assert await storage.get_orders_with_items() == []


async def test_import_reader_from_text(processor, storage):
    reader = CsvReader.from_text("name,price,category\nSunny Toy,300,Toy Condom\n", source="upload.csv")
    summary = await processor.import_reader("products", reader, truncate=True)

    assert summary.source == "upload.csv"
    assert summary.imported == 1
    products = await storage.get_products()
    assert products[0].name == "Sunny Toy"
    assert products[0].meta_title == "Sunny Toy"


async def test_unknown_kind_rejected(processor):
    with pytest.raises(ValueError):
        await processor.import_reader("customers", CsvReader.from_text("name\nx\n"))


async def test_long_description_does_not_abort_products_import(processor, storage, tmp_path):
    path = _products_csv(tmp_path, [
        product_row(name="A"),
        product_row(name="B", description="x" * 200000),
        product_row(name="C"),
    ])

    summary = await processor.import_products(path)

    assert (summary.imported, summary.failed) == (3, 0)
    assert [p.name for p in await storage.get_products()] == ["A", "B", "C"]


async def test_invalid_bytes_do_not_abort_products_import(processor, storage, tmp_path):
    path = _products_csv(tmp_path, [product_row(name="A"), product_row(name="BAD"), product_row(name="C")])
    with open(path, "rb") as fh:
        data = fh.read()
    with open(path, "wb") as fh:
        fh.write(data.replace(b"BAD", b"B\xff\xfe"))

    summary = await processor.import_products(path)

    assert (summary.total, summary.imported, summary.failed) == (3, 3, 0)
    names = [p.name for p in await storage.get_products()]
    assert names == ["A", "B\ufffd\ufffd", "C"]
