from conftest import ORDER_HEADER, PRODUCT_HEADER, order_row, product_row, write_csv
from services.results import ImportSummary
from services.seeder import EXIT_OK, EXIT_PARTIAL, EXIT_SOURCE_MISSING, exit_code_for, run_seed


def test_exit_codes():
    clean = ImportSummary(kind="orders", source="o.csv", imported=3)
    partial = ImportSummary(kind="orders", source="o.csv", imported=2, failed=1)

    assert exit_code_for([clean]) == EXIT_OK
    assert exit_code_for([clean, partial]) == EXIT_PARTIAL
    assert exit_code_for([clean, None]) == EXIT_SOURCE_MISSING
    assert exit_code_for([clean], source_missing=True) == EXIT_SOURCE_MISSING


async def test_run_seed_full(storage, processor, tmp_path):
    products = write_csv(tmp_path / "products.csv", PRODUCT_HEADER, [
        product_row(name="Dragon Magic Condom", category="Dragon Magic Condom"),
    ])
    orders = write_csv(tmp_path / "orders.csv", ORDER_HEADER, [
        order_row(**{"items[0].id": "p1", "items[0].name": "Dragon Magic Condom",
                     "items[0].quantity": "1", "items[0].price": "790"}),
    ])

    report = await run_seed(storage, products, orders, processor=processor)

    assert report.fatal_errors == []
    assert [s.kind for s in report.summaries] == ["products", "orders"]
    assert report.categories == 41
    assert report.products_categorized == 1
    assert report.homepage_sections == 6
    assert exit_code_for(report.summaries) == EXIT_OK

    order = (await storage.get_orders_with_items())[0]
    assert order.items[0].product_id is not None


async def test_run_seed_continues_past_missing_products(storage, processor, tmp_path):
    orders = write_csv(tmp_path / "orders.csv", ORDER_HEADER, [order_row()])

    report = await run_seed(storage, str(tmp_path / "missing.csv"), orders, processor=processor)

    assert len(report.fatal_errors) == 1
    assert [s.kind for s in report.summaries] == ["orders"]
    assert report.categories == 41
    assert report.to_dict()["homepage_sections"] == 6
    assert exit_code_for(report.summaries, source_missing=bool(report.fatal_errors)) == EXIT_SOURCE_MISSING
