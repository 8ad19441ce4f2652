import csv
import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import NullPool

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("INIT_DB_ON_STARTUP", "false")

from database import Base, create_engine_for_url, make_session_factory
from services.csv_reader import CsvRow
from services.obs.metrics import ImportMetricsCollector
from services.storage import StorageService


PRODUCT_HEADER = [
    "_id", "name", "price", "description", "category", "stock", "avgRating",
    "metaDescription", "metaTitle", "metaTags[0]", "metaTags[1]", "metaTags[2]",
    "reviews[0]._id", "reviews[0].name", "reviews[0].rating", "reviews[0].comment",
    "reviews[0].isAnonymous", "reviews[0].createdAt", "createdAt", "updatedAt",
]

ORDER_HEADER = [
    "_id", "name", "email", "shippingAddress", "mobile", "total", "status",
    "items[0].id", "items[0].name", "items[0].quantity", "items[0].price", "items[0].image",
    "items[1].id", "items[1].name", "items[1].quantity", "items[1].price", "items[1].image",
    "courier.trackingId", "courier.partnerId", "courier.status",
    "courier.details.consignmentId", "courier.details.invoice", "courier.details.status",
    "courier.details.createdAt", "courier.createdAt", "courier.updatedAt",
    "createdAt", "updatedAt",
]


def make_row(header, values, line_number=2) -> CsvRow:
    header_map = {}
    for idx, name in enumerate(header):
        header_map.setdefault(name, idx)
    return CsvRow(line_number=line_number, values=list(values), header_map=header_map)


def write_csv(path: Path, header, rows) -> str:
    with open(path, "w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh)
        writer.writerow(header)
        for row in rows:
            writer.writerow(row)
    return str(path)


def product_row(name="Dragon Magic Condom", price="790", category="Dragon Magic Condom", **extra):
    fields = {"_id": "p1", "name": name, "price": price, "category": category, "stock": "10"}
    fields.update(extra)
    return [fields.get(col, "") for col in PRODUCT_HEADER]


def order_row(**fields):
    base = {"_id": "o1", "name": "Rahim", "email": "", "shippingAddress": "Dhaka",
            "mobile": "01700000000", "total": "790", "status": "pending",
            "createdAt": "2025-05-26T10:00:00.000Z", "updatedAt": "2025-05-26T10:00:00.000Z"}
    base.update(fields)
    return [base.get(col, "") for col in ORDER_HEADER]


@pytest.fixture
def db_url(tmp_path):
    """File SQLite database with all tables created."""
    db_path = tmp_path / "test.db"
    sync_engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()
    return f"sqlite+aiosqlite:///{db_path}"


@pytest.fixture
def engine(db_url):
    return create_engine_for_url(db_url, poolclass=NullPool)


@pytest.fixture
def storage(engine):
    return StorageService(make_session_factory(engine))


@pytest.fixture
def metrics():
    return ImportMetricsCollector()


@pytest.fixture
def processor(storage, metrics):
    from services.csv_processor import CSVProcessor
    return CSVProcessor(storage=storage, metrics=metrics)
