import os
import time

# Settings are read at import time; provide test values before importing app.*
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine

from app.models import inventory as _inventory_models  # noqa: F401
from app.models import product as _product_models  # noqa: F401
from app.models import variant as _variant_models  # noqa: F401
from app.repositories.inventory_repo import InventoryRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.product import ColorInput, ProductCreate, SizeInput
from app.services.inventory_ledger import InventoryLedger
from app.services.product_service import ProductService
from app.services.reconciler import VariantReconciler


class FakeBlobStore:
    """In-memory BlobStore; uploads whose bytes are in `fail_on` raise."""

    def __init__(self, fail_on=(), delay: float = 0.0):
        self.fail_on = set(fail_on)
        self.delay = delay
        self.uploads: dict[str, bytes] = {}
        self.deleted: list[str] = []

    def upload(self, path: str, file_bytes: bytes) -> str:
        if self.delay:
            time.sleep(self.delay)
        if file_bytes in self.fail_on:
            raise RuntimeError("storage unavailable")
        self.uploads[path] = file_bytes
        return f"https://cdn.test/assets/{path}"

    def delete_url(self, url: str) -> None:
        self.deleted.append(url)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def product_repo():
    return ProductRepository()


@pytest.fixture
def inventory_repo():
    return InventoryRepository()


@pytest.fixture
def product_service(product_repo):
    return ProductService(product_repo)


@pytest.fixture
def reconciler(product_repo):
    return VariantReconciler(product_repo, seed_stock=10, low_stock_threshold=5)


@pytest.fixture
def ledger(inventory_repo):
    return InventoryLedger(inventory_repo)


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def make_product(session, product_service):
    def _make(name: str = "Beast Mode Hoodie", **overrides):
        payload = ProductCreate(name=name, price=overrides.pop("price", 3299.0), **overrides)
        return product_service.create_product(session, payload)

    return _make


def new_colors(*names: str) -> list[ColorInput]:
    """Editor rows for colors added in this session (no ids yet)."""
    return [ColorInput(name=name, key=f"tmp-{i}") for i, name in enumerate(names)]


def new_sizes(*labels: str) -> list[SizeInput]:
    return [SizeInput(label=label) for label in labels]


def current_colors(session, repo, product_id) -> list[ColorInput]:
    """Editor rows for the colors as they are persisted now."""
    return [
        ColorInput(id=c.id, name=c.name, hex_value=c.hex_value)
        for c in repo.list_colors(session, product_id)
    ]


def current_sizes(session, repo, product_id) -> list[SizeInput]:
    return [SizeInput(id=s.id, label=s.label) for s in repo.list_sizes(session, product_id)]
