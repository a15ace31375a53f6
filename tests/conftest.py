"""
Pytest configuration and shared fixtures.

Registers the integration marker (real email delivery) and provides a
temporary SQLite store, a fast exporter and an API client whose
dependencies point at them.
"""

import os
import tempfile

# The module-level store opens DATABASE_PATH on import; keep it out of the repo
_fd, _IMPORT_DB = tempfile.mkstemp(suffix=".db")
os.close(_fd)
os.environ.setdefault("DATABASE_PATH", _IMPORT_DB)

import pytest
from fastapi.testclient import TestClient
from invoicemax.api.deps import get_boards, get_dispatcher, get_exporter, get_store, get_sync
from invoicemax.models.document import Document, DocumentKind, LineItem
from invoicemax.services.email import EmailDispatcher
from invoicemax.services.export import DocumentExporter, PreviewBoards
from invoicemax.services.storage import SQLiteDocumentStore
from invoicemax.services.sync import DraftSyncService

EMAIL_API_URL = "https://api.resend.test/emails"


def pytest_addoption(parser):
    """Add custom command-line options"""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run integration tests against the real email provider"
    )


def pytest_configure(config):
    """Register custom markers"""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test requiring a real RESEND_API_KEY"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is specified"""
    if config.getoption("--run-integration"):
        return

    skip_integration = pytest.mark.skip(reason="need --run-integration option to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


@pytest.fixture
def db_path():
    """Create a temporary database file for testing"""
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)
    yield path
    # Cleanup
    if os.path.exists(path):
        os.remove(path)


@pytest.fixture
def store(db_path):
    return SQLiteDocumentStore(db_path)


@pytest.fixture
def exporter():
    return DocumentExporter(settle_seconds=0)


@pytest.fixture
def dispatcher():
    return EmailDispatcher(api_key="re_test_key", api_url=EMAIL_API_URL)


@pytest.fixture
def invoice():
    return Document(
        kind=DocumentKind.INVOICE,
        business_name="Acme Supplies",
        business_email="billing@acme.test",
        business_address="12 Marina Road, Lagos",
        client_name="Globex Ltd",
        client_email="accounts@globex.test",
        invoice_number="INV-1001",
        invoice_date="2026-10-01",
        due_date="2026-10-31",
        currency="NGN",
        items=[
            LineItem(description="Consulting", quantity=2, unit_price=10, tax_rate=10, discount=20),
            LineItem(description="Hosting", quantity=1, unit_price=50),
        ],
        notes="Thanks for your business.",
        terms="Payment due within 30 days.",
    )


@pytest.fixture
def receipt():
    return Document(
        kind=DocumentKind.RECEIPT,
        business_name="Acme Supplies",
        client_name="Globex Ltd",
        invoice_number="REC-42",
        invoice_date="2026-10-02",
        payment_date="2026-10-02",
        payment_method="Bank transfer",
        items=[LineItem(description="Paper", quantity=3, unit_price=100)],
        amount_paid=250,
    )


@pytest.fixture
def api(store, exporter, dispatcher):
    """TestClient with every service dependency pointed at per-test instances."""
    from invoicemax.api.main import app

    sync = DraftSyncService(store, window=0.05)
    boards = PreviewBoards()
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_sync] = lambda: sync
    app.dependency_overrides[get_boards] = lambda: boards
    app.dependency_overrides[get_exporter] = lambda: exporter
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    # Context manager keeps one event loop alive for the debounce timers
    with TestClient(app) as client:
        client.boards = boards
        client.sync = sync
        yield client
    app.dependency_overrides.clear()
