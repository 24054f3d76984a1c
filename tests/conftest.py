"""
Pytest configuration and fixtures for the affiliate service tests.

Every test gets a freshly created schema in a file-backed SQLite database so
that sessions in different threads see each other's commits. External
collaborators (merchant platform API, mail) are replaced with in-memory fakes.
"""
import os
import sys
import pathlib
import tempfile
from decimal import Decimal

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

_TMP_DIR = tempfile.mkdtemp(prefix="affiliates-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TMP_DIR}/app.db")
os.environ.setdefault("ENABLE_TASK_SCHEDULER", "false")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from core.email_sender import EmailSender, set_email_sender
from core.exceptions import NotificationDeliveryFailure
from core.merchant_api import MerchantApiError, MerchantApiService, set_merchant_api
from database.models import Base
from database import affiliate_models  # noqa: F401 - register tables

TEST_DATABASE_URL = f"sqlite:///{_TMP_DIR}/test.db"


@pytest.fixture(scope="session")
def test_engine():
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False, "timeout": 30},
        echo=False  # Set to True for SQL debugging
    )

    # pysqlite needs SQLAlchemy to own BEGIN for savepoints to work; IMMEDIATE
    # serializes writers the way row locks would on PostgreSQL.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(test_engine):
    """Clean schema per test; yields the session factory bound to it."""
    Base.metadata.create_all(bind=test_engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ============================================================================
# EXTERNAL COLLABORATORS
# ============================================================================

class FakeMerchantApi(MerchantApiService):
    """Records calls instead of talking to the merchant platform."""

    def __init__(self):
        super().__init__(base_url="http://merchant-api.test", api_key="test")
        self.issued_codes = []
        self.payouts = []
        self.fail_discount_codes = False
        self.fail_payouts = False
        self.fail_references = set()

    def create_discount_code(self, merchant_id, merchant_domain):
        if self.fail_discount_codes:
            raise MerchantApiError("discount service unavailable")
        code = f"CODE{len(self.issued_codes) + 1:04d}"
        self.issued_codes.append(code)
        return {"id": len(self.issued_codes), "code": code}

    def send_payout(self, email, amount, reference):
        if self.fail_payouts or reference in self.fail_references:
            raise MerchantApiError("payout rejected")
        self.payouts.append({"email": email, "amount": Decimal(str(amount)), "reference": reference})
        return {"status": "ok", "reference": reference}


class RecordingEmailSender(EmailSender):
    def __init__(self):
        self.sent = []
        self.fail = False

    def send_email(self, to_email, subject, body_text):
        if self.fail:
            raise NotificationDeliveryFailure(to_email, "smtp down")
        self.sent.append({"to": to_email, "subject": subject, "body": body_text})


@pytest.fixture(autouse=True)
def fake_api():
    api = FakeMerchantApi()
    set_merchant_api(api)
    yield api
    set_merchant_api(None)


@pytest.fixture(autouse=True)
def email_sender():
    sender = RecordingEmailSender()
    set_email_sender(sender)
    yield sender
    set_email_sender(None)


# ============================================================================
# DOMAIN HELPERS
# ============================================================================

@pytest.fixture()
def merchant(db):
    """Merchant attached to the `db` session. Single-session tests only."""
    from services.merchant_service import MerchantService
    return MerchantService(db).register(
        domain="shop.example.com",
        name="Example Shop",
        email="owner@shop.example.com",
        api_key="merchant-secret-key",
    )


@pytest.fixture()
def client(session_factory):
    from fastapi.testclient import TestClient
    from database.config import get_db
    from server import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture()
def auth_headers(client):
    """Registers the example merchant over HTTP and logs it in."""
    response = client.post("/api/merchant/register", json={
        "domain": "shop.example.com",
        "name": "Example Shop",
        "email": "owner@shop.example.com",
        "api_key": "merchant-secret-key",
    })
    assert response.status_code == 201
    response = client.post("/api/merchant/token", json={
        "email": "owner@shop.example.com",
        "api_key": "merchant-secret-key",
    })
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
