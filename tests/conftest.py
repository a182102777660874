"""Shared test fixtures for the RADIUS Accounting Report Service tests.

Provides a test accounting database (in-memory SQLite), a test session, an
in-memory stand-in for the managed backend's agenda table and a fake
payment gateway, both served through ``httpx.MockTransport``, and a
FastAPI test client wired to all of them.
"""

import json
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from radreport.config import Settings
from radreport.database import Base, get_db
from radreport.main import create_app
from radreport.models import Nas, RadAcct
from radreport.services.backend import BackendClient
from radreport.services.payments import PaymentGatewayClient

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"
TEST_BACKEND_URL = "http://backend.test"
TEST_GATEWAY_URL = "http://gateway.test/v3"

GIB = 1024 ** 3


class FakeAgendaBackend:
    """In-memory table store answering PostgREST-style requests.

    Supports ``select``/``order``/``limit`` and ``id=eq.X`` filters on GET,
    bulk POST, PATCH and DELETE by id. Setting ``fail_with`` makes every
    request answer with that status code and an error message.
    """

    def __init__(self):
        self.rows = []
        self.next_id = 1
        self.requests = []
        self.fail_with = None

    def add(self, **row):
        row.setdefault("id", self.next_id)
        self.next_id = max(self.next_id, row["id"]) + 1
        self.rows.append(row)
        return row

    def _matching(self, request):
        id_filter = request.url.params.get("id")
        if id_filter is None:
            return list(self.rows)
        wanted = id_filter.split(".", 1)[1]
        return [row for row in self.rows if str(row["id"]) == wanted]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"message": "backend exploded"})

        if request.method == "GET":
            rows = self._matching(request)
            order = request.url.params.get("order")
            if order:
                column, direction = order.split(".")
                rows.sort(key=lambda r: r.get(column) or "", reverse=direction == "desc")
            limit = request.url.params.get("limit")
            if limit:
                rows = rows[: int(limit)]
            return httpx.Response(200, json=rows)

        if request.method == "POST":
            created = [self.add(**values) for values in json.loads(request.content)]
            return httpx.Response(201, json=created)

        if request.method == "PATCH":
            changes = json.loads(request.content)
            rows = self._matching(request)
            for row in rows:
                row.update(changes)
            return httpx.Response(200, json=rows)

        if request.method == "DELETE":
            doomed = self._matching(request)
            self.rows = [row for row in self.rows if row not in doomed]
            return httpx.Response(204)

        return httpx.Response(405, json={"message": "method not allowed"})


class FakePaymentGateway:
    """Canned customers and payments answering gateway-style GET requests.

    Unknown customer ids answer 404 with the gateway's error list. Setting
    ``fail_with`` makes every request answer with that status code.
    """

    def __init__(self):
        self.customers = [
            {"id": "cus_000001", "name": "Joao Silva", "cpfCnpj": "12345678909"},
            {"id": "cus_000002", "name": "Maria Souza", "cpfCnpj": "98765432100"},
        ]
        self.payments = [
            {"id": "pay_1", "customer": "cus_000001", "value": 99.9, "status": "RECEIVED"},
            {"id": "pay_2", "customer": "cus_000001", "value": 99.9, "status": "PENDING"},
            {"id": "pay_3", "customer": "cus_000002", "value": 79.9, "status": "OVERDUE"},
        ]
        self.requests = []
        self.fail_with = None

    @staticmethod
    def _page(items):
        return {"object": "list", "hasMore": False, "totalCount": len(items), "data": items}

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return httpx.Response(
                self.fail_with,
                json={"errors": [{"code": "invalid_access_token", "description": "denied"}]},
            )

        path = request.url.path
        params = request.url.params
        if path == "/v3/customers":
            customers = self.customers
            if "cpfCnpj" in params:
                customers = [c for c in customers if c["cpfCnpj"] == params["cpfCnpj"]]
            if "limit" in params:
                customers = customers[: int(params["limit"])]
            return httpx.Response(200, json=self._page(customers))
        if path.startswith("/v3/customers/"):
            wanted = path.rsplit("/", 1)[1]
            for customer in self.customers:
                if customer["id"] == wanted:
                    return httpx.Response(200, json=customer)
            return httpx.Response(
                404, json={"errors": [{"code": "not_found", "description": "Customer not found"}]}
            )
        if path == "/v3/payments":
            payments = [p for p in self.payments if p["customer"] == params.get("customer")]
            return httpx.Response(200, json=self._page(payments))
        return httpx.Response(404, text="Not Found")


@pytest.fixture()
def test_engine():
    """Create a test database engine with in-memory SQLite.

    Uses StaticPool so a single connection is shared across threads,
    which is required because TestClient dispatches requests in a
    separate thread while the test runs on the main thread.
    """
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def test_session(test_engine):
    """Create a test database session."""
    TestSession = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    session = TestSession()
    yield session
    session.close()


@pytest.fixture()
def fake_backend():
    """In-memory agenda table."""
    return FakeAgendaBackend()


@pytest.fixture()
def backend_client(fake_backend):
    """BackendClient talking to the in-memory agenda table."""
    backend = BackendClient(
        TEST_BACKEND_URL, "test-key", transport=httpx.MockTransport(fake_backend.handle)
    )
    yield backend
    backend.close()


@pytest.fixture()
def fake_gateway():
    """Canned payment gateway."""
    return FakePaymentGateway()


@pytest.fixture()
def gateway_client(fake_gateway):
    """PaymentGatewayClient talking to the canned gateway."""
    gateway = PaymentGatewayClient(
        TEST_GATEWAY_URL, "gateway-test-key", transport=httpx.MockTransport(fake_gateway.handle)
    )
    yield gateway
    gateway.close()


@pytest.fixture()
def test_settings():
    """Settings with the managed backend configured."""
    return Settings(
        BACKEND_URL=TEST_BACKEND_URL,
        BACKEND_ANON_KEY="test-key",
        ASAAS_API_URL=TEST_GATEWAY_URL,
        ASAAS_API_KEY="gateway-test-key",
        PAGE_SIZE=10,
    )


@pytest.fixture()
def app(test_settings, test_engine, backend_client, gateway_client):
    """Application wired to the test database and the fake upstreams."""
    return create_app(
        settings=test_settings,
        engine=test_engine,
        backend=backend_client,
        gateway=gateway_client,
    )


@pytest.fixture()
def client(app, test_session):
    """Create a FastAPI test client with the test database injected."""

    def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def sample_records(test_session):
    """Insert sample accounting sessions into the test database.

    Users:
        - joao: three sessions, the latest one open on 10.0.0.1
        - maria: latest session closed on 10.0.0.2, older one on 10.0.0.1
        - mariana: two sessions sharing the same start time on 10.0.0.2,
          the higher radacctid being the open one
        - pedro: a single closed session on 10.0.0.1
    """
    records = [
        # joao - older closed sessions, then an open one
        RadAcct(
            username="joao",
            nasipaddress="10.0.0.1",
            nasportid="ppp0",
            acctstarttime=datetime(2024, 3, 1, 8, 0, 0),
            acctstoptime=datetime(2024, 3, 1, 20, 0, 0),
            acctinputoctets=GIB,
            acctoutputoctets=2 * GIB,
            acctterminatecause="User-Request",
            framedipaddress="100.64.0.10",
            callingstationid="AA:BB:CC:DD:EE:01",
        ),
        RadAcct(
            username="joao",
            nasipaddress="10.0.0.2",
            nasportid="ppp1",
            acctstarttime=datetime(2024, 3, 2, 8, 0, 0),
            acctstoptime=datetime(2024, 3, 2, 9, 0, 0),
            acctinputoctets=GIB,
            acctoutputoctets=GIB,
            acctterminatecause="Lost-Carrier",
            framedipaddress="100.64.0.10",
            callingstationid="AA:BB:CC:DD:EE:01",
        ),
        RadAcct(
            username="joao",
            nasipaddress="10.0.0.1",
            nasportid="ppp2",
            acctstarttime=datetime(2024, 3, 3, 10, 0, 0),
            acctstoptime=None,
            acctinputoctets=512,
            acctoutputoctets=1024,
            framedipaddress="100.64.0.10",
            callingstationid="AA:BB:CC:DD:EE:01",
        ),
        # maria - moved from 10.0.0.1 to 10.0.0.2, now down
        RadAcct(
            username="maria",
            nasipaddress="10.0.0.1",
            acctstarttime=datetime(2024, 3, 1, 7, 0, 0),
            acctstoptime=None,
            acctinputoctets=100,
            acctoutputoctets=200,
            callingstationid="AA:BB:CC:DD:EE:02",
        ),
        RadAcct(
            username="maria",
            nasipaddress="10.0.0.2",
            acctstarttime=datetime(2024, 3, 2, 7, 0, 0),
            acctstoptime=datetime(2024, 3, 2, 12, 0, 0),
            acctinputoctets=300,
            acctoutputoctets=400,
            acctterminatecause="Idle-Timeout",
            callingstationid="AA:BB:CC:DD:EE:02",
        ),
        # mariana - two sessions with the same start time
        RadAcct(
            username="mariana",
            nasipaddress="10.0.0.2",
            acctstarttime=datetime(2024, 3, 4, 6, 0, 0),
            acctstoptime=datetime(2024, 3, 4, 6, 5, 0),
            acctinputoctets=10,
            acctoutputoctets=20,
            acctterminatecause="NAS-Error",
        ),
        RadAcct(
            username="mariana",
            nasipaddress="10.0.0.2",
            acctstarttime=datetime(2024, 3, 4, 6, 0, 0),
            acctstoptime=None,
            acctinputoctets=30,
            acctoutputoctets=40,
        ),
        # pedro - single closed session
        RadAcct(
            username="pedro",
            nasipaddress="10.0.0.1",
            acctstarttime=datetime(2024, 2, 28, 12, 0, 0),
            acctstoptime=datetime(2024, 2, 28, 13, 0, 0),
            acctinputoctets=0,
            acctoutputoctets=0,
            acctterminatecause="User-Request",
        ),
    ]
    test_session.add_all(records)
    test_session.commit()
    return records


@pytest.fixture()
def sample_nas(test_session):
    """Register two concentrators in the nas table."""
    rows = [
        Nas(nasname="10.0.0.1", shortname="bras-centro", type="mikrotik", ports=1812),
        Nas(nasname="192.168.50.2", shortname="bras-norte", type="mikrotik", ports=1812),
    ]
    test_session.add_all(rows)
    test_session.commit()
    return rows


@pytest.fixture()
def recent_usage(test_session):
    """Sessions of 'ana' within the last days, relative to the current time.

    Two sessions two days ago (1 GiB upload each) and one session yesterday;
    plus one session well outside a 30-day window.
    """
    today = datetime.now(timezone.utc).replace(
        tzinfo=None, hour=12, minute=0, second=0, microsecond=0
    )
    two_days_ago = today - timedelta(days=2)
    yesterday = today - timedelta(days=1)
    records = [
        RadAcct(
            username="ana",
            nasipaddress="10.0.0.3",
            acctstarttime=two_days_ago.replace(hour=8),
            acctstoptime=two_days_ago.replace(hour=9),
            acctinputoctets=GIB,
            acctoutputoctets=3 * GIB,
        ),
        RadAcct(
            username="ana",
            nasipaddress="10.0.0.3",
            acctstarttime=two_days_ago.replace(hour=18),
            acctstoptime=two_days_ago.replace(hour=19),
            acctinputoctets=GIB,
            acctoutputoctets=GIB,
        ),
        RadAcct(
            username="ana",
            nasipaddress="10.0.0.3",
            acctstarttime=yesterday,
            acctstoptime=None,
            acctinputoctets=GIB // 2,
            acctoutputoctets=0,
        ),
        RadAcct(
            username="ana",
            nasipaddress="10.0.0.3",
            acctstarttime=today - timedelta(days=60),
            acctstoptime=today - timedelta(days=60) + timedelta(hours=1),
            acctinputoctets=50 * GIB,
            acctoutputoctets=50 * GIB,
        ),
    ]
    test_session.add_all(records)
    test_session.commit()
    return records
