"""Shared fakes for the Supabase handles and the Flutterwave HTTP API."""

import json
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio
from supabase import AuthApiError, PostgrestAPIError

from app.configs.app_settings import Settings, get_settings
from app.configs.flutterwave_config import FlutterwaveClient
from app.main import app
from app.routes.flutterwave_webhook_route import get_flutterwave_client
from app.utils.supabase_client_handlers import get_supabase_admin_client, get_supabase_caller_client_factory

WEBHOOK_HASH = "test-webhook-hash"
SECRET_KEY = "FLWSECK_TEST-secret"
API_URL = "https://flutterwave.test/v3"
ORCHESTRATION_URL = "https://orchestration.flutterwave.test"
TOKEN_URL = "https://idp.flutterwave.test/token"


def make_settings(**overrides) -> Settings:
    values = {
        "SUPABASE_URL": "https://project.supabase.test",
        "SUPABASE_ANON_KEY": "anon-key",
        "SUPABASE_SERVICE_ROLE_KEY": "service-role-key",
        "FLUTTERWAVE_SECRET_KEY": SECRET_KEY,
        "FLUTTERWAVE_HASH": WEBHOOK_HASH,
        "FLUTTERWAVE_CLIENT_ID": "client-id",
        "FLUTTERWAVE_CLIENT_SECRET": "client-secret",
        "FLUTTERWAVE_API_URL": API_URL,
        "FLUTTERWAVE_ORCHESTRATION_URL": ORCHESTRATION_URL,
        "FLUTTERWAVE_TOKEN_URL": TOKEN_URL,
        "APP_BASE_URL": "https://app.orinx.test",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_postgrest_error(message: str, code: Optional[str] = None) -> PostgrestAPIError:
    return PostgrestAPIError({"message": message, "code": code, "details": None, "hint": None})


def make_auth_error(message: str, code: Optional[str] = None, status: int = 400) -> AuthApiError:
    # constructor arguments differ across supabase-auth releases, so set the attributes directly
    error = AuthApiError.__new__(AuthApiError)
    Exception.__init__(error, message)
    error.message = message
    error.code = code
    error.status = status
    error.name = "AuthApiError"
    return error


# ---------------------------------------------------------------------------------------------------------------------
# Supabase double: just enough of the postgrest query builder, rpc and auth surfaces for these services


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, client: "FakeSupabaseClient", table_name: str):
        self.client = client
        self.table_name = table_name
        self.operation = "select"
        self.filters: List[Callable[[dict], bool]] = []
        self.payload: Any = None
        self.on_conflict: Optional[str] = None
        self.row_limit: Optional[int] = None
        self.single = False

    def select(self, *columns):
        self.operation = "select"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def gt(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row.get(column) > value)
        return self

    def limit(self, count):
        self.row_limit = count
        return self

    def maybe_single(self):
        self.single = True
        return self

    def upsert(self, payload, on_conflict=None):
        self.operation = "upsert"
        self.payload = payload
        self.on_conflict = on_conflict
        return self

    def update(self, payload):
        self.operation = "update"
        self.payload = payload
        return self

    def _matches(self, row):
        return all(check(row) for check in self.filters)

    async def execute(self):
        self.client.calls.append(("table", self.table_name, self.operation))

        failure = self.client.table_failures.get((self.table_name, self.operation))
        if failure is not None:
            raise failure

        rows = self.client.tables.setdefault(self.table_name, [])

        if self.operation == "select":
            # snapshot first: a gated read returns what the table held when the read was issued
            matched = [dict(row) for row in rows if self._matches(row)]
            if self.client.select_gate is not None:
                await self.client.select_gate()
            if self.row_limit is not None:
                matched = matched[: self.row_limit]
            if self.single:
                return FakeResponse(matched[0]) if matched else None
            return FakeResponse(matched)

        if self.operation == "upsert":
            keys = self.on_conflict.split(",") if self.on_conflict else []
            for row in rows:
                if keys and all(row.get(key) == self.payload.get(key) for key in keys):
                    row.update(self.payload)
                    return FakeResponse([dict(row)])
            rows.append(dict(self.payload))
            return FakeResponse([dict(self.payload)])

        matched = [row for row in rows if self._matches(row)]
        for row in matched:
            row.update(self.payload)
        return FakeResponse([dict(row) for row in matched])


class FakeRpc:
    def __init__(self, client: "FakeSupabaseClient", name: str, params: Dict[str, Any]):
        self.client = client
        self.name = name
        self.params = params

    async def execute(self):
        self.client.rpc_calls.append((self.name, self.params))
        handler = self.client.rpc_handlers.get(self.name)
        if handler is None:
            raise make_postgrest_error(f"Could not find the function public.{self.name}", code="PGRST202")
        return FakeResponse(await handler(self.params))


class FakeAuthAdmin:
    def __init__(self):
        self.invites = []
        self.error: Optional[Exception] = None

    async def invite_user_by_email(self, email, options=None):
        self.invites.append((email, options))
        if self.error is not None:
            raise self.error
        return SimpleNamespace(user=SimpleNamespace(id="invited-user", email=email))


class FakeAuth:
    def __init__(self, users: Dict[str, SimpleNamespace]):
        self.users = users
        self.admin = FakeAuthAdmin()
        self.tokens_seen: List[str] = []

    async def get_user(self, jwt=None):
        self.tokens_seen.append(jwt)
        user = self.users.get(jwt)
        if user is None:
            raise make_auth_error("invalid JWT: unable to parse or verify signature", code="bad_jwt", status=403)
        return SimpleNamespace(user=user)


class FakeSupabaseClient:
    def __init__(self, users: Optional[Dict[str, SimpleNamespace]] = None, access_token: Optional[str] = None):
        self.tables: Dict[str, List[dict]] = {}
        self.table_failures: Dict[tuple, Exception] = {}
        self.rpc_handlers: Dict[str, Callable] = {}
        self.calls: List[tuple] = []
        self.rpc_calls: List[tuple] = []
        self.select_gate = None
        self.access_token = access_token
        self.auth = FakeAuth(users or {})

    def table(self, name):
        return FakeQuery(self, name)

    def rpc(self, name, params=None):
        return FakeRpc(self, name, params or {})


def install_payment_procedure(client: FakeSupabaseClient) -> None:
    """handle_successful_payment with the unique constraint on payment_transactions.reference"""
    client.tables.setdefault("payment_transactions", [])
    client.tables.setdefault("subscriptions", [])

    async def handle_successful_payment(params):
        ledger = client.tables["payment_transactions"]
        if any(row["reference"] == params["p_reference"] for row in ledger):
            raise make_postgrest_error(
                'duplicate key value violates unique constraint "payment_transactions_reference_key"', code="23505"
            )
        ledger.append({"id": len(ledger) + 1, "reference": params["p_reference"], "tx_id": params["p_tx_id"], "amount": params["p_amount"]})
        client.tables["subscriptions"].append(
            {"user_id": params["p_user_id"], "plan_id": params["p_plan_id"], "interval": params["p_interval"]}
        )
        return None

    client.rpc_handlers["handle_successful_payment"] = handle_successful_payment


# ---------------------------------------------------------------------------------------------------------------------
# Flutterwave double


class FakeFlutterwave:
    """Routes httpx requests to canned Flutterwave responses and records them"""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.transactions: Dict[str, dict] = {}
        self.verify_override: Optional[Callable[[httpx.Request], httpx.Response]] = None
        self.token_response = httpx.Response(200, json={"access_token": "fw-access-token", "expires_in": 600})
        self.order_response = httpx.Response(200, json={"status": "success", "data": {"link": "https://checkout.flutterwave.test/pay/abc"}})

    @property
    def verify_requests(self):
        return [request for request in self.requests if request.url.path.endswith("/verify")]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/verify"):
            if self.verify_override is not None:
                return self.verify_override(request)
            transaction_id = path.split("/")[-2]
            transaction = self.transactions.get(transaction_id)
            if transaction is None:
                return httpx.Response(404, json={"status": "error", "message": "No transaction was found for this id", "data": None})
            return httpx.Response(200, json={"status": "success", "message": "Transaction fetched successfully", "data": transaction})

        if request.url == httpx.URL(TOKEN_URL):
            return self.token_response

        if path.endswith("/orchestration/direct-orders"):
            return self.order_response

        return httpx.Response(404, json={"message": "unknown route"})

    def client(self, settings: Settings) -> FlutterwaveClient:
        return FlutterwaveClient(settings, http_client=httpx.AsyncClient(transport=httpx.MockTransport(self.handler)))


def verified_transaction(**overrides) -> dict:
    transaction = {
        "id": 123,
        "tx_ref": "orinx_u1_1000",
        "status": "successful",
        "amount": 10,
        "currency": "USD",
        "meta": {"user_id": "u1", "plan_id": "pro", "interval": "monthly"},
    }
    transaction.update(overrides)
    return transaction


def webhook_body(**data_overrides) -> dict:
    data = {"id": 123, "tx_ref": "orinx_u1_1000", "status": "successful", "amount": 10}
    data.update(data_overrides)
    return {"event": "charge.completed", "data": data}


# ---------------------------------------------------------------------------------------------------------------------
# fixtures


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def users():
    return {
        "owner-jwt": SimpleNamespace(id="owner-1", email="owner@orinx.io"),
        "invitee-jwt": SimpleNamespace(id="invitee-1", email="Invitee@Orinx.io"),
    }


@pytest.fixture
def supabase_admin(users):
    client = FakeSupabaseClient(users=users)
    install_payment_procedure(client)
    return client


@pytest.fixture
def caller_clients(users):
    """Every narrow client created during a test, in creation order"""
    return []


@pytest.fixture
def caller_client_factory(users, caller_clients):
    async def factory(access_token=None):
        client = FakeSupabaseClient(users=users, access_token=access_token)
        caller_clients.append(client)
        return client

    return factory


@pytest.fixture
def flutterwave():
    fake = FakeFlutterwave()
    fake.transactions["123"] = verified_transaction()
    return fake


@pytest.fixture
def test_app(settings, supabase_admin, caller_client_factory, flutterwave):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_supabase_admin_client] = lambda: supabase_admin
    app.dependency_overrides[get_supabase_caller_client_factory] = lambda: caller_client_factory
    app.dependency_overrides[get_flutterwave_client] = lambda: flutterwave.client(settings)
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(test_app):
    transport = httpx.ASGITransport(app=test_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client


async def post_webhook(client: httpx.AsyncClient, body, signature: Optional[str] = WEBHOOK_HASH) -> httpx.Response:
    headers = {"content-type": "application/json"}
    if signature is not None:
        headers["verif-hash"] = signature
    content = body if isinstance(body, (bytes, str)) else json.dumps(body)
    return await client.post("/webhook", content=content, headers=headers)
