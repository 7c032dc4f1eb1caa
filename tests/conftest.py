"""Pytest configuration and fixtures."""
import os

import pytest

# Set test environment variables before the app module builds its engine
os.environ["APIFLOW_JWT_SECRET"] = "test-secret"
os.environ["APIFLOW_BCRYPT_ROUNDS"] = "4"
os.environ["APIFLOW_COLLECTIONS"] = '["users", "orders"]'

from apiflow.engine.engine import WorkflowEngine
from apiflow.engine.models import Graph
from apiflow.services import BcryptPasswordHasher, InMemoryDocumentStore, JWTAuthVerifier, TraceBroadcaster
from apiflow.steps.context import StepContext


class FakeMailer:
    """Email transport that records messages instead of sending them"""

    def __init__(self, fail_with=None):
        self.sent = []
        self.fail_with = fail_with

    async def send(self, to, subject, body):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append({"to": to, "subject": subject, "body": body})
        return {"success": True, "messageId": f"<msg-{len(self.sent)}@test>"}


@pytest.fixture
def store():
    return InMemoryDocumentStore(["users", "orders"])


@pytest.fixture
def hasher():
    return BcryptPasswordHasher(rounds=4)


@pytest.fixture
def verifier():
    return JWTAuthVerifier("test-secret")


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def sink():
    return TraceBroadcaster()


@pytest.fixture
def engine(store, verifier, hasher, mailer, sink):
    return WorkflowEngine(
        store=store,
        verifier=verifier,
        hasher=hasher,
        mailer=mailer,
        trace_sink=sink,
    )


@pytest.fixture
def ctx(store, verifier, hasher, mailer):
    return StepContext(
        execution_id="test-execution",
        store=store,
        verifier=verifier,
        hasher=hasher,
        mailer=mailer,
    )


def make_graph(nodes, edges=(), name="test graph"):
    """Build a Graph from plain dicts the way the editor posts them."""
    return Graph.model_validate({
        "name": name,
        "nodes": list(nodes),
        "edges": [
            {"id": f"e{i}", "source": source, "target": target}
            for i, (source, target) in enumerate(edges, start=1)
        ],
    })


@pytest.fixture
def signup_graph():
    """Input(email, password) -> Insert users"""
    return make_graph(
        [
            {"id": "in", "type": "input", "fields": {"variables": [{"name": "email"}, {"name": "password"}]}},
            {
                "id": "save",
                "type": "dbInsert",
                "fields": {
                    "collection": "users",
                    "data": {"email": "{{email}}", "password": "{{password}}"},
                    "outputVar": "createdRecord",
                },
            },
        ],
        [("in", "save")],
    )
