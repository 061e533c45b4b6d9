import hashlib
import os
import tempfile
from datetime import datetime, timezone

import pytest

_tmpdir = tempfile.mkdtemp(prefix="fairdraw-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_tmpdir, 'test.db')}"
os.environ["SEED_ENCRYPTION_KEY"] = "test-seed-encryption-key"
os.environ["ADMIN_TOKEN"] = "test-admin-token"
os.environ["DRAW_SCHEDULER_ENABLED"] = "false"
os.environ["WINNER_WEBHOOK_URL"] = ""

from fairdraw.schemas import Ticket  # noqa: E402

SERVER_SEED = "abc123serverseedXYZ987"
EXTERNAL_ENTROPY = "drand-round-283726:hex-output"
CLOSED_AT = "2026-02-13T12:00:00.000Z"
ADMIN_HEADERS = {"X-Admin-Token": "test-admin-token"}


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def make_tickets(count: int, raffle_id: str = "raf_1", start: int = 1):
    return [
        Ticket(
            id=f"t{i}",
            raffle_id=raffle_id,
            user_id=f"u_{(i % 5) + 1}",
            index=i,
            price_paid=1_000_000,
            client_seed=f"client-seed-{i}",
            created_at=datetime(2026, 2, 1, tzinfo=timezone.utc),
        )
        for i in range(start, start + count)
    ]


@pytest.fixture
def tickets():
    return make_tickets(50)


@pytest.fixture
def draw_input(tickets):
    return dict(
        raffle_id="raf_1",
        seed_commit_hash=sha256_hex(SERVER_SEED),
        server_seed=SERVER_SEED,
        external_entropy=EXTERNAL_ENTROPY,
        closed_at=CLOSED_AT,
        tickets=tickets,
        winner_count=3,
    )


@pytest.fixture(scope="session")
def client():
    from fastapi.testclient import TestClient
    from fairdraw.main import app

    with TestClient(app) as test_client:
        yield test_client
