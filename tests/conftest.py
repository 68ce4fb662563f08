import os

# Must be set before importing app. load_dotenv() does not override existing env vars,
# so setting this here takes precedence over whatever is in .env.
os.environ.setdefault("DATABASE_PATH", "tasks_test.db")

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from app import app, connect, get_db, init_db
from client import TaskClient


@pytest.fixture
def db_conn(tmp_path):
    """
    A fresh SQLite file per test, with the schema created the same way
    the startup hook does it.
    """
    path = str(tmp_path / "tasks.db")
    init_db(path)
    conn = connect(path)
    yield conn
    conn.close()


@pytest.fixture
def client(db_conn):
    """
    A TestClient whose get_db dependency is overridden to use the per-test
    connection. Commits after each request like the real dependency so that
    later requests see earlier writes.

    TestClient is used without the context manager so the app's startup event
    does not create a database at DATABASE_PATH.
    """
    def override_get_db():
        cur = db_conn.cursor()
        yield cur
        db_conn.commit()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app, raise_server_exceptions=True)
    app.dependency_overrides.clear()


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest_asyncio.fixture
async def ui(client, clock):
    """A TaskClient talking to the app in-process, with a controllable clock."""
    http = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")
    task_client = TaskClient(http=http, clock=clock)
    yield task_client
    await task_client.close()
