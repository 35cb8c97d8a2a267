"""Pytest configuration and shared fixtures."""

import copy
import socket
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

import psycopg2  # type: ignore[import-untyped]
import psycopg2.errors  # type: ignore[import-untyped]
import pytest  # type: ignore[import-not-found]

from work_log.core.cloud import CloudRecordStore
from work_log.core.storage import LocalRecordStore


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest."""
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")


class FakeDatabase:
    """In-memory stand-in for a PostgreSQL server holding the records table.

    Every insert/update/delete notifies listening connections, like the
    statement trigger installed by the setup script.
    """

    def __init__(self, table: str = "work_records") -> None:
        self.table = table
        self.rows: dict[str, dict[str, Any]] = {}
        self.table_exists = True
        self.fail_connect = False
        self.fail_listen = False
        self.listeners: list["FakeConnection"] = []
        self.executed: list[str] = []
        self.lock = threading.Lock()

    def connect(self, dsn: str) -> "FakeConnection":
        if self.fail_connect:
            raise psycopg2.OperationalError("could not connect to server: Connection refused")
        return FakeConnection(self)

    def notify(self, payload: str = "UPDATE") -> None:
        with self.lock:
            listeners = list(self.listeners)
        for conn in listeners:
            conn.deliver(payload)


class FakeCursor:
    def __init__(self, conn: "FakeConnection") -> None:
        self.conn = conn
        self.db = conn.db
        self.rowcount = -1
        self._results: list[tuple[Any, ...]] = []

    def __enter__(self) -> "FakeCursor":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        pass

    def execute(self, sql: str, params: Optional[tuple[Any, ...]] = None) -> None:
        db = self.db
        statement = " ".join(sql.split())
        db.executed.append(statement)

        if statement.startswith("LISTEN"):
            if db.fail_listen:
                raise psycopg2.OperationalError("LISTEN failed")
            with db.lock:
                db.listeners.append(self.conn)
            return

        if statement.lower().startswith("create table"):
            db.table_exists = True
            return

        if not db.table_exists:
            raise psycopg2.errors.UndefinedTable(f'relation "{db.table}" does not exist')

        if statement.startswith("SELECT content FROM"):
            self._results = [(copy.deepcopy(content),) for content in db.rows.values()]
            self.rowcount = len(self._results)
        elif statement.startswith("INSERT INTO"):
            record_id, content = params  # type: ignore[misc]
            db.rows[record_id] = copy.deepcopy(content.adapted)
            self.rowcount = 1
            db.notify("INSERT")
        elif statement.endswith("WHERE id = %s"):
            removed = db.rows.pop(params[0], None)  # type: ignore[index]
            self.rowcount = 0 if removed is None else 1
            db.notify("DELETE")
        elif "content->>'developerName'" in statement:
            owner = params[0]  # type: ignore[index]
            doomed = [k for k, v in db.rows.items() if v.get("developerName") == owner]
            for key in doomed:
                del db.rows[key]
            self.rowcount = len(doomed)
            db.notify("DELETE")
        else:
            raise psycopg2.ProgrammingError(f"unexpected statement: {statement}")

    def executemany(self, sql: str, seq: list[tuple[Any, ...]]) -> None:
        for params in seq:
            self.execute(sql, params)

    def fetchall(self) -> list[tuple[Any, ...]]:
        return self._results


class FakeConnection:
    """Fake psycopg2 connection; ``fileno`` is a real socket so select() works."""

    def __init__(self, db: FakeDatabase) -> None:
        self.db = db
        self.closed = 0
        self.notifies: list[str] = []
        self.commits = 0
        self.rollbacks = 0
        self._pending: list[str] = []
        self._reader, self._writer = socket.socketpair()
        self._reader.setblocking(False)

    def cursor(self) -> FakeCursor:
        if self.closed:
            raise psycopg2.InterfaceError("connection already closed")
        return FakeCursor(self)

    def __enter__(self) -> "FakeConnection":
        return self

    def __exit__(self, exc_type: Any, *exc_info: Any) -> bool:
        if exc_type is None:
            self.commits += 1
        else:
            self.rollbacks += 1
        return False

    def set_isolation_level(self, level: int) -> None:
        pass

    def fileno(self) -> int:
        return self._reader.fileno()

    def deliver(self, payload: str) -> None:
        with self.db.lock:
            if self.closed:
                return
            self._pending.append(payload)
            self._writer.send(b"!")

    def poll(self) -> None:
        try:
            self._reader.recv(4096)
        except BlockingIOError:
            pass
        with self.db.lock:
            self.notifies.extend(self._pending)
            self._pending.clear()

    def close(self) -> None:
        with self.db.lock:
            if self.closed:
                return
            self.closed = 1
            if self in self.db.listeners:
                self.db.listeners.remove(self)
            self._reader.close()
            self._writer.close()


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def local_store(temp_dir: Path) -> LocalRecordStore:
    """Local store in a temporary directory."""
    return LocalRecordStore(temp_dir / "data")


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def cloud_store(fake_db: FakeDatabase) -> Iterator[CloudRecordStore]:
    """Open cloud store wired to the in-memory database."""
    store = CloudRecordStore(
        "postgresql://tester@localhost/worklog",
        poll_interval=0.05,
        connect=fake_db.connect,
    )
    store.open()
    yield store
    store.close()


@pytest.fixture
def wait_for() -> Callable[..., bool]:
    """Poll a predicate until it holds or the timeout passes."""

    def _wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()

    return _wait_for
