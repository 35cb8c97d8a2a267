"""PostgreSQL-backed record store with live change notifications.

Each record is one row ``(id text primary key, content jsonb)``. A statement
trigger calls ``pg_notify`` on every insert, update and delete; subscribers
``LISTEN`` on that channel and refetch the whole table whenever anything
changes. Notification payloads are never inspected.
"""

import json
import logging
import re
import select
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Callable, Iterable, Iterator, Optional

import psycopg2
import psycopg2.errors
import psycopg2.extensions
from psycopg2.extras import Json

from work_log.core.errors import (
    ChannelError,
    NetworkFault,
    NotConfiguredError,
    SchemaMissingError,
    StorageFault,
    WorkLogError,
)
from work_log.core.models import WorkRecord, utc_now
from work_log.core.store import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "work_records"
DEFAULT_CHANNEL = "work_records_changes"
DATABASE_URL_ENV = "WORK_LOG_DATABASE_URL"

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")

DataCallback = Callable[[list[WorkRecord]], None]
ErrorCallback = Callable[[Exception], None]


def setup_sql(table: str = DEFAULT_TABLE, channel: str = DEFAULT_CHANNEL) -> str:
    """SQL that creates the records table and its change trigger."""
    return f"""\
create table if not exists {table} (
  id text primary key,
  content jsonb not null
);
alter table {table} enable row level security;
drop policy if exists "Public Access" on {table};
create policy "Public Access" on {table} for all using (true) with check (true);
create or replace function {table}_notify() returns trigger as $$
begin
  perform pg_notify('{channel}', tg_op);
  return null;
end;
$$ language plpgsql;
drop trigger if exists {table}_notify on {table};
create trigger {table}_notify after insert or update or delete on {table}
  for each statement execute function {table}_notify();
"""


SETUP_SQL = setup_sql()


def _as_document(value: Any) -> dict[str, Any]:
    """jsonb arrives decoded; json/text columns arrive as strings."""
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


class CloudRecordStore(RecordStore):
    """Record store backed by a hosted PostgreSQL table."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        table: str = DEFAULT_TABLE,
        channel: str = DEFAULT_CHANNEL,
        poll_interval: float = 5.0,
        connect: Optional[Callable[[str], Any]] = None,
    ):
        """Initialize cloud store.

        Args:
            database_url: libpq connection string. None leaves the store unconfigured
            table: Records table name
            channel: Notification channel name
            poll_interval: Seconds the listener waits between stop checks
            connect: Connection factory. Defaults to psycopg2.connect

        Raises:
            ValueError: If table or channel is not a plain identifier
        """
        for name in (table, channel):
            if not _IDENTIFIER.match(name):
                raise ValueError(f"Invalid SQL identifier: {name!r}")

        self.database_url = database_url
        self.table = table
        self.channel = channel
        self.poll_interval = poll_interval
        self._connect = connect or psycopg2.connect
        self._conn: Any = None
        self._lock = threading.RLock()
        self._subscriptions: list["Subscription"] = []

    @property
    def is_configured(self) -> bool:
        """Whether connection credentials are present."""
        return bool(self.database_url)

    @property
    def setup_sql(self) -> str:
        return setup_sql(self.table, self.channel)

    def _require_configured(self) -> None:
        if not self.is_configured:
            raise NotConfiguredError(
                f"Database URL is not set. Configure cloud.database_url or set {DATABASE_URL_ENV}."
            )

    def new_connection(self) -> Any:
        """Open a fresh database connection.

        Raises:
            NotConfiguredError: If no database URL is set
            NetworkFault: If the database cannot be reached
        """
        self._require_configured()
        try:
            return self._connect(self.database_url)
        except psycopg2.Error as e:
            raise NetworkFault(f"Could not connect to database: {e}") from e

    def open(self) -> "CloudRecordStore":
        """Connect to the database."""
        with self._lock:
            if self._conn is None or self._conn.closed:
                self._conn = self.new_connection()
                logger.info(f"Connected to cloud store (table {self.table})")
        return self

    def close(self) -> None:
        """Stop all subscriptions and close the connection."""
        for subscription in list(self._subscriptions):
            subscription.unsubscribe()
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.info("Closed cloud store connection")

    @contextmanager
    def _transaction(self, action: str) -> Iterator[Any]:
        """Run a block in one transaction and classify database errors."""
        self._require_configured()
        with self._lock:
            if self._conn is None:
                raise NotConfiguredError("Cloud store is not connected. Call open() first.")
            try:
                with self._conn:
                    with self._conn.cursor() as cursor:
                        yield cursor
            except psycopg2.errors.UndefinedTable as e:
                raise SchemaMissingError(
                    f"Table '{self.table}' does not exist. Create it with:\n\n{self.setup_sql}"
                ) from e
            except (psycopg2.OperationalError, psycopg2.InterfaceError) as e:
                raise NetworkFault(f"Failed to {action}: {e}") from e
            except psycopg2.Error as e:
                raise StorageFault(f"Failed to {action}: {e}") from e

    def install_schema(self) -> None:
        """Create the table, access policy and change trigger."""
        with self._transaction("install schema") as cursor:
            cursor.execute(self.setup_sql)
        logger.info(f"Installed schema for table {self.table}")

    def fetch_all(self) -> list[WorkRecord]:
        """Load every record from the table.

        Raises:
            NotConfiguredError: If not configured or not connected
            SchemaMissingError: If the table does not exist
            StorageFault: If a row does not hold a valid record document
        """
        with self._transaction("fetch records") as cursor:
            cursor.execute(f"SELECT content FROM {self.table}")
            rows = cursor.fetchall()
        try:
            return [WorkRecord.from_dict(_as_document(row[0])) for row in rows]
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise StorageFault(f"Corrupt record in table {self.table}: {e!r}") from e

    def list_records(self) -> list[WorkRecord]:
        return self.fetch_all()

    def save(self, record: WorkRecord) -> WorkRecord:
        """Upsert a record, stamping ``updated_at``.

        Success means the row is durable; subscribers see it only after the
        change notification arrives.
        """
        stored = replace(record, updated_at=utc_now())
        with self._transaction("save record") as cursor:
            cursor.execute(
                f"INSERT INTO {self.table} (id, content) VALUES (%s, %s) "
                f"ON CONFLICT (id) DO UPDATE SET content = EXCLUDED.content",
                (stored.id, Json(stored.to_dict())),
            )
        logger.debug(f"Saved record {stored.id} to cloud store")
        return stored

    def save_many(self, records: Iterable[WorkRecord]) -> int:
        """Upsert records unchanged in one batch.

        Returns:
            Number of records sent
        """
        params = [(r.id, Json(r.to_dict())) for r in records]
        if not params:
            return 0
        with self._transaction("save records") as cursor:
            cursor.executemany(
                f"INSERT INTO {self.table} (id, content) VALUES (%s, %s) "
                f"ON CONFLICT (id) DO UPDATE SET content = EXCLUDED.content",
                params,
            )
        return len(params)

    def delete(self, record_id: str) -> None:
        with self._transaction("delete record") as cursor:
            cursor.execute(f"DELETE FROM {self.table} WHERE id = %s", (record_id,))
        logger.debug(f"Deleted record {record_id} from cloud store")

    def delete_by_owner(self, developer_name: str) -> int:
        with self._transaction("delete records") as cursor:
            cursor.execute(
                f"DELETE FROM {self.table} WHERE content->>'developerName' = %s",
                (developer_name,),
            )
            removed = cursor.rowcount
        logger.info(f"Deleted {removed} cloud records owned by {developer_name}")
        return removed

    def subscribe(
        self,
        on_data: DataCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> "Subscription":
        """Deliver the full collection now and after every table change.

        Args:
            on_data: Receives the complete record list on each refresh
            on_error: Receives NotConfiguredError, SchemaMissingError,
                ChannelError and fetch faults

        Returns:
            Subscription; call it (or its ``unsubscribe``) to stop
        """
        subscription = Subscription(self, on_data, on_error)
        if not self.is_configured:
            subscription.report(
                NotConfiguredError(
                    f"Database URL is not set. Configure cloud.database_url or set {DATABASE_URL_ENV}."
                )
            )
            return subscription

        self._subscriptions.append(subscription)
        subscription.start()
        return subscription

    def _forget(self, subscription: "Subscription") -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)


class Subscription:
    """A standing refetch-on-change feed from a CloudRecordStore."""

    def __init__(
        self,
        store: CloudRecordStore,
        on_data: DataCallback,
        on_error: Optional[ErrorCallback] = None,
    ):
        self.store = store
        self.on_data = on_data
        self.on_error = on_error
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def active(self) -> bool:
        return not self._stopped.is_set()

    @property
    def listening(self) -> bool:
        """Whether the live-update listener is running."""
        return self._thread is not None and self._thread.is_alive()

    def report(self, error: Exception) -> None:
        if self.on_error is not None and self.active:
            self.on_error(error)

    def refresh(self) -> None:
        """Refetch the whole table and deliver it."""
        try:
            records = self.store.fetch_all()
        except WorkLogError as e:
            logger.error(f"Refresh failed: {e}")
            self.report(e)
            return
        if self.active:
            self.on_data(records)

    def start(self) -> None:
        """Listen on the channel, deliver the first snapshot, then watch.

        ``LISTEN`` is issued before the first fetch so that no change
        committed after that fetch goes unannounced.
        """
        try:
            conn = self._open_listener()
        except (WorkLogError, psycopg2.Error) as e:
            self._channel_failed(e)
            conn = None

        self.refresh()
        if conn is None:
            return
        if not self.active:
            conn.close()
            return

        self._thread = threading.Thread(
            target=self._listen, args=(conn,), name=f"listen-{self.store.channel}", daemon=True
        )
        self._thread.start()

    def _open_listener(self) -> Any:
        """Open an autocommit connection already listening on the channel."""
        conn = self.store.new_connection()
        try:
            conn.set_isolation_level(psycopg2.extensions.ISOLATION_LEVEL_AUTOCOMMIT)
            with conn.cursor() as cursor:
                cursor.execute(f"LISTEN {self.store.channel}")
        except psycopg2.Error:
            conn.close()
            raise
        logger.debug(f"Listening on {self.store.channel}")
        return conn

    def _channel_failed(self, error: Exception) -> None:
        logger.warning(f"Live updates unavailable on {self.store.channel}: {error}")
        self.report(ChannelError(f"Live updates unavailable: {error}"))

    def _listen(self, conn: Any) -> None:
        try:
            while self.active:
                if self._wait_for_change(conn) and self.active:
                    self.refresh()
        except (psycopg2.Error, OSError, ValueError) as e:
            if self.active:
                self._channel_failed(e)
        finally:
            conn.close()

    def _wait_for_change(self, conn: Any) -> bool:
        """Block up to one poll interval; True if any notification arrived."""
        readable, _, _ = select.select([conn], [], [], self.store.poll_interval)
        if not readable:
            return False
        conn.poll()
        if not conn.notifies:
            return False
        # Any number of pending notifications collapses into one refetch.
        del conn.notifies[:]
        return True

    def unsubscribe(self) -> None:
        """Stop deliveries and release the listener. Idempotent."""
        if self._stopped.is_set():
            return
        self._stopped.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.store.poll_interval + 1.0)
        self.store._forget(self)
        logger.debug(f"Unsubscribed from {self.store.channel}")

    def __call__(self) -> None:
        self.unsubscribe()
