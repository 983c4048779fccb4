"""테스트 공용 fixture: 메모리 기반 소스/타겟 스토어"""

import threading
import time
from contextlib import contextmanager

import pytest

from mysql2pg.config import MigrationConfig
from mysql2pg.exceptions import QueryExecutionError, TransferError


class FakeReader:
    def __init__(self, columns, rows, delay=0.0, fail_at=None, on_close=None):
        self.columns = tuple(columns)
        self._rows = rows
        self._delay = delay
        self._fail_at = fail_at
        self._on_close = on_close
        self.closed = False

    def __iter__(self):
        for i, row in enumerate(self._rows):
            if self._fail_at is not None and self._fail_at[0] == i:
                raise self._fail_at[1]
            if self._delay:
                time.sleep(self._delay)
            yield tuple(row)

    def close(self):
        if not self.closed:
            self.closed = True
            if self._on_close:
                self._on_close()


class FakeSource:
    """query → (columns, rows) 매핑, 등록되지 않은 쿼리는 QueryExecutionError"""

    def __init__(self, queries=None, delay=0.0):
        self.queries = dict(queries or {})
        self.delay = delay
        self.execute_errors: dict[str, list[Exception]] = {}
        self.stream_errors: dict[str, list[tuple[int, Exception]]] = {}
        self.ping_error: Exception | None = None
        self.executed: list[str] = []
        self.readers: list[FakeReader] = []
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def ping(self):
        if self.ping_error:
            raise self.ping_error

    def _release(self):
        with self._lock:
            self.active -= 1

    def execute(self, query):
        with self._lock:
            self.executed.append(query)
            pending = self.execute_errors.get(query)
            if pending:
                raise pending.pop(0)
            if query not in self.queries:
                raise QueryExecutionError(query, f"쿼리 실행 실패: syntax error near '{query}'")
            stream_error = None
            if self.stream_errors.get(query):
                stream_error = self.stream_errors[query].pop(0)
            self.active += 1
            self.max_active = max(self.max_active, self.active)

        columns, rows = self.queries[query]
        reader = FakeReader(columns, rows, self.delay, stream_error, on_close=self._release)
        self.readers.append(reader)
        return reader


class FakeSink:
    def __init__(self, table, columns, fail_at=None):
        self.table = table
        self.columns = tuple(columns)
        self.rows = []
        self.fail_at = fail_at
        self.finalized = False
        self.closed = False

    def write(self, row):
        if len(row) != len(self.columns):
            raise TransferError(f"{self.table}: 컬럼 수 불일치")
        if self.fail_at is not None and len(self.rows) == self.fail_at:
            raise TransferError(f"{self.table}: COPY 실패")
        self.rows.append(row)

    def finalize(self):
        self.finalized = True

    def close(self):
        self.closed = True


class FakeTransaction:
    def __init__(self, destination):
        self.destination = destination
        self.sinks: list[FakeSink] = []
        self.committed = False
        self.rolled_back = False

    def prepare_bulk_load(self, table, columns):
        sink = FakeSink(table, columns, self.destination.fail_at.get(table))
        self.sinks.append(sink)
        return sink

    def commit(self):
        if self.destination.commit_error:
            raise self.destination.commit_error
        with self.destination.lock:
            for sink in self.sinks:
                self.destination.tables.setdefault(sink.table, []).extend(sink.rows)
                self.destination.columns[sink.table] = sink.columns
        self.committed = True

    def rollback(self):
        self.rolled_back = True


class FakeDestination:
    """커밋된 행만 tables에 반영"""

    def __init__(self, max_connections=None):
        self.max_connections = max_connections
        self.tables: dict[str, list[tuple]] = {}
        self.columns: dict[str, tuple] = {}
        self.fail_at: dict[str, int] = {}
        self.commit_error: Exception | None = None
        self.ping_error: Exception | None = None
        self.transactions: list[FakeTransaction] = []
        self.lock = threading.Lock()

    def ping(self):
        if self.ping_error:
            raise self.ping_error

    def truncate(self):
        self.tables.clear()

    @contextmanager
    def transaction(self):
        txn = FakeTransaction(self)
        with self.lock:
            self.transactions.append(txn)
        try:
            yield txn
        finally:
            if not txn.committed:
                txn.rollback()


class RecordingReporter:
    def __init__(self):
        self.events = []
        self._lock = threading.Lock()

    def emit(self, event):
        with self._lock:
            self.events.append(event)

    @property
    def messages(self):
        return [e.message for e in self.events]


USERS_QUERY = "SELECT id,name FROM users"
USERS_ROWS = [("1", "a"), ("2", None), ("3", "c")]


@pytest.fixture
def users_source():
    return FakeSource({USERS_QUERY: (("id", "name"), USERS_ROWS)})


@pytest.fixture
def destination():
    return FakeDestination()


@pytest.fixture
def reporter():
    return RecordingReporter()


def make_config(tables, **kwargs) -> MigrationConfig:
    return MigrationConfig(tables=tables, **kwargs)

