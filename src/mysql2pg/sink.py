"""
타겟 DB (PostgreSQL) 어댑터
스레드 안전 커넥션 풀 + 트랜잭션 단위 COPY FROM STDIN 벌크 로드
"""

import logging
from contextlib import contextmanager
from io import StringIO

import psycopg2
import psycopg2.pool
from psycopg2 import sql

from mysql2pg.config import TargetDBSettings
from mysql2pg.exceptions import ConnectivityError, TransferError
from mysql2pg.logger import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

COPY_NULL = "\\N"


def _is_transient(error: Exception) -> bool:
    return isinstance(error, (psycopg2.OperationalError, psycopg2.InterfaceError))


def _encode_binary(value: bytes, binary_mode: str) -> str:
    """바이너리 컬럼 값 인코딩

    auto: 백슬래시 없는 UTF-8 값은 텍스트 그대로 (text / bytea 컬럼 모두 같은 바이트로 저장)
          그 외는 bytea hex
    hex: 항상 bytea hex
    """
    if binary_mode == "auto" and b"\\" not in value:
        try:
            return _escape_text(value.decode("utf-8"))
        except UnicodeDecodeError:
            pass
    # bytea hex 포맷 (\x...), COPY 이스케이프로 백슬래시 이중화
    return "\\\\x" + value.hex()


def _escape_text(text: str) -> str:
    return (
        text
        .replace("\\", "\\\\")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
        .replace("\t", "\\t")
    )


def encode_copy_value(value, binary_mode: str = "auto") -> str:
    """COPY text 포맷 필드 인코딩"""
    if value is None:
        return COPY_NULL
    if isinstance(value, (bytes, bytearray)):
        return _encode_binary(bytes(value), binary_mode)
    return _escape_text(str(value))


def encode_copy_row(row, binary_mode: str = "auto") -> str:
    return "\t".join(encode_copy_value(v, binary_mode) for v in row) + "\n"


def table_identifier(table: str) -> sql.Identifier:
    """schema.table 형식은 각 부분을 따로 인용"""
    return sql.Identifier(*table.split("."))


def build_copy_statement(table: str, columns) -> sql.Composed:
    return sql.SQL("COPY {} ({}) FROM STDIN WITH (FORMAT text)").format(
        table_identifier(table),
        sql.SQL(", ").join(sql.Identifier(col) for col in columns),
    )


class BulkLoadSink:
    """테이블/컬럼에 바인딩된 COPY 채널

    batch_size 행마다 버퍼를 COPY로 전송하므로 메모리는 배치 크기로 제한됨
    """

    def __init__(self, cursor, table: str, columns, batch_size: int = 10000, binary_mode: str = "auto"):
        self._cursor = cursor
        self.table = table
        self.columns = tuple(columns)
        self.batch_size = batch_size
        self.binary_mode = binary_mode
        self._statement = build_copy_statement(table, self.columns)
        self._buffer = StringIO()
        self._buffered = 0
        self.rows_written = 0
        self.closed = False

    def write(self, row):
        if self.closed:
            raise TransferError(f"{self.table}: 이미 닫힌 COPY 채널")
        if len(row) != len(self.columns):
            raise TransferError(
                f"{self.table}: 컬럼 수 불일치 (columns={len(self.columns)}, row={len(row)})"
            )
        self._buffer.write(encode_copy_row(row, self.binary_mode))
        self._buffered += 1
        if self._buffered >= self.batch_size:
            self._flush()

    def _flush(self):
        if not self._buffered:
            return
        self._buffer.seek(0)
        try:
            self._cursor.copy_expert(self._statement, self._buffer)
        except psycopg2.Error as e:
            raise TransferError(f"{self.table}: COPY 실패: {e}", transient=_is_transient(e)) from e
        finally:
            # 버퍼 비우기
            self._buffer.close()
            self._buffer = StringIO()
        self.rows_written += self._buffered
        self._buffered = 0

    def finalize(self):
        """남은 버퍼 전송"""
        if self.closed:
            raise TransferError(f"{self.table}: 이미 닫힌 COPY 채널")
        self._flush()

    def close(self):
        if self.closed:
            return
        self.closed = True
        self._buffer.close()
        try:
            self._cursor.close()
        except psycopg2.Error as e:
            logger.debug(f"{self.table}: 커서 정리 실패: {e}")


class Transaction:
    """타겟 커넥션 1개에 묶인 트랜잭션 (psycopg2는 첫 문장에서 암묵적으로 BEGIN)"""

    def __init__(self, conn, batch_size: int = 10000, binary_mode: str = "auto"):
        self._conn = conn
        self.batch_size = batch_size
        self.binary_mode = binary_mode
        self.committed = False

    def prepare_bulk_load(self, table: str, columns) -> BulkLoadSink:
        try:
            cursor = self._conn.cursor()
        except psycopg2.Error as e:
            raise TransferError(f"{table}: COPY 준비 실패: {e}", transient=_is_transient(e)) from e
        return BulkLoadSink(cursor, table, columns, batch_size=self.batch_size, binary_mode=self.binary_mode)

    def commit(self):
        try:
            self._conn.commit()
        except psycopg2.Error as e:
            raise TransferError(f"커밋 실패: {e}", transient=_is_transient(e)) from e
        self.committed = True

    def rollback(self):
        try:
            self._conn.rollback()
        except psycopg2.Error as e:
            logger.warning(f"롤백 실패: {e}")


class DestinationStore:
    """타겟 DB 커넥션 풀

    max_connections는 동시 워커 수 이상이어야 함 (풀 고갈 시 PoolError)
    """

    def __init__(
        self,
        settings: TargetDBSettings,
        max_connections: int = 10,
        batch_size: int = 10000,
        binary_mode: str = "auto",
    ):
        self.settings = settings
        self.max_connections = max_connections
        self.batch_size = batch_size
        self.binary_mode = binary_mode
        self._pool: psycopg2.pool.ThreadedConnectionPool | None = None

    def _get_pool(self) -> psycopg2.pool.ThreadedConnectionPool:
        """커넥션 풀 가져오기"""
        if self._pool is None:
            try:
                self._pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=1,
                    maxconn=self.max_connections,
                    **self.settings.to_dict(),
                )
            except psycopg2.Error as e:
                raise ConnectivityError("postgres", f"연결 실패: {e}") from e
        return self._pool

    def ping(self):
        """연결 확인 (실패 시 ConnectivityError)"""
        pool = self._get_pool()
        try:
            conn = pool.getconn()
        except psycopg2.Error as e:
            raise ConnectivityError("postgres", f"연결 실패: {e}") from e
        try:
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
            conn.rollback()
        except psycopg2.Error as e:
            raise ConnectivityError("postgres", f"연결 확인 실패: {e}") from e
        finally:
            pool.putconn(conn)
        logger.info(f"PostgreSQL 연결 성공: {self.settings.host}:{self.settings.port}/{self.settings.database}")

    @contextmanager
    def transaction(self):
        """커넥션 대여 + 트랜잭션

        블록이 예외로 끝나거나 commit() 없이 끝나면 롤백 후 풀에 반환
        """
        pool = self._get_pool()
        try:
            conn = pool.getconn()
        except psycopg2.Error as e:
            raise TransferError(f"타겟 커넥션 획득 실패: {e}", transient=_is_transient(e)) from e

        txn = Transaction(conn, batch_size=self.batch_size, binary_mode=self.binary_mode)
        try:
            yield txn
        finally:
            if not txn.committed:
                txn.rollback()
            pool.putconn(conn, close=bool(conn.closed))

    def close(self):
        """커넥션 풀 정리"""
        if self._pool is not None:
            self._pool.closeall()
            self._pool = None
