"""
소스 DB (MySQL) 어댑터
유닛마다 전용 커넥션 + SSCursor로 결과를 스트리밍 조회
디코더를 제거해 모든 값을 타입 변환 없이 원본 텍스트(str) / 바이너리(bytes)로 받음
"""

import logging
import threading
from collections.abc import Callable, Iterator

import pymysql
import pymysql.cursors
from pymysql import converters

from mysql2pg.config import SourceDBSettings
from mysql2pg.exceptions import ConnectivityError, QueryExecutionError, TransferError
from mysql2pg.logger import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

# 인코더(쿼리 파라미터용)만 유지하고 컬럼 디코더는 제거
RAW_CONVERSIONS = {k: v for k, v in converters.conversions.items() if not isinstance(k, int)}

Cell = str | bytes | None


def decode_cell(value) -> Cell:
    """NULL은 None, 그 외는 원본 텍스트 또는 bytes 그대로"""
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    return str(value)


def _is_transient(error: Exception) -> bool:
    return isinstance(error, (pymysql.err.OperationalError, pymysql.err.InterfaceError))


class RowStreamReader:
    """전진 전용 결과 커서 래퍼

    커넥션을 단독 소유하며 close() 시 함께 닫고 on_close로 슬롯 반환
    """

    def __init__(self, conn, cursor, on_close: Callable[[], None] | None = None):
        self._conn = conn
        self._cursor = cursor
        self._on_close = on_close
        self.columns: tuple[str, ...] = tuple(col[0] for col in (cursor.description or ()))
        self._exhausted = False
        self._closed = False

    def __iter__(self) -> Iterator[tuple[Cell, ...]]:
        try:
            while True:
                row = self._cursor.fetchone()
                if row is None:
                    break
                yield tuple(decode_cell(value) for value in row)
        except pymysql.err.Error as e:
            raise TransferError(f"소스 행 조회 실패: {e}", transient=_is_transient(e)) from e
        except UnicodeDecodeError as e:
            raise TransferError(f"소스 값 디코딩 실패 (charset 확인 필요): {e}") from e
        self._exhausted = True

    def close(self):
        if self._closed:
            return
        self._closed = True
        # SSCursor.close()는 남은 행을 모두 읽어버리므로 중단 시에는 커넥션만 닫음
        if self._exhausted:
            try:
                self._cursor.close()
            except pymysql.err.Error as e:
                logger.debug(f"소스 커서 정리 실패: {e}")
        try:
            if self._conn.open:
                self._conn.close()
        finally:
            if self._on_close is not None:
                self._on_close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class SourceStore:
    """소스 DB 커넥션 팩토리

    execute()로 열린 커넥션은 max_connections 개로 제한, 초과 시 반환될 때까지 대기
    """

    def __init__(self, settings: SourceDBSettings):
        self.settings = settings
        self.max_connections = settings.max_connections
        self._slots = threading.BoundedSemaphore(settings.max_connections)

    def connect(self):
        """유닛 전용 스트리밍 커넥션 생성"""
        config = self.settings.to_dict()
        return pymysql.connect(
            host=config["host"],
            port=config["port"],
            user=config["user"],
            password=config["password"],
            database=config["database"] or None,
            charset=config["charset"],
            conv=RAW_CONVERSIONS,
            cursorclass=pymysql.cursors.SSCursor,
        )

    def ping(self):
        """연결 확인 (실패 시 ConnectivityError)"""
        try:
            conn = self.connect()
        except pymysql.err.Error as e:
            raise ConnectivityError("mysql", f"연결 실패: {e}") from e
        try:
            with conn.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchall()
        except pymysql.err.Error as e:
            raise ConnectivityError("mysql", f"연결 확인 실패: {e}") from e
        finally:
            if conn.open:
                conn.close()
        logger.info(f"MySQL 연결 성공: {self.settings.host}:{self.settings.port}/{self.settings.database}")

    def execute(self, query: str) -> RowStreamReader:
        """쿼리 실행 후 스트리밍 리더 반환

        커넥션 실패는 TransferError(재시도 대상), 쿼리 자체 실패는 QueryExecutionError
        """
        self._slots.acquire()
        try:
            conn = self.connect()
        except pymysql.err.Error as e:
            self._slots.release()
            raise TransferError(f"소스 연결 실패: {e}", transient=True) from e

        try:
            cursor = conn.cursor()
            cursor.execute(query)
        except pymysql.err.Error as e:
            if conn.open:
                conn.close()
            self._slots.release()
            raise QueryExecutionError(query, f"쿼리 실행 실패: {e}") from e
        return RowStreamReader(conn, cursor, on_close=self._slots.release)
